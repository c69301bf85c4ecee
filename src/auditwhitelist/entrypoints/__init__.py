"""Entrypoints - composition of the whitelist components."""
