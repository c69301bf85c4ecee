"""Audit whitelist - decides which database operations skip the audit trail."""

__version__ = "0.1.0"
