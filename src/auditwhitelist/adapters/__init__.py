"""Adapters - Infrastructure implementations of core interfaces.

Adapters are organized by type:
- auth/: Authorizer decoration for whitelist delegation
- store/: Whitelist stores (Cassandra, in-memory) and schema alignment
- cache/: Per-role whitelist cache
"""
