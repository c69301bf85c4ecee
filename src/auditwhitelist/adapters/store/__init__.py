"""Whitelist store adapters."""

from .cassandra import CassandraWhitelistStore, connect_cluster
from .memory import InMemoryWhitelistStore
from .schema_alignment import SchemaAlignmentWaiter

__all__ = [
    "CassandraWhitelistStore",
    "InMemoryWhitelistStore",
    "SchemaAlignmentWaiter",
    "connect_cluster",
]
