"""Schema lookups over cassandra-driver cluster metadata."""

from __future__ import annotations

from typing import Any

import structlog

logger = structlog.get_logger()


class CassandraSchemaResolver:
    """Resolves view base tables and indexed tables from driver metadata.

    Attributes:
        metadata: `cluster.metadata` of a connected cassandra-driver cluster.
    """

    def __init__(self, metadata: Any) -> None:
        self.metadata = metadata

    def find_view_base_table(self, keyspace: str, view: str) -> str | None:
        keyspace_meta = self.metadata.keyspaces.get(keyspace)
        if keyspace_meta is None:
            logger.debug("schema_keyspace_not_found", keyspace=keyspace)
            return None
        view_meta = keyspace_meta.views.get(view)
        if view_meta is None:
            logger.debug("schema_view_not_found", keyspace=keyspace, view=view)
            return None
        return view_meta.base_table_name

    def find_indexed_table(self, keyspace: str, index: str) -> str | None:
        keyspace_meta = self.metadata.keyspaces.get(keyspace)
        if keyspace_meta is None:
            logger.debug("schema_keyspace_not_found", keyspace=keyspace)
            return None
        index_meta = keyspace_meta.indexes.get(index)
        if index_meta is None:
            logger.debug("schema_index_not_found", keyspace=keyspace, index=index)
            return None
        return index_meta.table_name
