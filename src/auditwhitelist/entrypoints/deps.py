"""Dependency wiring and component lifespan management."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import structlog

from auditwhitelist.adapters.auth.authorizer import AuditAuthorizer, StaticAuthorizer
from auditwhitelist.adapters.cache.whitelist_cache import WhitelistCache
from auditwhitelist.adapters.schema_metadata import CassandraSchemaResolver
from auditwhitelist.adapters.store.cassandra import CassandraWhitelistStore, connect_cluster
from auditwhitelist.adapters.store.memory import InMemoryWhitelistStore
from auditwhitelist.adapters.store.schema_alignment import SchemaAlignmentWaiter
from auditwhitelist.core.classifier import StatementClassifier
from auditwhitelist.core.decision import AuditDecisionEngine
from auditwhitelist.core.guard import PermissionDelegationGuard
from auditwhitelist.core.interfaces import Authorizer, RoleResolver, WhitelistStore
from auditwhitelist.core.manager import WhitelistManager
from auditwhitelist.core.options import WhitelistOptionParser

logger = structlog.get_logger()

STORE_CASSANDRA = "cassandra"
STORE_MEMORY = "memory"


class Settings:
    """Settings loaded from environment."""

    def __init__(self) -> None:
        """Load settings from environment variables."""
        self.store_backend = os.getenv("AUDIT_WHITELIST_STORE", STORE_CASSANDRA).lower()

        # Cache settings, in milliseconds like the host's auth caches
        self.validity_ms = int(os.getenv("AUDIT_WHITELIST_VALIDITY_MS", "2000"))
        self.update_interval_ms = int(
            os.getenv("AUDIT_WHITELIST_UPDATE_INTERVAL_MS", str(self.validity_ms))
        )
        self.max_entries = int(os.getenv("AUDIT_WHITELIST_MAX_ENTRIES", "1000"))

        self.schema_alignment_delay_ms = int(
            os.getenv("AUDIT_WHITELIST_SCHEMA_ALIGNMENT_DELAY_MS", "120000")
        )
        self.root_role = os.getenv("AUDIT_WHITELIST_ROOT_ROLE", "cassandra")
        self.keyspace = os.getenv("AUDIT_WHITELIST_KEYSPACE", "audit_auth")
        self.replication_factor = int(os.getenv("AUDIT_WHITELIST_REPLICATION_FACTOR", "1"))

        self.cassandra_hosts = [
            h.strip() for h in os.getenv("CASSANDRA_HOSTS", "localhost").split(",") if h.strip()
        ]
        self.cassandra_port = int(os.getenv("CASSANDRA_PORT", "9042"))
        self.cassandra_username = os.getenv("CASSANDRA_USERNAME")
        self.cassandra_password = os.getenv("CASSANDRA_PASSWORD")
        self.cassandra_connect_timeout = int(os.getenv("CASSANDRA_CONNECT_TIMEOUT", "10"))

    @property
    def validity_seconds(self) -> float:
        return self.validity_ms / 1000

    @property
    def update_interval_seconds(self) -> float:
        return self.update_interval_ms / 1000

    @property
    def schema_alignment_delay_seconds(self) -> float:
        return self.schema_alignment_delay_ms / 1000


@dataclass
class Components:
    """Everything a host needs to audit operations and manage whitelists."""

    store: WhitelistStore
    cache: WhitelistCache
    classifier: StatementClassifier
    authorizer: AuditAuthorizer
    guard: PermissionDelegationGuard
    engine: AuditDecisionEngine
    manager: WhitelistManager


@asynccontextmanager
async def lifespan(
    host_authorizer: Authorizer | None = None,
    role_resolver: RoleResolver | None = None,
    settings: Settings | None = None,
) -> AsyncIterator[Components]:
    """Build the whitelist components and tear them down afterwards.

    This context manager handles:
    - Cluster connection and whitelist table setup
    - Cache configuration
    - Wiring of the decision engine and the whitelist manager
    """
    settings = settings or Settings()
    cluster: Any = None
    session: Any = None
    schema_resolver = None

    if settings.store_backend == STORE_MEMORY:
        store: Any = InMemoryWhitelistStore()
    elif settings.store_backend == STORE_CASSANDRA:
        cluster, session = connect_cluster(
            settings.cassandra_hosts,
            port=settings.cassandra_port,
            username=settings.cassandra_username,
            password=settings.cassandra_password,
            connect_timeout=settings.cassandra_connect_timeout,
        )
        logger.info("cassandra_connected", hosts=settings.cassandra_hosts)
        store = CassandraWhitelistStore(
            session,
            keyspace=settings.keyspace,
            replication_factor=settings.replication_factor,
            root_role=settings.root_role,
            schema_alignment=SchemaAlignmentWaiter(
                session, delay_seconds=settings.schema_alignment_delay_seconds
            ),
        )
        schema_resolver = CassandraSchemaResolver(cluster.metadata)
    else:
        raise ValueError(f"Unknown whitelist store backend: {settings.store_backend}")

    cache = WhitelistCache(
        store,
        validity_seconds=settings.validity_seconds,
        update_interval_seconds=settings.update_interval_seconds,
        max_entries=settings.max_entries,
    )
    classifier = StatementClassifier(schema_resolver)
    authorizer = AuditAuthorizer(host_authorizer or StaticAuthorizer())
    guard = PermissionDelegationGuard(authorizer)
    manager = WhitelistManager(store, WhitelistOptionParser(), guard, cache=cache)
    engine = AuditDecisionEngine(cache, classifier, role_resolver=role_resolver)

    try:
        await manager.setup()
        logger.info(
            "audit_whitelist_ready",
            store=settings.store_backend,
            validity_ms=settings.validity_ms,
            max_entries=settings.max_entries,
        )

        yield Components(
            store=store,
            cache=cache,
            classifier=classifier,
            authorizer=authorizer,
            guard=guard,
            engine=engine,
            manager=manager,
        )
    finally:
        await cache.close()
        if isinstance(store, CassandraWhitelistStore):
            await store.close()
        if session is not None:
            session.shutdown()
        if cluster is not None:
            cluster.shutdown()
        logger.info("audit_whitelist_closed")
