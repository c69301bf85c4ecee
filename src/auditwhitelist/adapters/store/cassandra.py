"""Cassandra whitelist store.

Whitelists live in one table, one row per (role, resource)::

    CREATE TABLE <keyspace>.role_audit_whitelists_v2 (
        role text,
        resource text,
        operations set<text>,
        PRIMARY KEY (role, resource)
    )

Grants and revokes are atomic set additions and removals, so concurrent
changes to the same row from different administrators are all kept.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

import structlog
from cassandra import ConsistencyLevel
from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import Cluster

from auditwhitelist.adapters.store.schema_alignment import SchemaAlignmentWaiter
from auditwhitelist.core.domain_types import RoleWhitelist
from auditwhitelist.core.exceptions import AuditWhitelistError, StoreUnavailableError
from auditwhitelist.core.permissions import Permission
from auditwhitelist.core.resources import Resource, parse_resource

logger = structlog.get_logger()

T = TypeVar("T")

TABLE_NAME = "role_audit_whitelists_v2"
GC_GRACE_SECONDS = 90 * 24 * 60 * 60
DEFAULT_KEYSPACE = "audit_auth"
DEFAULT_ROOT_ROLE = "cassandra"


def connect_cluster(
    hosts: list[str],
    port: int = 9042,
    username: str | None = None,
    password: str | None = None,
    connect_timeout: int = 10,
) -> tuple[Any, Any]:
    """Open a cluster connection.

    Returns:
        Tuple of (cluster, session).

    Raises:
        StoreUnavailableError: If the cluster can not be reached.
    """
    auth_provider = None
    if username and password:
        auth_provider = PlainTextAuthProvider(username=username, password=password)

    try:
        cluster = Cluster(
            contact_points=hosts,
            port=port,
            auth_provider=auth_provider,
            connect_timeout=connect_timeout,
        )
        session = cluster.connect()
    except Exception as e:
        raise StoreUnavailableError(
            f"Failed to connect to Cassandra: {e}",
            details={"hosts": hosts, "port": port},
        ) from e
    return cluster, session


class CassandraWhitelistStore:
    """Whitelist store backed by a Cassandra table.

    Reads and writes for the root role use QUORUM so the root role can
    always see its own changes. Every other role uses LOCAL_ONE.

    Attributes:
        session: cassandra-driver session.
        keyspace: Keyspace holding the whitelist table.
        root_role: Role name read and written at QUORUM.
    """

    def __init__(
        self,
        session: Any,
        keyspace: str = DEFAULT_KEYSPACE,
        replication_factor: int = 1,
        root_role: str = DEFAULT_ROOT_ROLE,
        schema_alignment: SchemaAlignmentWaiter | None = None,
        max_workers: int = 4,
    ) -> None:
        """Initialize the store.

        Args:
            session: Connected cassandra-driver session.
            keyspace: Keyspace holding the whitelist table.
            replication_factor: Replication factor used when the keyspace
                has to be created.
            root_role: Role name read and written at QUORUM.
            schema_alignment: Waiter run after the table is created.
            max_workers: Size of the thread pool running driver calls.
        """
        self.session = session
        self.keyspace = keyspace
        self.replication_factor = replication_factor
        self.root_role = root_role
        self.schema_alignment = schema_alignment
        self._executor = ThreadPoolExecutor(max_workers=max_workers)
        self._setup_lock = asyncio.Lock()
        self._statements: dict[str, Any] = {}

    @property
    def table(self) -> str:
        return f"{self.keyspace}.{TABLE_NAME}"

    async def setup(self) -> None:
        """Create the keyspace and table if needed and prepare statements.

        Safe to call repeatedly and from several nodes at once.
        """
        async with self._setup_lock:
            if self._statements:
                return

            created = await self._run(self._create_schema_sync)
            if created:
                logger.info("audit_whitelist_table_created", table=self.table)
                if self.schema_alignment is not None:
                    await self.schema_alignment.wait()

            self._statements = await self._run(self._prepare_sync)

    async def close(self) -> None:
        """Shut down the driver thread pool."""
        self._executor.shutdown(wait=True)

    async def get_whitelist(self, role: str) -> RoleWhitelist:
        """Load every valid whitelist row of a role.

        Rows whose resource or permission names no longer parse are
        skipped, as are rows with an empty permission set.
        """
        rows = await self._execute("load", (role,), role)

        whitelist: RoleWhitelist = {}
        for row in rows:
            if not row.operations:
                continue
            try:
                resource = parse_resource(row.resource)
                permissions = Permission.from_names(row.operations)
            except (AuditWhitelistError, ValueError) as e:
                logger.warning(
                    "invalid_whitelist_row_skipped",
                    role=role,
                    resource=row.resource,
                    error=str(e),
                )
                continue
            whitelist[resource] = permissions
        return whitelist

    async def add_to_whitelist(
        self, role: str, resource: Resource, permissions: frozenset[Permission]
    ) -> None:
        """Atomically union permissions into the (role, resource) row."""
        await self._execute("add", (_names(permissions), role, resource.name), role)

    async def remove_from_whitelist(
        self, role: str, resource: Resource, permissions: frozenset[Permission]
    ) -> None:
        """Atomically remove permissions from the (role, resource) row."""
        await self._execute("remove", (_names(permissions), role, resource.name), role)

    async def delete_whitelist(self, role: str) -> None:
        """Delete every row of a role."""
        await self._execute("delete", (role,), role)

    def consistency_for_role(self, role: str) -> int:
        """Consistency level used for reads and writes of a role."""
        if role == self.root_role:
            return ConsistencyLevel.QUORUM
        return ConsistencyLevel.LOCAL_ONE

    async def _execute(self, name: str, values: tuple[Any, ...], role: str) -> list[Any]:
        if not self._statements:
            await self.setup()

        bound = self._statements[name].bind(values)
        bound.consistency_level = self.consistency_for_role(role)
        return await self._run(lambda: list(self.session.execute(bound)))

    async def _run(self, fn: Callable[[], T]) -> T:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, fn)
        except Exception as e:
            logger.error("whitelist_store_error", table=self.table, error=str(e))
            raise StoreUnavailableError(
                f"Whitelist store request failed: {e}",
                details={"table": self.table},
            ) from e

    def _create_schema_sync(self) -> bool:
        if self._table_exists():
            return False

        self.session.execute(
            f"CREATE KEYSPACE IF NOT EXISTS {self.keyspace} WITH replication = "
            f"{{'class': 'SimpleStrategy', 'replication_factor': '{self.replication_factor}'}}"
        )
        self.session.execute(
            f"CREATE TABLE IF NOT EXISTS {self.table} ("
            "role text, resource text, operations set<text>, "
            "PRIMARY KEY (role, resource)) "
            f"WITH gc_grace_seconds = {GC_GRACE_SECONDS}"
        )
        return True

    def _table_exists(self) -> bool:
        keyspace = self.session.cluster.metadata.keyspaces.get(self.keyspace)
        return keyspace is not None and TABLE_NAME in keyspace.tables

    def _prepare_sync(self) -> dict[str, Any]:
        return {
            "load": self.session.prepare(
                f"SELECT resource, operations FROM {self.table} WHERE role = ?"
            ),
            "add": self.session.prepare(
                f"UPDATE {self.table} SET operations = operations + ? "
                "WHERE role = ? AND resource = ?"
            ),
            "remove": self.session.prepare(
                f"UPDATE {self.table} SET operations = operations - ? "
                "WHERE role = ? AND resource = ?"
            ),
            "delete": self.session.prepare(f"DELETE FROM {self.table} WHERE role = ?"),
        }


def _names(permissions: frozenset[Permission]) -> set[str]:
    return {p.value for p in permissions}
