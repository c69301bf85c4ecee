"""Unit tests for CassandraWhitelistStore."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from cassandra import ConsistencyLevel

from auditwhitelist.adapters.store.cassandra import (
    GC_GRACE_SECONDS,
    TABLE_NAME,
    CassandraWhitelistStore,
    connect_cluster,
)
from auditwhitelist.core.exceptions import StoreUnavailableError
from auditwhitelist.core.permissions import Permission
from auditwhitelist.core.resources import DataResource

SCHOOL = DataResource.for_keyspace("school")


def row(resource: str, operations: set[str] | None) -> SimpleNamespace:
    return SimpleNamespace(resource=resource, operations=operations)


class TestCassandraWhitelistStore:
    """Tests for CassandraWhitelistStore."""

    @pytest.fixture
    def session(self) -> MagicMock:
        """Return a mock session whose keyspace has no whitelist table yet."""
        session = MagicMock()
        session.cluster.metadata.keyspaces.get.return_value = None
        session.prepare.side_effect = lambda query: MagicMock(name=query, query_string=query)
        session.execute.return_value = []
        return session

    @pytest.fixture
    def waiter(self) -> MagicMock:
        """Return a mock schema alignment waiter."""
        waiter = MagicMock()
        waiter.wait = AsyncMock(return_value=True)
        return waiter

    @pytest.fixture
    def store(self, session: MagicMock, waiter: MagicMock) -> CassandraWhitelistStore:
        """Return a store over the mock session."""
        return CassandraWhitelistStore(session, schema_alignment=waiter)

    def executed_cql(self, session: MagicMock) -> list[str]:
        return [c.args[0] for c in session.execute.call_args_list if isinstance(c.args[0], str)]

    def prepared(self, store: CassandraWhitelistStore, name: str) -> MagicMock:
        return store._statements[name]

    async def test_setup_creates_table_and_waits(
        self, store: CassandraWhitelistStore, session: MagicMock, waiter: MagicMock
    ) -> None:
        """Test that setup creates keyspace and table, then waits for alignment."""
        await store.setup()

        cql = self.executed_cql(session)
        assert cql[0].startswith("CREATE KEYSPACE IF NOT EXISTS audit_auth")
        assert f"CREATE TABLE IF NOT EXISTS audit_auth.{TABLE_NAME}" in cql[1]
        assert "operations set<text>" in cql[1]
        assert "PRIMARY KEY (role, resource)" in cql[1]
        assert f"gc_grace_seconds = {GC_GRACE_SECONDS}" in cql[1]
        waiter.wait.assert_awaited_once()

    async def test_setup_skips_existing_table(
        self, store: CassandraWhitelistStore, session: MagicMock, waiter: MagicMock
    ) -> None:
        """Test that an existing table is neither created nor waited for."""
        session.cluster.metadata.keyspaces.get.return_value = MagicMock(
            tables={TABLE_NAME: MagicMock()}
        )

        await store.setup()

        assert self.executed_cql(session) == []
        waiter.wait.assert_not_awaited()

    async def test_setup_is_idempotent(
        self, store: CassandraWhitelistStore, session: MagicMock
    ) -> None:
        """Test that repeated setup prepares statements once."""
        await store.setup()
        await store.setup()

        assert session.prepare.call_count == 4

    async def test_add_uses_set_union(
        self, store: CassandraWhitelistStore, session: MagicMock
    ) -> None:
        """Test that grants are set additions at LOCAL_ONE."""
        await store.add_to_whitelist("bob", SCHOOL, frozenset({Permission.SELECT}))

        statement = self.prepared(store, "add")
        assert "operations = operations + ?" in statement.query_string
        statement.bind.assert_called_once_with(({"SELECT"}, "bob", "data/school"))
        bound = statement.bind.return_value
        assert bound.consistency_level == ConsistencyLevel.LOCAL_ONE
        session.execute.assert_called_with(bound)

    async def test_remove_uses_set_difference(self, store: CassandraWhitelistStore) -> None:
        """Test that revokes are set removals."""
        await store.remove_from_whitelist(
            "bob", SCHOOL, frozenset({Permission.SELECT, Permission.MODIFY})
        )

        statement = self.prepared(store, "remove")
        assert "operations = operations - ?" in statement.query_string
        statement.bind.assert_called_once_with(({"SELECT", "MODIFY"}, "bob", "data/school"))

    async def test_root_role_uses_quorum(self, store: CassandraWhitelistStore) -> None:
        """Test that the root role is read and written at QUORUM."""
        await store.delete_whitelist("cassandra")

        bound = self.prepared(store, "delete").bind.return_value
        assert bound.consistency_level == ConsistencyLevel.QUORUM

    async def test_configured_root_role(self, session: MagicMock) -> None:
        """Test that the QUORUM role is configurable."""
        store = CassandraWhitelistStore(session, root_role="admin")

        assert store.consistency_for_role("admin") == ConsistencyLevel.QUORUM
        assert store.consistency_for_role("cassandra") == ConsistencyLevel.LOCAL_ONE

    async def test_get_whitelist_skips_invalid_rows(
        self, store: CassandraWhitelistStore, session: MagicMock
    ) -> None:
        """Test that unparseable and empty rows are skipped."""
        await store.setup()
        session.execute.return_value = [
            row("data/school", {"SELECT", "MODIFY"}),
            row("tables/legacy", {"SELECT"}),
            row("data/other", {"TRUNCATE"}),
            row("data/empty", None),
            row("connections", set()),
        ]

        whitelist = await store.get_whitelist("bob")

        assert whitelist == {SCHOOL: frozenset({Permission.SELECT, Permission.MODIFY})}
        self.prepared(store, "load").bind.assert_called_once_with(("bob",))

    async def test_driver_failure_is_wrapped(
        self, store: CassandraWhitelistStore, session: MagicMock
    ) -> None:
        """Test that driver errors surface as StoreUnavailableError."""
        await store.setup()
        session.execute.side_effect = RuntimeError("NoHostAvailable")

        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.get_whitelist("bob")

        assert exc_info.value.retryable
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    async def test_close_shuts_down_executor(self, store: CassandraWhitelistStore) -> None:
        """Test that close stops the driver thread pool."""
        await store.close()

        assert store._executor._shutdown


class TestConnectCluster:
    """Tests for connect_cluster."""

    def test_connects_with_credentials(self) -> None:
        """Test that credentials produce an auth provider."""
        with patch("auditwhitelist.adapters.store.cassandra.Cluster") as cluster_cls:
            cluster, session = connect_cluster(["db1", "db2"], username="u", password="p")

        kwargs = cluster_cls.call_args.kwargs
        assert kwargs["contact_points"] == ["db1", "db2"]
        assert kwargs["auth_provider"] is not None
        assert session is cluster_cls.return_value.connect.return_value

    def test_connection_failure(self) -> None:
        """Test that connection errors surface as StoreUnavailableError."""
        with patch("auditwhitelist.adapters.store.cassandra.Cluster") as cluster_cls:
            cluster_cls.return_value.connect.side_effect = RuntimeError("unreachable")

            with pytest.raises(StoreUnavailableError):
                connect_cluster(["db1"])
