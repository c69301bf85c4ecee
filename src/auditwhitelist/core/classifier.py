"""Statement classifier - maps a parsed operation to permissions and a resource.

Every mapping fails open toward auditing: a statement that can not be
recognized, or whose mapping fails, is classified with every permission
applicable at the data root, so only a whitelist covering the whole data
root can suppress it.
"""

from __future__ import annotations

import structlog

from auditwhitelist.core.domain_types import Classification
from auditwhitelist.core.interfaces import SchemaResolver
from auditwhitelist.core.permissions import Permission
from auditwhitelist.core.resources import (
    ConnectionResource,
    DataResource,
    FunctionResource,
    Resource,
    RoleResource,
    parse_resource,
)
from auditwhitelist.core.statements import Statement, StatementKind

logger = structlog.get_logger()

_CREATE = frozenset({Permission.CREATE})
_ALTER = frozenset({Permission.ALTER})
_DROP = frozenset({Permission.DROP})
_SELECT = frozenset({Permission.SELECT})
_MODIFY = frozenset({Permission.MODIFY})
_SELECT_MODIFY = frozenset({Permission.SELECT, Permission.MODIFY})
_AUTHORIZE = frozenset({Permission.AUTHORIZE})
_DESCRIBE = frozenset({Permission.DESCRIBE})
_EXECUTE = frozenset({Permission.EXECUTE})

_KEYSPACE_DDL = {
    StatementKind.CREATE_KEYSPACE: _CREATE,
    StatementKind.ALTER_KEYSPACE: _ALTER,
    StatementKind.DROP_KEYSPACE: _DROP,
    StatementKind.CREATE_TYPE: _CREATE,
    StatementKind.ALTER_TYPE: _ALTER,
    StatementKind.DROP_TYPE: _DROP,
}
_TABLE_DDL = {
    StatementKind.CREATE_TABLE: _CREATE,
    StatementKind.ALTER_TABLE: _ALTER,
    StatementKind.DROP_TABLE: _DROP,
}
_ROLE_DDL = {
    StatementKind.CREATE_ROLE: _CREATE,
    StatementKind.ALTER_ROLE: _ALTER,
    StatementKind.DROP_ROLE: _DROP,
}
_WRITES = {StatementKind.INSERT, StatementKind.UPDATE, StatementKind.DELETE}
_VIEWS = {StatementKind.CREATE_VIEW, StatementKind.ALTER_VIEW, StatementKind.DROP_VIEW}
_TRIGGERS = {StatementKind.CREATE_TRIGGER, StatementKind.DROP_TRIGGER}
_FUNCTION_CREATES = {StatementKind.CREATE_FUNCTION, StatementKind.CREATE_AGGREGATE}
_FUNCTION_DROPS = {StatementKind.DROP_FUNCTION, StatementKind.DROP_AGGREGATE}
_ROLE_MEMBERSHIP = {StatementKind.GRANT_ROLE, StatementKind.REVOKE_ROLE}
_PERMISSION_MANAGEMENT = {
    StatementKind.GRANT_PERMISSIONS,
    StatementKind.REVOKE_PERMISSIONS,
    StatementKind.LIST_PERMISSIONS,
}


def unknown_classification() -> Classification:
    """Fail-open classification for operations that can not be mapped."""
    root = DataResource.root()
    return Classification(
        permissions=root.applicable_permissions,
        resource=root,
        known_operation=False,
    )


AUTHENTICATION = Classification(permissions=_EXECUTE, resource=ConnectionResource.root())


class StatementClassifier:
    """Classifies statements into required permissions and a target resource.

    Attributes:
        schema_resolver: Optional lookup used when a view or index statement
            does not carry the table it affects.
    """

    def __init__(self, schema_resolver: SchemaResolver | None = None) -> None:
        """Initialize the classifier.

        Args:
            schema_resolver: Lookup for view base tables and indexed tables.
        """
        self.schema_resolver = schema_resolver

    def classify(self, statement: Statement) -> Classification:
        """Classify one statement.

        Never raises. Unrecognized kinds and mapping failures return the
        fail-open classification.
        """
        kind = statement.known_kind
        if kind is None:
            logger.warning("unrecognized_statement_kind", kind=statement.kind)
            return unknown_classification()

        try:
            return self._classify(kind, statement)
        except Exception as e:
            logger.debug("statement_classification_failed", kind=kind.value, error=str(e))
            return unknown_classification()

    def classify_batch(self, statement: Statement) -> list[Classification]:
        """Classify each inner statement of a batch independently."""
        return [self.classify(inner) for inner in statement.statements]

    def _classify(self, kind: StatementKind, statement: Statement) -> Classification:
        if kind is StatementKind.SELECT:
            return Classification(_SELECT, self._table(statement))
        if kind is StatementKind.TRUNCATE:
            return Classification(_MODIFY, self._table(statement))
        if kind is StatementKind.USE:
            return Classification(DataResource.root().applicable_permissions, self._keyspace(statement))
        if kind is StatementKind.BATCH:
            return Classification(_SELECT_MODIFY, DataResource.root())
        if kind is StatementKind.AUTHENTICATION:
            return AUTHENTICATION
        if kind is StatementKind.CREATE_INDEX:
            return Classification(_ALTER, self._table(statement))
        if kind is StatementKind.DROP_INDEX:
            return Classification(_ALTER, self._indexed_table(statement))
        if kind is StatementKind.LIST_ROLES:
            role = RoleResource(statement.role) if statement.role else RoleResource.root()
            return Classification(_DESCRIBE, role)
        if kind in _KEYSPACE_DDL:
            return Classification(_KEYSPACE_DDL[kind], self._keyspace(statement))
        if kind in _TABLE_DDL:
            return Classification(_TABLE_DDL[kind], self._table(statement))
        if kind in _ROLE_DDL:
            return Classification(_ROLE_DDL[kind], self._role(statement))
        if kind in _WRITES:
            permissions = _SELECT_MODIFY if statement.has_conditions else _MODIFY
            return Classification(permissions, self._table(statement))
        if kind in _VIEWS:
            return Classification(_ALTER, self._view_base(statement))
        if kind in _TRIGGERS:
            return Classification(_ALTER, self._table(statement))
        if kind in _FUNCTION_CREATES:
            return Classification(_CREATE, FunctionResource.for_keyspace(_require(statement.keyspace)))
        if kind in _FUNCTION_DROPS:
            return Classification(_DROP, self._function(statement))
        if kind in _ROLE_MEMBERSHIP:
            return Classification(_AUTHORIZE, self._role(statement))
        if kind in _PERMISSION_MANAGEMENT:
            return Classification(_AUTHORIZE, self._managed_resource(statement))

        raise ValueError(f"No mapping for statement kind {kind.value}")

    @staticmethod
    def _keyspace(statement: Statement) -> DataResource:
        return DataResource.for_keyspace(_require(statement.keyspace))

    @staticmethod
    def _table(statement: Statement) -> DataResource:
        return DataResource.for_table(_require(statement.keyspace), _require(statement.table))

    @staticmethod
    def _role(statement: Statement) -> RoleResource:
        return RoleResource(_require(statement.role))

    @staticmethod
    def _function(statement: Statement) -> FunctionResource:
        return FunctionResource.for_function(
            _require(statement.keyspace), _require(statement.name), statement.argument_types
        )

    @staticmethod
    def _managed_resource(statement: Statement) -> Resource:
        if statement.resource is None:
            return DataResource.root()
        return parse_resource(statement.resource)

    def _view_base(self, statement: Statement) -> DataResource:
        keyspace = _require(statement.keyspace)
        base_table = statement.base_table
        if base_table is None and self.schema_resolver is not None and statement.name:
            base_table = self.schema_resolver.find_view_base_table(keyspace, statement.name)
        if base_table is None:
            return DataResource.for_keyspace(keyspace)
        return DataResource.for_table(keyspace, base_table)

    def _indexed_table(self, statement: Statement) -> DataResource:
        keyspace = _require(statement.keyspace)
        table = statement.table
        if table is None and self.schema_resolver is not None and statement.name:
            table = self.schema_resolver.find_indexed_table(keyspace, statement.name)
        if table is None:
            return DataResource.for_keyspace(keyspace)
        return DataResource.for_table(keyspace, table)


def _require(value: str | None) -> str:
    if value is None:
        raise ValueError("Statement is missing a required identifier")
    return value
