"""Statement types - the parsed-operation interface consumed from the query engine.

The query engine parses raw query strings; this subsystem only sees the
result, described by a kind tag plus the identifiers each kind carries.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class StatementKind(str, Enum):
    """Statement kinds the classifier recognizes."""

    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    TRUNCATE = "truncate"
    USE = "use"
    BATCH = "batch"

    CREATE_KEYSPACE = "create_keyspace"
    ALTER_KEYSPACE = "alter_keyspace"
    DROP_KEYSPACE = "drop_keyspace"

    CREATE_TABLE = "create_table"
    ALTER_TABLE = "alter_table"
    DROP_TABLE = "drop_table"

    CREATE_TYPE = "create_type"
    ALTER_TYPE = "alter_type"
    DROP_TYPE = "drop_type"

    CREATE_INDEX = "create_index"
    DROP_INDEX = "drop_index"

    CREATE_TRIGGER = "create_trigger"
    DROP_TRIGGER = "drop_trigger"

    CREATE_VIEW = "create_view"
    ALTER_VIEW = "alter_view"
    DROP_VIEW = "drop_view"

    CREATE_FUNCTION = "create_function"
    DROP_FUNCTION = "drop_function"
    CREATE_AGGREGATE = "create_aggregate"
    DROP_AGGREGATE = "drop_aggregate"

    CREATE_ROLE = "create_role"
    ALTER_ROLE = "alter_role"
    DROP_ROLE = "drop_role"
    GRANT_ROLE = "grant_role"
    REVOKE_ROLE = "revoke_role"
    LIST_ROLES = "list_roles"

    GRANT_PERMISSIONS = "grant_permissions"
    REVOKE_PERMISSIONS = "revoke_permissions"
    LIST_PERMISSIONS = "list_permissions"

    AUTHENTICATION = "authentication"


class Statement(BaseModel):
    """One parsed database operation.

    Attributes:
        kind: Statement kind tag. Unknown tags are accepted and classified
            with the fail-open default.
        keyspace: Keyspace the statement targets.
        table: Table the statement targets (data, index and trigger kinds).
        name: Object name for views, indexes, functions and aggregates.
        argument_types: Ordered argument type tags of a function or aggregate.
        role: Target role for role DDL and role membership statements, or
            the grantee for list statements.
        resource: Resource name for permission grant/revoke/list statements.
        has_conditions: Whether a write carries a conditional clause.
        base_table: Declared base table of a materialized view.
        statements: Inner statements of a batch.
    """

    model_config = ConfigDict(frozen=True)

    kind: str
    keyspace: str | None = None
    table: str | None = None
    name: str | None = None
    argument_types: tuple[str, ...] = ()
    role: str | None = None
    resource: str | None = None
    has_conditions: bool = False
    base_table: str | None = None
    statements: tuple[Statement, ...] = Field(default_factory=tuple)

    @property
    def known_kind(self) -> StatementKind | None:
        """The kind as a StatementKind, or None if the tag is unrecognized."""
        try:
            return StatementKind(self.kind.lower())
        except ValueError:
            return None


Statement.model_rebuild()
