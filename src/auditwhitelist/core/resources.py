"""Resource model - typed resource identifiers and their ascend chains.

A resource names something an operation acts on. Names are `/`-separated
paths rooted at one of `data`, `roles`, `functions`, `connections` or
`grants`. Every resource knows its parent, so a resource plus all of its
ancestors form an ascend chain that whitelist lookups walk leaf-first.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from auditwhitelist.core.exceptions import ResourceParseError
from auditwhitelist.core.permissions import ALL_PERMISSIONS, Permission

SEPARATOR = "/"
SIGNATURE_SEPARATOR = "|"
ARGUMENT_SEPARATOR = "^"

DATA_ROOT = "data"
ROLES_ROOT = "roles"
FUNCTIONS_ROOT = "functions"
CONNECTIONS_ROOT = "connections"
GRANTS_ROOT = "grants"

PRINTABLE_PREFIX = "AUDIT WHITELIST ON "

_SEGMENT = re.compile(r"^[^/\s]+$")
# Quoted role names may contain whitespace
_ROLE_NAME = re.compile(r"^(?=.*\S)[^/]+$")
_FUNCTION_NAME = re.compile(r"^[^/\s|^]+$")
_ARGUMENT_TYPE = re.compile(r"^[^/|^\s](?:[^/|^]*[^/|^\s])?$")

_DATA_PERMISSIONS = frozenset(
    {
        Permission.CREATE,
        Permission.ALTER,
        Permission.DROP,
        Permission.SELECT,
        Permission.MODIFY,
        Permission.AUTHORIZE,
    }
)
_TABLE_PERMISSIONS = frozenset(
    {
        Permission.ALTER,
        Permission.DROP,
        Permission.SELECT,
        Permission.MODIFY,
        Permission.AUTHORIZE,
    }
)
_ROLES_ROOT_PERMISSIONS = frozenset(
    {
        Permission.CREATE,
        Permission.ALTER,
        Permission.DROP,
        Permission.AUTHORIZE,
        Permission.DESCRIBE,
    }
)
_ROLE_PERMISSIONS = frozenset({Permission.ALTER, Permission.DROP, Permission.AUTHORIZE})
_FUNCTIONS_PERMISSIONS = frozenset(
    {
        Permission.CREATE,
        Permission.ALTER,
        Permission.DROP,
        Permission.AUTHORIZE,
        Permission.EXECUTE,
    }
)
_FUNCTION_PERMISSIONS = frozenset(
    {
        Permission.ALTER,
        Permission.DROP,
        Permission.AUTHORIZE,
        Permission.EXECUTE,
    }
)
# EXECUTE on the connection root represents "connect"
_CONNECTION_PERMISSIONS = frozenset({Permission.AUTHORIZE, Permission.EXECUTE})


def _check_segment(value: str, kind: str, pattern: re.Pattern[str] = _SEGMENT) -> None:
    if not isinstance(value, str) or not pattern.match(value):
        raise ResourceParseError(f'"{value}" is not a valid {kind} name', segment=str(value))


class Resource(ABC):
    """Base type for all resources."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Full `/`-separated name of the resource."""

    @property
    @abstractmethod
    def parent(self) -> Resource | None:
        """The next coarser resource, or None for a root."""

    @property
    @abstractmethod
    def applicable_permissions(self) -> frozenset[Permission]:
        """Permissions that can be granted or whitelisted on this resource."""

    @property
    def has_parent(self) -> bool:
        """Whether this resource is below a root."""
        return self.parent is not None

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class DataResource(Resource):
    """Keyspaces and tables: `data`, `data/ks`, `data/ks/table`."""

    keyspace: str | None = None
    table: str | None = None

    def __post_init__(self) -> None:
        if self.table is not None and self.keyspace is None:
            raise ResourceParseError("A table resource requires a keyspace", segment=self.table)
        if self.keyspace is not None:
            _check_segment(self.keyspace, "keyspace")
        if self.table is not None:
            _check_segment(self.table, "table")

    @classmethod
    def root(cls) -> DataResource:
        return cls()

    @classmethod
    def for_keyspace(cls, keyspace: str) -> DataResource:
        return cls(keyspace=keyspace)

    @classmethod
    def for_table(cls, keyspace: str, table: str) -> DataResource:
        return cls(keyspace=keyspace, table=table)

    @property
    def is_table_level(self) -> bool:
        return self.table is not None

    @property
    def name(self) -> str:
        parts = [DATA_ROOT, self.keyspace, self.table]
        return SEPARATOR.join(p for p in parts if p is not None)

    @property
    def parent(self) -> DataResource | None:
        if self.table is not None:
            return DataResource(keyspace=self.keyspace)
        if self.keyspace is not None:
            return DataResource()
        return None

    @property
    def applicable_permissions(self) -> frozenset[Permission]:
        return _TABLE_PERMISSIONS if self.table is not None else _DATA_PERMISSIONS


@dataclass(frozen=True)
class RoleResource(Resource):
    """Database roles: `roles`, `roles/name`."""

    role: str | None = None

    def __post_init__(self) -> None:
        if self.role is not None:
            _check_segment(self.role, "role", _ROLE_NAME)

    @classmethod
    def root(cls) -> RoleResource:
        return cls()

    @property
    def name(self) -> str:
        return ROLES_ROOT if self.role is None else f"{ROLES_ROOT}{SEPARATOR}{self.role}"

    @property
    def parent(self) -> RoleResource | None:
        return RoleResource() if self.role is not None else None

    @property
    def applicable_permissions(self) -> frozenset[Permission]:
        return _ROLE_PERMISSIONS if self.role is not None else _ROLES_ROOT_PERMISSIONS


@dataclass(frozen=True)
class FunctionResource(Resource):
    """User defined functions and aggregates.

    Names are `functions`, `functions/ks` and `functions/ks/name|t1^t2`,
    where the argument types disambiguate overloads.
    """

    keyspace: str | None = None
    function: str | None = None
    argument_types: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.function is not None and self.keyspace is None:
            raise ResourceParseError("A function resource requires a keyspace", segment=self.function)
        if self.argument_types and self.function is None:
            raise ResourceParseError("Argument types require a function name")
        if self.keyspace is not None:
            _check_segment(self.keyspace, "keyspace")
        if self.function is not None:
            _check_segment(self.function, "function", _FUNCTION_NAME)
        object.__setattr__(self, "argument_types", tuple(self.argument_types))
        for argument_type in self.argument_types:
            _check_segment(argument_type, "argument type", _ARGUMENT_TYPE)

    @classmethod
    def root(cls) -> FunctionResource:
        return cls()

    @classmethod
    def for_keyspace(cls, keyspace: str) -> FunctionResource:
        return cls(keyspace=keyspace)

    @classmethod
    def for_function(
        cls, keyspace: str, function: str, argument_types: tuple[str, ...] | list[str] = ()
    ) -> FunctionResource:
        return cls(keyspace=keyspace, function=function, argument_types=tuple(argument_types))

    @property
    def signature(self) -> str | None:
        """Function name and argument types, e.g. `avg|int^bigint`."""
        if self.function is None:
            return None
        return f"{self.function}{SIGNATURE_SEPARATOR}{ARGUMENT_SEPARATOR.join(self.argument_types)}"

    @property
    def name(self) -> str:
        parts = [FUNCTIONS_ROOT, self.keyspace, self.signature]
        return SEPARATOR.join(p for p in parts if p is not None)

    @property
    def parent(self) -> FunctionResource | None:
        if self.function is not None:
            return FunctionResource(keyspace=self.keyspace)
        if self.keyspace is not None:
            return FunctionResource()
        return None

    @property
    def applicable_permissions(self) -> frozenset[Permission]:
        return _FUNCTION_PERMISSIONS if self.function is not None else _FUNCTIONS_PERMISSIONS


@dataclass(frozen=True)
class ConnectionResource(Resource):
    """The act of authenticating. Only the `connections` root exists."""

    @classmethod
    def root(cls) -> ConnectionResource:
        return cls()

    @property
    def name(self) -> str:
        return CONNECTIONS_ROOT

    @property
    def parent(self) -> None:
        return None

    @property
    def applicable_permissions(self) -> frozenset[Permission]:
        return _CONNECTION_PERMISSIONS


@dataclass(frozen=True)
class GrantResource(Resource):
    """The right to manage audit exemptions for the wrapped resource.

    `grants/data/ks` is independent of `data/ks`: holding AUTHORIZE on the
    former lets a role manage exemptions without being able to use the
    latter. The bare `grants` root wraps nothing and stands for every
    resource.
    """

    wrapped: Resource | None = None

    def __post_init__(self) -> None:
        if isinstance(self.wrapped, GrantResource):
            raise ResourceParseError("Grant resources can not be nested", segment=GRANTS_ROOT)

    @classmethod
    def root(cls) -> GrantResource:
        return cls()

    @classmethod
    def wrap(cls, resource: Resource) -> GrantResource:
        return cls(wrapped=resource)

    @property
    def name(self) -> str:
        if self.wrapped is None:
            return GRANTS_ROOT
        return f"{GRANTS_ROOT}{SEPARATOR}{self.wrapped.name}"

    @property
    def parent(self) -> GrantResource | None:
        if self.wrapped is None:
            return None
        wrapped_parent = self.wrapped.parent
        if wrapped_parent is None:
            return GrantResource()
        return GrantResource(wrapped=wrapped_parent)

    @property
    def applicable_permissions(self) -> frozenset[Permission]:
        if self.wrapped is None:
            return ALL_PERMISSIONS
        return self.wrapped.applicable_permissions


def parse_resource(name: str) -> Resource:
    """Parse a resource name into a resource.

    Args:
        name: A `/`-separated resource name, e.g. `data/ks/table`.

    Returns:
        The matching resource.

    Raises:
        ResourceParseError: If the name is malformed; the error names the
            offending segment.
    """
    if not isinstance(name, str) or not name.strip():
        raise ResourceParseError("Empty resource name", segment="")

    name = name.strip()
    parts = name.split(SEPARATOR)
    root = parts[0]

    if root == GRANTS_ROOT:
        if len(parts) == 1:
            return GrantResource()
        return GrantResource(wrapped=parse_resource(name.split(SEPARATOR, 1)[1]))
    if root == DATA_ROOT:
        _check_depth(parts, 3)
        return DataResource(*parts[1:])
    if root == ROLES_ROOT:
        _check_depth(parts, 2)
        return RoleResource(*parts[1:])
    if root == FUNCTIONS_ROOT:
        _check_depth(parts, 3)
        if len(parts) < 3:
            return FunctionResource(*parts[1:])
        return _parse_function(parts[1], parts[2])
    if root == CONNECTIONS_ROOT:
        _check_depth(parts, 1)
        return ConnectionResource()

    raise ResourceParseError(f"Invalid resource type: {name}", segment=root)


def _check_depth(parts: list[str], max_depth: int) -> None:
    if len(parts) > max_depth:
        offending = parts[max_depth]
        raise ResourceParseError(
            f'Unexpected segment "{offending}" in {SEPARATOR.join(parts)}', segment=offending
        )


def _parse_function(keyspace: str, signature: str) -> FunctionResource:
    function, separator, arguments = signature.partition(SIGNATURE_SEPARATOR)
    argument_types: tuple[str, ...] = ()
    if separator and arguments:
        argument_types = tuple(arguments.split(ARGUMENT_SEPARATOR))
    return FunctionResource(keyspace=keyspace, function=function, argument_types=argument_types)


def ascend_chain(resource: Resource) -> list[Resource]:
    """Return the resource and all of its ancestors, leaf first."""
    chain: list[Resource] = []
    current: Resource | None = resource
    while current is not None:
        chain.append(current)
        current = current.parent
    return chain


def applicable_permissions(resource: Resource) -> frozenset[Permission]:
    """Return the permissions that apply to a resource."""
    return resource.applicable_permissions


def printable_name(resource: Resource) -> str:
    """Describe a whitelisted resource as a role custom-option key."""
    return PRINTABLE_PREFIX + resource.name
