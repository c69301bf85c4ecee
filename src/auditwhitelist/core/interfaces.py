"""Protocol definitions for the collaborators of the whitelist core.

The core only depends on these protocols, never on concrete adapters.
Stores, authorizers, schema lookups and role graphs are all supplied by
whatever composes the decision engine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .domain_types import RoleWhitelist
    from .permissions import Permission
    from .resources import Resource


@runtime_checkable
class WhitelistStore(Protocol):
    """Interface for persistent whitelist storage.

    Implementations must provide:
    - Idempotent schema setup
    - Atomic per-row set add and set remove
    - A full load of one role's whitelist

    A row whose permission set is empty is equivalent to no row at all.
    """

    async def setup(self) -> None:
        """Create the backing schema if it does not exist yet."""
        ...

    async def get_whitelist(self, role: str) -> RoleWhitelist:
        """Load every whitelisted resource of a role.

        Args:
            role: Role name.

        Returns:
            Mapping of resource to the permissions whitelisted on it.

        Raises:
            StoreUnavailableError: If the store could not be read.
        """
        ...

    async def add_to_whitelist(
        self, role: str, resource: Resource, permissions: frozenset[Permission]
    ) -> None:
        """Union permissions into the (role, resource) row."""
        ...

    async def remove_from_whitelist(
        self, role: str, resource: Resource, permissions: frozenset[Permission]
    ) -> None:
        """Remove permissions from the (role, resource) row."""
        ...

    async def delete_whitelist(self, role: str) -> None:
        """Delete every row of a role."""
        ...


@runtime_checkable
class Authorizer(Protocol):
    """The host's permission check.

    Returns the permissions a role holds directly on one resource.
    Inheritance along the ascend chain is resolved by callers.
    """

    async def authorize(self, role: str, resource: Resource) -> frozenset[Permission]:
        """Return the permissions `role` holds on `resource`."""
        ...


@runtime_checkable
class SchemaResolver(Protocol):
    """Lookups against the current schema, used for view and index statements."""

    def find_view_base_table(self, keyspace: str, view: str) -> str | None:
        """Return the base table of a materialized view, or None if unknown."""
        ...

    def find_indexed_table(self, keyspace: str, index: str) -> str | None:
        """Return the table an index is defined on, or None if unknown."""
        ...


@runtime_checkable
class RoleResolver(Protocol):
    """Resolves role membership for whitelist inheritance."""

    async def get_roles(self, role: str) -> frozenset[str]:
        """Return every role granted to `role`, transitively, including itself."""
        ...


@runtime_checkable
class DecoratedAuthorizer(Authorizer, Protocol):
    """An authorizer that also exposes the result before decoration.

    `authorize` may report permissions that were added for whitelist
    delegation. `authorize_undecorated` reports only what was granted.
    """

    async def authorize_undecorated(
        self, role: str, resource: Resource
    ) -> frozenset[Permission]:
        """Return the permissions `role` was actually granted on `resource`."""
        ...
