"""In-memory whitelist store for testing and single-process composition."""

from __future__ import annotations

from auditwhitelist.core.domain_types import RoleWhitelist
from auditwhitelist.core.permissions import Permission
from auditwhitelist.core.resources import Resource


class InMemoryWhitelistStore:
    """Whitelist store over a dict.

    Rows whose permission set becomes empty are deleted, so an empty row
    is never observable.

    Attributes:
        rows: Map of role to resource to whitelisted permissions.
        loads: Roles in the order their whitelists were loaded.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self.rows: dict[str, dict[Resource, frozenset[Permission]]] = {}
        self.loads: list[str] = []
        self.setup_calls = 0

    async def setup(self) -> None:
        """No schema to create."""
        self.setup_calls += 1

    async def get_whitelist(self, role: str) -> RoleWhitelist:
        self.loads.append(role)
        return dict(self.rows.get(role, {}))

    async def add_to_whitelist(
        self, role: str, resource: Resource, permissions: frozenset[Permission]
    ) -> None:
        role_rows = self.rows.setdefault(role, {})
        role_rows[resource] = role_rows.get(resource, frozenset()) | permissions
        self._prune(role, resource)

    async def remove_from_whitelist(
        self, role: str, resource: Resource, permissions: frozenset[Permission]
    ) -> None:
        role_rows = self.rows.get(role)
        if not role_rows or resource not in role_rows:
            return
        role_rows[resource] = role_rows[resource] - permissions
        self._prune(role, resource)

    async def delete_whitelist(self, role: str) -> None:
        self.rows.pop(role, None)

    def load_count(self, role: str) -> int:
        """Number of times the whitelist of a role was loaded."""
        return self.loads.count(role)

    def _prune(self, role: str, resource: Resource) -> None:
        role_rows = self.rows[role]
        if not role_rows[resource]:
            del role_rows[resource]
        if not role_rows:
            del self.rows[role]
