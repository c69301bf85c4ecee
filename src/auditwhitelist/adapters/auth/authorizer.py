"""Authorizer decorator granting implicit ALTER on role resources.

Holding ALTER on `roles/<name>` is what lets a role alter the options of
another role, which is where whitelist changes are carried. The decorator
reports ALTER on every role-instance resource so delegation only needs
AUTHORIZE on the grant-wrapped role. Password and flag changes are
checked against `authorize_undecorated`, which reports what was actually
granted.
"""

from __future__ import annotations

import structlog

from auditwhitelist.core.interfaces import Authorizer
from auditwhitelist.core.permissions import Permission
from auditwhitelist.core.resources import Resource, RoleResource

logger = structlog.get_logger()


class AuditAuthorizer:
    """Decorates a host authorizer.

    Attributes:
        wrapped: The host's authorizer.
    """

    def __init__(self, wrapped: Authorizer) -> None:
        """Initialize the decorator.

        Args:
            wrapped: The host's authorizer.
        """
        self.wrapped = wrapped
        logger.info("audit_authorization_decorator_enabled")

    async def authorize(self, role: str, resource: Resource) -> frozenset[Permission]:
        """Return the wrapped result, plus ALTER on role-instance resources."""
        permissions = await self.wrapped.authorize(role, resource)
        if isinstance(resource, RoleResource) and resource.has_parent:
            return frozenset(permissions) | {Permission.ALTER}
        return frozenset(permissions)

    async def authorize_undecorated(
        self, role: str, resource: Resource
    ) -> frozenset[Permission]:
        """Return the wrapped result unchanged."""
        return frozenset(await self.wrapped.authorize(role, resource))


class StaticAuthorizer:
    """Authorizer backed by an in-memory grant table.

    Used for single-process composition and tests.

    Attributes:
        grants: Map of role name to resource to granted permissions.
    """

    def __init__(
        self, grants: dict[str, dict[Resource, frozenset[Permission]]] | None = None
    ) -> None:
        self.grants: dict[str, dict[Resource, frozenset[Permission]]] = {}
        for role, resources in (grants or {}).items():
            for resource, permissions in resources.items():
                self.grant(role, resource, permissions)

    def grant(self, role: str, resource: Resource, permissions: frozenset[Permission]) -> None:
        """Add permissions to a role on one resource."""
        current = self.grants.setdefault(role, {}).get(resource, frozenset())
        self.grants[role][resource] = current | frozenset(permissions)

    async def authorize(self, role: str, resource: Resource) -> frozenset[Permission]:
        return self.grants.get(role, {}).get(resource, frozenset())
