"""Permission delegation guard.

Whitelist delegation relies on every role holding an implicit ALTER on
every role resource. That implicit ALTER must never be enough to change
a password, the login flag or the superuser flag, so those checks go
through the undecorated authorization result.
"""

from __future__ import annotations

import structlog

from auditwhitelist.core.domain_types import AuthenticatedRole, RoleOptions
from auditwhitelist.core.exceptions import UnauthorizedError
from auditwhitelist.core.interfaces import DecoratedAuthorizer
from auditwhitelist.core.permissions import Permission
from auditwhitelist.core.resources import (
    GrantResource,
    Resource,
    RoleResource,
    ascend_chain,
)

logger = structlog.get_logger()


class PermissionDelegationGuard:
    """Authorizes whitelist management and sensitive role alterations."""

    def __init__(self, authorizer: DecoratedAuthorizer) -> None:
        """Initialize the guard.

        Args:
            authorizer: Host authorizer exposing both the decorated and the
                undecorated permission check.
        """
        self.authorizer = authorizer

    async def check_whitelist_access(
        self, performer: AuthenticatedRole, role: str, resource: Resource
    ) -> None:
        """Check that `performer` may change the whitelist of `role`.

        The performer needs AUTHORIZE somewhere on the ascend chain of
        `grants/roles/<role>`.

        Args:
            performer: Role issuing the alteration.
            role: Role whose whitelist is being changed.
            resource: Resource being whitelisted, reported on failure.

        Raises:
            UnauthorizedError: If the performer lacks AUTHORIZE.
        """
        if performer.is_root:
            return

        target = GrantResource.wrap(RoleResource(role))
        if await self._holds(performer.name, target, Permission.AUTHORIZE, decorated=True):
            return

        logger.info(
            "whitelist_access_denied",
            performer=performer.name,
            role=role,
            resource=resource.name,
        )
        raise UnauthorizedError(
            performer.name,
            resource.name,
            message=(
                f"User {performer.name} is not authorized to whitelist access "
                f"to {resource.name} for {role}"
            ),
        )

    async def check_alter_role(
        self, performer: AuthenticatedRole, role: str, options: RoleOptions
    ) -> None:
        """Check the sensitive attributes of a role alteration.

        Changing one's own password is always allowed. Changing another
        role's password, or any role's login or superuser flag, requires a
        real ALTER grant on `roles/<role>` or on `roles`.

        Raises:
            UnauthorizedError: If the performer lacks the real ALTER grant.
        """
        if performer.is_root:
            return

        changes_password = options.password is not None and performer.name != role
        changes_flags = options.login is not None or options.superuser is not None
        if not changes_password and not changes_flags:
            return

        target = RoleResource(role)
        if await self._holds(performer.name, target, Permission.ALTER, decorated=False):
            return

        logger.info("role_alteration_denied", performer=performer.name, role=role)
        raise UnauthorizedError(performer.name, target.name)

    async def _holds(
        self, role: str, resource: Resource, permission: Permission, decorated: bool
    ) -> bool:
        check = self.authorizer.authorize if decorated else self.authorizer.authorize_undecorated
        for element in ascend_chain(resource):
            if permission in await check(role, element):
                return True
        return False
