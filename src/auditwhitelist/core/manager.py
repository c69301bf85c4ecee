"""Whitelist manager - the administrative flow for role alterations.

An alteration is validated completely before anything is written:
sensitive attributes are checked first, then the single whitelist option
is parsed, checked against the resource contract and authorized. Only
then is the store mutated and the role's cache entry invalidated.
"""

from __future__ import annotations

from typing import Protocol

import structlog

from auditwhitelist.core.domain_types import AuthenticatedRole, RoleOptions
from auditwhitelist.core.exceptions import InvalidOptionError
from auditwhitelist.core.guard import PermissionDelegationGuard
from auditwhitelist.core.interfaces import WhitelistStore
from auditwhitelist.core.options import (
    WhitelistOperation,
    WhitelistOptionParser,
    WhitelistRequest,
    verify_contract,
)
from auditwhitelist.core.permissions import Permission
from auditwhitelist.core.resources import printable_name

logger = structlog.get_logger()


class InvalidatingCache(Protocol):
    """The part of the whitelist cache the manager needs."""

    def invalidate(self, role: str) -> None:
        """Drop the cached whitelist of a role."""
        ...


class WhitelistManager:
    """Applies whitelist options carried by role alterations.

    Attributes:
        store: Persistent whitelist store.
        parser: Option parser.
        guard: Delegation guard.
        cache: Optional cache to invalidate after changes.
    """

    def __init__(
        self,
        store: WhitelistStore,
        parser: WhitelistOptionParser,
        guard: PermissionDelegationGuard,
        cache: InvalidatingCache | None = None,
    ) -> None:
        """Initialize the manager."""
        self.store = store
        self.parser = parser
        self.guard = guard
        self.cache = cache

    async def setup(self) -> None:
        """Prepare the backing store."""
        await self.store.setup()

    def validate_create_role(self, options: RoleOptions) -> None:
        """Reject whitelist options on role creation.

        Raises:
            InvalidOptionError: If any custom option is supplied.
        """
        if options.options:
            raise InvalidOptionError(
                "Whitelist options are not supported in CREATE ROLE statements",
                option=next(iter(options.options)),
            )

    async def alter_role(
        self, performer: AuthenticatedRole, role: str, options: RoleOptions
    ) -> WhitelistRequest | None:
        """Validate and apply a role alteration.

        Args:
            performer: Role issuing the alteration.
            role: Role being altered.
            options: Requested attribute changes.

        Returns:
            The applied whitelist request, or None if the alteration carried
            no whitelist option.

        Raises:
            UnauthorizedError: If the performer may not make the change.
            InvalidOptionError: If the whitelist option is malformed.
        """
        await self.guard.check_alter_role(performer, role, options)

        if not options.has_custom_options:
            return None

        request = await self._validate(performer, role, options.options)

        if request.operation is WhitelistOperation.GRANT:
            await self.store.add_to_whitelist(role, request.resource, request.permissions)
        else:
            await self.store.remove_from_whitelist(role, request.resource, request.permissions)

        if self.cache is not None:
            self.cache.invalidate(role)

        logger.info(
            "audit_whitelist_altered",
            performer=performer.name,
            role=role,
            operation=request.operation.value,
            resource=request.resource.name,
            permissions=Permission.to_csv(request.permissions),
        )
        return request

    async def get_role_whitelist(self, role: str) -> dict[str, str]:
        """Describe a role's whitelist as custom options.

        Returns:
            Mapping of `AUDIT WHITELIST ON <resource>` to the comma joined
            permission names, ordered by resource name.
        """
        whitelist = await self.store.get_whitelist(role)
        return {
            printable_name(resource): Permission.to_csv(permissions)
            for resource, permissions in sorted(whitelist.items(), key=lambda i: i[0].name)
            if permissions
        }

    async def drop_role(self, role: str) -> None:
        """Delete every whitelist entry of a dropped role."""
        await self.store.delete_whitelist(role)
        if self.cache is not None:
            self.cache.invalidate(role)
        logger.info("audit_whitelist_dropped", role=role)

    async def _validate(
        self, performer: AuthenticatedRole, role: str, options: dict[str, str]
    ) -> WhitelistRequest:
        if len(options) != 1:
            raise InvalidOptionError(
                "Exactly one whitelist option is supported in ALTER ROLE statements",
                option=", ".join(sorted(options)),
            )

        key, value = next(iter(options.items()))
        request = self.parser.parse(key, value)
        verify_contract(request.permissions, request.resource)
        await self.guard.check_whitelist_access(performer, role, request.resource)
        return request
