"""Audit decision engine.

Decides, per operation, whether the operation is logged or suppressed:

1. Classify the statement into required permissions and a resource
2. Load the acting role's whitelist (and those of its granted roles)
3. Walk the resource's ascend chain, leaf first

An operation is suppressed only when every required permission is
whitelisted somewhere along the chain. Partial coverage is logged.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog

from auditwhitelist.core.classifier import AUTHENTICATION, StatementClassifier
from auditwhitelist.core.domain_types import Classification, RoleWhitelist, Verdict
from auditwhitelist.core.interfaces import RoleResolver
from auditwhitelist.core.permissions import Permission
from auditwhitelist.core.resources import ascend_chain
from auditwhitelist.core.statements import Statement

logger = structlog.get_logger()


class WhitelistSource(Protocol):
    """Anything that returns a role's whitelist, typically the cache."""

    async def get(self, role: str) -> RoleWhitelist:
        """Return the whitelist of a role."""
        ...


class AuditDecisionEngine:
    """Decides whether operations are audited.

    Attributes:
        cache: Source of role whitelists.
        classifier: Maps statements to permissions and resources.
        role_resolver: Optional role graph. When set, whitelists of every
            role granted to the acting role count toward coverage.
    """

    def __init__(
        self,
        cache: WhitelistSource,
        classifier: StatementClassifier,
        role_resolver: RoleResolver | None = None,
    ) -> None:
        """Initialize the engine."""
        self.cache = cache
        self.classifier = classifier
        self.role_resolver = role_resolver

    async def decide_for_operation(self, role: str, statement: Statement) -> Verdict:
        """Decide whether one operation is logged.

        Args:
            role: Name of the acting role.
            statement: The parsed operation. A batch is decided as a whole
                against its container classification.

        Raises:
            StoreUnavailableError: If the whitelist could not be loaded.
        """
        classification = self.classifier.classify(statement)
        return await self._decide(role, classification)

    async def decide_for_authentication(self, role: str) -> Verdict:
        """Decide whether a login attempt by `role` is logged."""
        return await self._decide(role, AUTHENTICATION)

    async def decide_for_batch(self, role: str, statement: Statement) -> list[Verdict]:
        """Decide each inner statement of a batch independently."""
        classifications = self.classifier.classify_batch(statement)
        return [await self._decide(role, c) for c in classifications]

    async def is_whitelisted(self, role: str, classification: Classification) -> bool:
        """Whether every required permission is covered along the ascend chain.

        Permissions may be covered by different ancestors and, with a role
        resolver, by different granted roles.
        """
        required = classification.permissions
        if not required:
            return False

        whitelists = await self._load_whitelists(role)

        covered: set[Permission] = set()
        for resource in ascend_chain(classification.resource):
            for whitelist in whitelists:
                covered.update(whitelist.get(resource, ()))
            if required <= covered:
                return True

        if covered & required:
            logger.debug(
                "partial_whitelist_coverage",
                role=role,
                resource=classification.resource.name,
                required=Permission.to_csv(required),
                covered=Permission.to_csv(covered & required),
            )
        return False

    async def _decide(self, role: str, classification: Classification) -> Verdict:
        if await self.is_whitelisted(role, classification):
            return Verdict.SUPPRESS
        return Verdict.LOG

    async def _load_whitelists(self, role: str) -> list[RoleWhitelist]:
        if self.role_resolver is None:
            return [await self.cache.get(role)]

        roles = set(await self.role_resolver.get_roles(role))
        roles.add(role)
        return list(await asyncio.gather(*(self.cache.get(r) for r in sorted(roles))))
