"""Domain types - immutable values passed between the whitelist components."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict

from auditwhitelist.core.permissions import Permission
from auditwhitelist.core.resources import Resource

RoleWhitelist = dict[Resource, frozenset[Permission]]


class Verdict(str, Enum):
    """Outcome of an audit decision."""

    LOG = "log"
    SUPPRESS = "suppress"


@dataclass(frozen=True)
class AuthenticatedRole:
    """Identity of the role performing an operation.

    Attributes:
        name: Role name as produced by the login exchange.
        is_root: Whether this is the root administrator, which bypasses
            every authorization check in this subsystem.
    """

    name: str
    is_root: bool = False


@dataclass(frozen=True)
class Classification:
    """Permissions an operation requires and the resource it acts on.

    Attributes:
        permissions: Every permission that must be whitelisted to suppress.
        resource: The most specific resource the operation targets.
        known_operation: False when the operation could not be recognized
            and the fail-open default was applied.
    """

    permissions: frozenset[Permission]
    resource: Resource
    known_operation: bool = True


class RoleOptions(BaseModel):
    """Attributes supplied in one role alteration request.

    Attributes:
        password: New password, if being changed.
        login: New login flag, if being changed.
        superuser: New administrator flag, if being changed.
        options: Custom options map carrying whitelist operations.
    """

    model_config = ConfigDict(frozen=True)

    password: str | None = None
    login: bool | None = None
    superuser: bool | None = None
    options: dict[str, str] | None = None

    @property
    def has_custom_options(self) -> bool:
        return self.options is not None

