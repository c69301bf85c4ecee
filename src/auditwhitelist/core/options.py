"""Parsing of whitelist role options.

Whitelist changes arrive as custom role options, for example::

    ALTER ROLE bob WITH OPTIONS = {'grant_audit_whitelist_for_select': 'data/school'}

The key names the operation and the permission, the value names the
resource. Parsing is stateless and performs no I/O.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from auditwhitelist.core.exceptions import InvalidOptionError, ResourceParseError
from auditwhitelist.core.permissions import Permission
from auditwhitelist.core.resources import (
    CONNECTIONS_ROOT,
    DATA_ROOT,
    FUNCTIONS_ROOT,
    ROLES_ROOT,
    SEPARATOR,
    Resource,
    applicable_permissions,
    parse_resource,
)

ALL_OPERATIONS = "all"
OPTION_PATTERN = re.compile(
    r"^(grant|revoke)_audit_whitelist_for_"
    r"(all|create|alter|drop|select|modify|authorize|execute|describe)$"
)
WHITELISTABLE_ROOTS = frozenset({DATA_ROOT, ROLES_ROOT, CONNECTIONS_ROOT, FUNCTIONS_ROOT})

_WHITESPACE = re.compile(r"\s+")


class WhitelistOperation(str, Enum):
    """Direction of a whitelist change."""

    GRANT = "grant"
    REVOKE = "revoke"


@dataclass(frozen=True)
class WhitelistRequest:
    """A parsed whitelist option.

    Attributes:
        operation: Whether permissions are added or removed.
        permissions: The permissions being changed.
        resource: The resource the permissions apply to.
    """

    operation: WhitelistOperation
    permissions: frozenset[Permission]
    resource: Resource


def normalize_option_key(key: str) -> str:
    """Trim, replace whitespace runs with `_` and lower-case an option key."""
    return _WHITESPACE.sub("_", key.strip()).lower()


class WhitelistOptionParser:
    """Parses one `(key, value)` whitelist option into a request."""

    def parse(self, key: str, value: str) -> WhitelistRequest:
        """Parse a whitelist option.

        Args:
            key: Option key, e.g. `grant_audit_whitelist_for_select`.
            value: Resource name, e.g. `data/school/students`.

        Returns:
            The parsed request. `all` expands to every permission
            applicable to the resource.

        Raises:
            InvalidOptionError: If the key is unknown, or the value can not
                be parsed or names a resource that can not be whitelisted.
        """
        match = OPTION_PATTERN.match(normalize_option_key(key))
        if match is None:
            raise InvalidOptionError(f"Invalid whitelist operation option: {key}", option=key)

        operation = WhitelistOperation(match.group(1))
        resource = self.parse_resource(value)

        target = match.group(2)
        if target == ALL_OPERATIONS:
            permissions = applicable_permissions(resource)
        else:
            permissions = frozenset({Permission(target.upper())})

        return WhitelistRequest(operation=operation, permissions=permissions, resource=resource)

    def parse_resource(self, value: str) -> Resource:
        """Parse the resource named by an option value.

        Raises:
            InvalidOptionError: If the name is malformed or not rooted at a
                whitelistable resource kind.
        """
        try:
            resource = parse_resource(value)
        except ResourceParseError as e:
            raise InvalidOptionError(
                f"Unable to parse whitelisted resource [{value}]: {e.message}", option=value
            ) from e

        root = resource.name.split(SEPARATOR, 1)[0]
        if root not in WHITELISTABLE_ROOTS:
            raise InvalidOptionError(
                f"Resource [{value}] can not be whitelisted, expected one of "
                f"{', '.join(sorted(WHITELISTABLE_ROOTS))}",
                option=value,
            )
        return resource


def verify_contract(permissions: frozenset[Permission], resource: Resource) -> None:
    """Reject permissions that do not apply to the resource.

    Raises:
        InvalidOptionError: Naming the inapplicable permissions.
    """
    inapplicable = permissions - applicable_permissions(resource)
    if inapplicable:
        names = ", ".join(p.value for p in Permission.sorted(inapplicable))
        raise InvalidOptionError(
            f"Operation(s) [{names}] are not applicable on {resource.name}",
            option=resource.name,
        )
