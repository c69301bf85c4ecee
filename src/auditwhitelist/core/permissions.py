"""Permission enumeration shared by classification, storage and authorization."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class Permission(str, Enum):
    """Operations that can be audited and whitelisted.

    Declaration order is the canonical order used whenever a set of
    permissions is serialized.
    """

    CREATE = "CREATE"
    ALTER = "ALTER"
    DROP = "DROP"
    SELECT = "SELECT"
    MODIFY = "MODIFY"
    AUTHORIZE = "AUTHORIZE"
    EXECUTE = "EXECUTE"
    DESCRIBE = "DESCRIBE"

    @property
    def ordinal(self) -> int:
        """Position of the permission in declaration order."""
        return _ORDINALS[self]

    @classmethod
    def sorted(cls, permissions: Iterable[Permission]) -> list[Permission]:
        """Return permissions in declaration order."""
        return sorted(set(permissions), key=lambda p: p.ordinal)

    @classmethod
    def from_names(cls, names: Iterable[str]) -> frozenset[Permission]:
        """Convert permission names to permissions.

        Raises:
            ValueError: If a name is not a known permission.
        """
        return frozenset(cls(name.strip().upper()) for name in names)

    @classmethod
    def to_csv(cls, permissions: Iterable[Permission]) -> str:
        """Join permission names with commas, in declaration order."""
        return ",".join(p.value for p in cls.sorted(permissions))


_ORDINALS = {permission: index for index, permission in enumerate(Permission)}

ALL_PERMISSIONS: frozenset[Permission] = frozenset(Permission)
