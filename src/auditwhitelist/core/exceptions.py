"""Domain-specific exceptions.

All exceptions raised by the whitelist subsystem inherit from
AuditWhitelistError, so callers can catch every subsystem failure with a
single except clause while still handling specific error types.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes surfaced to requesters."""

    INVALID_RESOURCE = "INVALID_RESOURCE"
    INVALID_OPTION = "INVALID_OPTION"
    UNAUTHORIZED = "UNAUTHORIZED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


class AuditWhitelistError(Exception):
    """Base exception for all whitelist subsystem errors.

    Attributes:
        code: Standardized error code.
        message: Human-readable error message.
        details: Additional error details.
        retryable: Whether the operation can be retried.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ) -> None:
        """Initialize the error."""
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a dictionary for the requester."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details if self.details else None,
                "retryable": self.retryable,
            }
        }


class ResourceParseError(AuditWhitelistError):
    """A resource name could not be parsed.

    Raised by parse_resource and by resource constructors when a name
    segment is empty or contains reserved characters.
    """

    def __init__(self, message: str, segment: str | None = None) -> None:
        """Initialize resource parse error.

        Args:
            message: Error description.
            segment: The offending name segment, when known.
        """
        super().__init__(
            code=ErrorCode.INVALID_RESOURCE,
            message=message,
            details={"segment": segment} if segment is not None else None,
        )
        self.segment = segment


class InvalidOptionError(AuditWhitelistError):
    """A whitelist role option was rejected during validation.

    Covers malformed option keys, unparseable resource values, permissions
    that do not apply to the named resource, and requests carrying more
    than one whitelist option. Always raised before any store mutation.
    """

    def __init__(self, message: str, option: str | None = None) -> None:
        """Initialize invalid option error.

        Args:
            message: Error description.
            option: The offending option key or value.
        """
        super().__init__(
            code=ErrorCode.INVALID_OPTION,
            message=message,
            details={"option": option} if option is not None else None,
        )
        self.option = option


class UnauthorizedError(AuditWhitelistError):
    """The performer lacks the rights for a whitelist or role alteration."""

    def __init__(self, performer: str, resource: str, message: str | None = None) -> None:
        """Initialize unauthorized error.

        Args:
            performer: Name of the role attempting the change.
            resource: Name of the resource the change targets.
            message: Optional override of the default message.
        """
        super().__init__(
            code=ErrorCode.UNAUTHORIZED,
            message=message or f"User {performer} is not authorized to alter {resource}",
            details={"performer": performer, "resource": resource},
        )
        self.performer = performer
        self.resource = resource


class StoreUnavailableError(AuditWhitelistError):
    """The whitelist store could not be reached or rejected a request.

    Fatal to the request that triggered it. Treating a read failure as
    "not whitelisted" is left to the caller, which only leads to
    over-logging.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize store unavailable error."""
        super().__init__(
            code=ErrorCode.STORE_UNAVAILABLE,
            message=message,
            details=details,
            retryable=True,
        )
