"""Authorization adapters."""

from .authorizer import AuditAuthorizer, StaticAuthorizer

__all__ = ["AuditAuthorizer", "StaticAuthorizer"]
