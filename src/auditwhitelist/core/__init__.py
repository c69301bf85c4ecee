"""Core domain - resources, classification, decisions and delegation rules."""

from .classifier import StatementClassifier
from .decision import AuditDecisionEngine
from .domain_types import (
    AuthenticatedRole,
    Classification,
    RoleOptions,
    RoleWhitelist,
    Verdict,
)
from .exceptions import (
    AuditWhitelistError,
    ErrorCode,
    InvalidOptionError,
    ResourceParseError,
    StoreUnavailableError,
    UnauthorizedError,
)
from .guard import PermissionDelegationGuard
from .interfaces import (
    Authorizer,
    DecoratedAuthorizer,
    RoleResolver,
    SchemaResolver,
    WhitelistStore,
)
from .manager import WhitelistManager
from .options import WhitelistOperation, WhitelistOptionParser, WhitelistRequest
from .permissions import ALL_PERMISSIONS, Permission
from .resources import (
    ConnectionResource,
    DataResource,
    FunctionResource,
    GrantResource,
    Resource,
    RoleResource,
    ascend_chain,
    parse_resource,
)
from .statements import Statement, StatementKind

__all__ = [
    # Model
    "Permission",
    "ALL_PERMISSIONS",
    "Resource",
    "DataResource",
    "RoleResource",
    "FunctionResource",
    "ConnectionResource",
    "GrantResource",
    "parse_resource",
    "ascend_chain",
    "Statement",
    "StatementKind",
    # Domain types
    "AuthenticatedRole",
    "Classification",
    "RoleOptions",
    "RoleWhitelist",
    "Verdict",
    # Exceptions
    "AuditWhitelistError",
    "ErrorCode",
    "InvalidOptionError",
    "ResourceParseError",
    "StoreUnavailableError",
    "UnauthorizedError",
    # Interfaces
    "Authorizer",
    "DecoratedAuthorizer",
    "RoleResolver",
    "SchemaResolver",
    "WhitelistStore",
    # Services
    "StatementClassifier",
    "AuditDecisionEngine",
    "PermissionDelegationGuard",
    "WhitelistManager",
    "WhitelistOperation",
    "WhitelistOptionParser",
    "WhitelistRequest",
]
