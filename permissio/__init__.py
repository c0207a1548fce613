"""Permissio - client-side permission checks with role inheritance and wildcard grants."""

__version__ = "0.1.0"

from permissio.api import PermissioApi
from permissio.config import PermissioConfig, resolve_config
from permissio.core import Permissio
from permissio.dependencies import PermissioAuthz, PermissioUser, require_permission
from permissio.exceptions import (
    AccessDeniedError,
    ConfigurationError,
    Forbidden,
    PermissioApiError,
    PermissioError,
    ScopeResolutionError,
)
from permissio.models import (
    BulkCheckResult,
    CheckDecision,
    CheckRequest,
    CheckResource,
    CheckUser,
    DecisionDebug,
    PermissionsQuery,
    PermissionsResult,
    Role,
    RoleAssignment,
    RoleGrant,
    SyncUserRequest,
    User,
)
from permissio.permissions import is_granted, resolve_permissions

__all__ = [
    "Permissio",
    "PermissioApi",
    "PermissioAuthz",
    "PermissioConfig",
    "PermissioUser",
    "resolve_config",
    "require_permission",
    "is_granted",
    "resolve_permissions",
    "BulkCheckResult",
    "CheckDecision",
    "CheckRequest",
    "CheckResource",
    "CheckUser",
    "DecisionDebug",
    "PermissionsQuery",
    "PermissionsResult",
    "Role",
    "RoleAssignment",
    "RoleGrant",
    "SyncUserRequest",
    "User",
    "PermissioError",
    "ConfigurationError",
    "ScopeResolutionError",
    "PermissioApiError",
    "AccessDeniedError",
    "Forbidden",
]
