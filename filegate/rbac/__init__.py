"""Policy model, validator and decision engine."""

from filegate.rbac.engine import Checker
from filegate.rbac.errors import (
    AuthorizationError,
    ConfigError,
    DenialReason,
    DeniedError,
    InvalidPermissionError,
    InvalidRoleError,
)
from filegate.rbac.policy import PolicyConfig, load_policy, validate_policy
from filegate.rbac.types import (
    Action,
    AuthSubject,
    AuthType,
    MachineResourceScope,
    Permission,
    PermissionMapping,
    Resource,
    Role,
    RoleDefinition,
)

__all__ = [
    "Action",
    "AuthSubject",
    "AuthType",
    "AuthorizationError",
    "Checker",
    "ConfigError",
    "DenialReason",
    "DeniedError",
    "InvalidPermissionError",
    "InvalidRoleError",
    "MachineResourceScope",
    "Permission",
    "PermissionMapping",
    "PolicyConfig",
    "Resource",
    "Role",
    "RoleDefinition",
    "load_policy",
    "validate_policy",
]
