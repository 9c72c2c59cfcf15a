"""Declarative policy definition and its validator.

A :class:`PolicyConfig` is an immutable value. :func:`validate_policy`
checks its referential integrity and raises :class:`ConfigError` naming
the first offending entry. There is no partial policy: any error is fatal
to startup.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from filegate.rbac.errors import ConfigError
from filegate.rbac.types import MachineResourceScope, PermissionMapping, RoleDefinition


class PolicyConfig(BaseModel):
    """Roles, permissions, resources, actions and how they relate."""

    model_config = ConfigDict(frozen=True)

    roles: tuple[RoleDefinition, ...] = Field(default_factory=tuple)
    permissions: tuple[str, ...] = Field(default_factory=tuple)
    resources: tuple[str, ...] = Field(default_factory=tuple)
    actions: tuple[str, ...] = Field(default_factory=tuple)
    capabilities: dict[str, dict[str, tuple[str, ...]]] = Field(default_factory=dict)
    permission_mapping: tuple[PermissionMapping, ...] = Field(default_factory=tuple)
    machine_scope: MachineResourceScope | None = None


def _unique_names(values: tuple[str, ...], kind: str) -> set[str]:
    seen: set[str] = set()
    for value in values:
        if not value:
            raise ConfigError(f"rbac config: {kind} must not be empty")
        if value in seen:
            raise ConfigError(f"rbac config: duplicate {kind}: {value}")
        seen.add(value)
    return seen


def validate_policy(policy: PolicyConfig) -> None:
    """Check the internal consistency of *policy*.

    Raises:
        ConfigError: on the first violation found.
    """
    required = (
        ("roles", policy.roles),
        ("permissions", policy.permissions),
        ("resources", policy.resources),
        ("actions", policy.actions),
        ("capabilities", policy.capabilities),
        ("permission-to-action map", policy.permission_mapping),
    )
    for name, value in required:
        if not value:
            raise ConfigError(f"rbac config: {name} must not be empty")

    role_names: set[str] = set()
    role_levels: dict[int, str] = {}
    for rd in policy.roles:
        if not rd.name:
            raise ConfigError("rbac config: role name must not be empty")
        if rd.name in role_names:
            raise ConfigError(f"rbac config: duplicate role name: {rd.name}")
        if rd.level in role_levels:
            raise ConfigError(
                f"rbac config: duplicate role level {rd.level} "
                f"(roles {role_levels[rd.level]} and {rd.name})"
            )
        role_names.add(rd.name)
        role_levels[rd.level] = rd.name

    permissions = _unique_names(policy.permissions, "permission")
    resources = _unique_names(policy.resources, "resource")
    actions = _unique_names(policy.actions, "action")

    for role, by_resource in policy.capabilities.items():
        if role not in role_names:
            raise ConfigError(f"rbac config: capability references unknown role: {role}")
        for resource, granted in by_resource.items():
            if resource not in resources:
                raise ConfigError(
                    f"rbac config: capability for role {role} "
                    f"references unknown resource: {resource}"
                )
            for action in granted:
                if action not in actions:
                    raise ConfigError(
                        f"rbac config: capability for role {role} on resource {resource} "
                        f"references unknown action: {action}"
                    )

    mapped_permissions: set[str] = set()
    mapped_actions: set[str] = set()
    for pm in policy.permission_mapping:
        if pm.permission not in permissions:
            raise ConfigError(
                f"rbac config: permission mapping references unknown permission: {pm.permission}"
            )
        if pm.action not in actions:
            raise ConfigError(
                f"rbac config: permission mapping references unknown action: {pm.action}"
            )
        if pm.permission in mapped_permissions:
            raise ConfigError(f"rbac config: duplicate permission in mapping: {pm.permission}")
        if pm.action in mapped_actions:
            raise ConfigError(f"rbac config: duplicate action in mapping: {pm.action}")
        mapped_permissions.add(pm.permission)
        mapped_actions.add(pm.action)

    if policy.machine_scope is not None:
        if not policy.machine_scope.allowed_resources:
            raise ConfigError(
                "rbac config: API key scope must list at least one resource when set"
            )
        for resource in policy.machine_scope.allowed_resources:
            if resource not in resources:
                raise ConfigError(
                    f"rbac config: API key scope references unknown resource: {resource}"
                )


def load_policy(path: str | Path) -> PolicyConfig:
    """Read and validate a JSON policy document.

    Raises:
        ConfigError: the file is unreadable, malformed, or inconsistent.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"rbac config: cannot read policy file {path}: {exc}") from exc
    try:
        policy = PolicyConfig.model_validate_json(raw)
    except PydanticValidationError as exc:
        raise ConfigError(f"rbac config: malformed policy file {path}: {exc}") from exc
    validate_policy(policy)
    return policy
