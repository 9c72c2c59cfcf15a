"""Authorization engine.

A :class:`Checker` is compiled once from a validated :class:`PolicyConfig`
into lookup tables and is read-only afterwards, so a single instance is
shared by every request without locking. Every decision method is a pure
function of the tables and its arguments.

Two authorization paths share :meth:`Checker.authorize`:

* jwt subjects are checked against the capability matrix
  (role -> resource -> actions); anything not listed is denied.
* api_key subjects must target a resource inside the machine scope and
  hold the permission mapped to the requested action.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from filegate.rbac.errors import (
    DenialReason,
    DeniedError,
    InvalidPermissionError,
    InvalidRoleError,
)
from filegate.rbac.policy import PolicyConfig, validate_policy
from filegate.rbac.types import Action, AuthSubject, AuthType, Permission, Role

_NO_RESOURCES: Mapping[str, frozenset[str]] = MappingProxyType({})


class Checker:
    """Compiled, immutable view of a policy.

    Raises:
        ConfigError: *policy* fails validation.
    """

    def __init__(self, policy: PolicyConfig) -> None:
        validate_policy(policy)
        self._policy = policy

        self._role_levels: Mapping[str, int] = MappingProxyType(
            {rd.name: rd.level for rd in policy.roles}
        )
        self._capabilities: Mapping[str, Mapping[str, frozenset[str]]] = MappingProxyType(
            {
                role: MappingProxyType(
                    {resource: frozenset(actions) for resource, actions in by_resource.items()}
                )
                for role, by_resource in policy.capabilities.items()
            }
        )
        self._perm_to_action: Mapping[str, str] = MappingProxyType(
            {pm.permission: pm.action for pm in policy.permission_mapping}
        )
        self._action_to_perm: Mapping[str, str] = MappingProxyType(
            {pm.action: pm.permission for pm in policy.permission_mapping}
        )
        self._valid_permissions: frozenset[str] = frozenset(policy.permissions)
        self._machine_resources: frozenset[str] | None = (
            frozenset(policy.machine_scope.allowed_resources)
            if policy.machine_scope is not None
            else None
        )

    @property
    def policy(self) -> PolicyConfig:
        return self._policy

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def authorize(self, subject: AuthSubject | None, resource: str, action: str) -> None:
        """Allow *subject* to perform *action* on *resource*, or raise.

        Raises:
            DeniedError: the reason code tells a missing subject and an
                unknown auth type apart from an ordinary denial.
        """
        if subject is None:
            raise DeniedError("subject is nil", DenialReason.NIL_SUBJECT)

        if subject.auth_type == AuthType.JWT:
            self._authorize_role(subject.role, resource, action)
        elif subject.auth_type == AuthType.API_KEY:
            self._authorize_api_key(subject.permissions, resource, action)
        else:
            raise DeniedError(
                f"unknown auth type: {subject.auth_type}", DenialReason.UNKNOWN_AUTH_TYPE
            )

    def is_authorized(self, subject: AuthSubject | None, resource: str, action: str) -> bool:
        try:
            self.authorize(subject, resource, action)
        except DeniedError:
            return False
        return True

    def require_role(self, subject: AuthSubject | None, min_role: str) -> None:
        """Require a jwt subject whose role is at least *min_role*.

        Role elevation does not apply to API keys; they always fail here.
        """
        if subject is None:
            raise DeniedError("subject is nil", DenialReason.NIL_SUBJECT)
        if subject.auth_type != AuthType.JWT:
            raise DeniedError("role check requires JWT authentication")
        if not self.is_role_elevated(subject.role or "", min_role):
            raise DeniedError(
                f"requires minimum role '{min_role}', but user has role '{subject.role}'"
            )

    def _authorize_role(self, role: Role | None, resource: str, action: str) -> None:
        if not role:
            raise DeniedError("user role is empty")
        if not self._can_role_perform(role, resource, action):
            raise DeniedError(
                f"role '{role}' cannot perform action '{action}' on resource '{resource}'"
            )

    def _authorize_api_key(
        self, permissions: frozenset[Permission], resource: str, action: str
    ) -> None:
        if self._machine_resources is None:
            raise DeniedError("API key access is not configured")
        if resource not in self._machine_resources:
            raise DeniedError(f"API keys cannot access resource '{resource}'")

        required = self.action_to_permission(action)
        if required is None:
            raise DeniedError(f"action '{action}' is not supported for API keys")
        if not self.has_permission(permissions, required):
            raise DeniedError(
                f"API key lacks required permission '{required}' for action '{action}'"
            )

    def _can_role_perform(self, role: str, resource: str, action: str) -> bool:
        actions = self._capabilities.get(role, _NO_RESOURCES).get(resource)
        return actions is not None and action in actions

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def role_level(self, role: str) -> int | None:
        return self._role_levels.get(role)

    def is_role_elevated(self, role: str, other: str) -> bool:
        """True when *role* is at least as privileged as *other*.

        Unknown roles never compare as elevated, in either position.
        """
        level = self._role_levels.get(role)
        other_level = self._role_levels.get(other)
        if level is None or other_level is None:
            return False
        return level >= other_level

    def validate_role(self, role: str) -> Role:
        if role not in self._role_levels:
            raise InvalidRoleError(f"invalid role: {role}")
        return Role(role)

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    @staticmethod
    def has_permission(permissions: Iterable[str], required: str) -> bool:
        return required in permissions

    def validate_permissions(self, permissions: Iterable[str]) -> None:
        """Reject an empty permission set or any undeclared permission.

        Used when minting an API key.
        """
        perms = list(permissions)
        if not perms:
            raise InvalidPermissionError("invalid permission: permissions array cannot be empty")
        for perm in perms:
            if perm not in self._valid_permissions:
                raise InvalidPermissionError(f"invalid permission: {perm}")

    def permission_to_action(self, permission: str) -> Action | None:
        action = self._perm_to_action.get(permission)
        return Action(action) if action is not None else None

    def action_to_permission(self, action: str) -> Permission | None:
        permission = self._action_to_perm.get(action)
        return Permission(permission) if permission is not None else None
