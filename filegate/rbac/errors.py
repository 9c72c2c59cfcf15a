"""Error taxonomy of the authorization engine.

``ConfigError`` only surfaces at startup and is fatal. Everything else is
an :class:`AuthorizationError` carrying a machine-inspectable
:class:`DenialReason`; the HTTP layer decides what the caller sees.
"""

from __future__ import annotations

from enum import StrEnum


class DenialReason(StrEnum):
    DENIED = "denied"
    NIL_SUBJECT = "nil_subject"
    UNKNOWN_AUTH_TYPE = "unknown_auth_type"
    INVALID_ROLE = "invalid_role"
    INVALID_PERMISSION = "invalid_permission"


class ConfigError(ValueError):
    """Policy definition failed validation."""


class AuthorizationError(Exception):
    """Base class for engine decisions that are not an allow."""

    reason: DenialReason = DenialReason.DENIED

    def __init__(self, message: str, reason: DenialReason | None = None) -> None:
        if reason is not None:
            self.reason = reason
        self.message = message
        super().__init__(message)


class DeniedError(AuthorizationError):
    """The decision is no."""


class InvalidRoleError(AuthorizationError):
    """A role name not declared in the policy was used."""

    reason = DenialReason.INVALID_ROLE


class InvalidPermissionError(AuthorizationError):
    """A permission not declared in the policy was used."""

    reason = DenialReason.INVALID_PERMISSION
