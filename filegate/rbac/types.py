"""Vocabulary of the authorization engine.

Roles, permissions, resources and actions are plain string tokens. The
two trust models are told apart by :class:`AuthType`:

    jwt      -- interactive user session, authorized by role
    api_key  -- machine credential, authorized by a permission set
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import NewType

from pydantic import BaseModel, ConfigDict, Field

Role = NewType("Role", str)
Permission = NewType("Permission", str)
Resource = NewType("Resource", str)
Action = NewType("Action", str)


class AuthType(StrEnum):
    """Authentication method behind a request."""

    JWT = "jwt"
    API_KEY = "api_key"


class RoleDefinition(BaseModel):
    """A role and its privilege level. Higher level means more privileged."""

    model_config = ConfigDict(frozen=True)

    name: str
    level: int


class PermissionMapping(BaseModel):
    """Links one API key permission to one action."""

    model_config = ConfigDict(frozen=True)

    permission: str
    action: str


class MachineResourceScope(BaseModel):
    """Resources reachable by any API key, independent of its permissions."""

    model_config = ConfigDict(frozen=True)

    allowed_resources: tuple[str, ...] = Field(default_factory=tuple)


@dataclass(frozen=True)
class AuthSubject:
    """The authenticated caller for one request.

    Build it with :meth:`interactive` or :meth:`machine`. A JWT subject
    carries only a role and an API key subject carries only permissions.
    ``auth_type`` is kept as a plain string so that an unrecognised tag
    reaches the engine and is rejected there.
    """

    auth_type: str
    role: Role | None = None
    permissions: frozenset[Permission] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if self.auth_type == AuthType.JWT and self.permissions:
            raise ValueError("a jwt subject cannot carry permissions")
        if self.auth_type == AuthType.API_KEY and self.role is not None:
            raise ValueError("an api_key subject cannot carry a role")

    @classmethod
    def interactive(cls, role: str) -> AuthSubject:
        return cls(auth_type=AuthType.JWT, role=Role(role))

    @classmethod
    def machine(cls, permissions: Iterable[str]) -> AuthSubject:
        return cls(
            auth_type=AuthType.API_KEY,
            permissions=frozenset(Permission(p) for p in permissions),
        )
