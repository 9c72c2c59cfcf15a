"""Per-request authorization for FileGate routes.

Couples the shared :class:`~filegate.rbac.Checker` to the request context
and the repositories. Every check applies the two trust models before a
handler runs:

* jwt callers are resolved to their membership role in the target project
  and must meet the route's minimum role.
* api_key callers must be bound to the target project and hold the
  permission that stands in for the route's minimum role.

Two entry points cover the two kinds of route:

``require_project_role``
    The project id is in the route. An API key bound to another project
    is rejected with 403 before anything is read from storage. A jwt
    caller who is not a member gets 404 so that project ids cannot be
    probed.

``require_project_role_for_file``
    Only a file id is in the route; the owning project is derived from
    the file. A file owned by another project answers exactly like a
    file that does not exist.

The reason for a denial goes to the ``filegate.audit`` log only. Callers
see ``forbidden`` or ``... not found``.

Usage::

    @router.get("/projects/{project_id}/files")
    async def list_files(project_id: UUID = Depends(require_project_role(ROLE_VIEWER))): ...
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from types import MappingProxyType
from typing import NoReturn, TypeVar
from uuid import UUID

from fastapi import Request

from filegate.auth import RequestAuth
from filegate.exceptions import (
    ForbiddenError,
    NotFoundError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from filegate.models import FileRecord
from filegate.rbac import AuthorizationError, AuthSubject, AuthType, Checker
from filegate.rbac.presets import (
    PERMISSION_DELETE,
    PERMISSION_READ,
    PERMISSION_WRITE,
    ROLE_ADMIN,
    ROLE_EDITOR,
    ROLE_VIEWER,
)
from filegate.storage.base import FileRepository, ProjectRepository

_audit_logger = logging.getLogger("filegate.audit")

T = TypeVar("T")

#: Permission an API key needs in place of a route's minimum role.
MIN_ROLE_PERMISSIONS: Mapping[str, str] = MappingProxyType(
    {
        ROLE_VIEWER: PERMISSION_READ,
        ROLE_EDITOR: PERMISSION_WRITE,
        ROLE_ADMIN: PERMISSION_DELETE,
    }
)

MSG_FORBIDDEN = "forbidden"
MSG_PROJECT_NOT_FOUND = "project not found"
MSG_FILE_NOT_FOUND = "file not found"
MSG_PROJECT_ID_REQUIRED = "project_id required"
MSG_INVALID_PROJECT_ID = "invalid project_id"
MSG_FILE_ID_REQUIRED = "file_id required"
MSG_INVALID_FILE_ID = "invalid file_id"
MSG_NOT_AUTHENTICATED = "user not authenticated"
MSG_API_KEY_CONTEXT_MISSING = "API key context missing"


def _route_uuid(request: Request, names: tuple[str, ...], missing: str, invalid: str) -> UUID:
    for name in names:
        raw = request.path_params.get(name)
        if raw:
            try:
                return raw if isinstance(raw, UUID) else UUID(str(raw))
            except ValueError:
                raise ValidationError(invalid) from None
    raise ValidationError(missing)


def _request_auth(request: Request) -> RequestAuth:
    auth: RequestAuth | None = getattr(request.state, "auth", None)
    if auth is None:
        raise UnauthorizedError(MSG_NOT_AUTHENTICATED)
    return auth


def build_subject(auth: RequestAuth, role: str | None = None) -> AuthSubject:
    """Describe the caller to the engine.

    *role* is the caller's resolved membership role and only applies to
    jwt callers.
    """
    if auth.auth_type == AuthType.JWT:
        return AuthSubject.interactive(role or "")
    if auth.auth_type == AuthType.API_KEY:
        return AuthSubject.machine(auth.api_key.permissions if auth.api_key else ())
    return AuthSubject(auth_type=str(auth.auth_type))


class Authorizer:
    """Authorization checks bound to one checker and one set of repositories."""

    def __init__(
        self,
        checker: Checker,
        projects: ProjectRepository,
        files: FileRepository,
        lookup_timeout: float = 5.0,
    ) -> None:
        self._checker = checker
        self._projects = projects
        self._files = files
        self._lookup_timeout = lookup_timeout

    @property
    def checker(self) -> Checker:
        return self._checker

    async def check_project_role(self, request: Request, min_role: str) -> UUID:
        """Authorize a project-scoped route and return the project id."""
        auth = _request_auth(request)

        if auth.auth_type == AuthType.API_KEY:
            # Scope must be checked before any storage access.
            project_id = self._check_api_key_scope(request, auth)
            self._check_api_key_permission(request, auth, min_role)
        elif auth.auth_type == AuthType.JWT:
            project_id = _route_uuid(
                request, ("project_id", "id"), MSG_PROJECT_ID_REQUIRED, MSG_INVALID_PROJECT_ID
            )
            role = await self._resolve_role(auth, project_id, MSG_PROJECT_NOT_FOUND)
            self._require_role(request, auth, role, min_role)
        else:
            self._deny(request, auth, f"unknown auth type: {auth.auth_type}")

        request.state.project_id = project_id
        return project_id

    async def check_file_role(self, request: Request, min_role: str) -> FileRecord:
        """Authorize a file-scoped route and return the file.

        Sets ``request.state.project_id`` to the owning project.
        """
        auth = _request_auth(request)
        file_id = _route_uuid(request, ("id",), MSG_FILE_ID_REQUIRED, MSG_INVALID_FILE_ID)
        record = await self._lookup_file(file_id)

        if auth.auth_type == AuthType.API_KEY:
            if auth.project_id is None:
                raise UnauthorizedError(MSG_API_KEY_CONTEXT_MISSING)
            if record.project_id != auth.project_id:
                _audit_logger.warning(
                    "Cross-project file access by API key: %s %s",
                    request.method,
                    request.url.path,
                    extra={"reason": "project_scope_mismatch", "auth_type": auth.auth_type},
                )
                # Same response as a missing file.
                raise NotFoundError(MSG_FILE_NOT_FOUND)
            self._check_api_key_permission(request, auth, min_role)
        elif auth.auth_type == AuthType.JWT:
            role = await self._resolve_role(auth, record.project_id, MSG_FILE_NOT_FOUND)
            self._require_role(request, auth, role, min_role)
        else:
            self._deny(request, auth, f"unknown auth type: {auth.auth_type}")

        request.state.project_id = record.project_id
        request.state.file = record
        return record

    async def check_capability(self, request: Request, resource: str, action: str) -> UUID:
        """Authorize *action* on *resource* inside the route's project.

        Unlike the role checks this consults the capability matrix for jwt
        callers and the machine scope for API keys.
        """
        auth = _request_auth(request)

        role: str | None = None
        if auth.auth_type == AuthType.API_KEY:
            project_id = self._check_api_key_scope(request, auth)
        elif auth.auth_type == AuthType.JWT:
            project_id = _route_uuid(
                request, ("project_id", "id"), MSG_PROJECT_ID_REQUIRED, MSG_INVALID_PROJECT_ID
            )
            role = await self._resolve_role(auth, project_id, MSG_PROJECT_NOT_FOUND)
        else:
            self._deny(request, auth, f"unknown auth type: {auth.auth_type}")

        try:
            self._checker.authorize(build_subject(auth, role), resource, action)
        except AuthorizationError as exc:
            self._deny(request, auth, exc.message, exc.reason)

        request.state.project_id = project_id
        return project_id

    # ------------------------------------------------------------------
    # API keys
    # ------------------------------------------------------------------

    def _check_api_key_scope(self, request: Request, auth: RequestAuth) -> UUID:
        if auth.project_id is None:
            raise UnauthorizedError(MSG_API_KEY_CONTEXT_MISSING)
        requested = _route_uuid(
            request, ("project_id", "id"), MSG_PROJECT_ID_REQUIRED, MSG_INVALID_PROJECT_ID
        )
        if requested != auth.project_id:
            self._deny(request, auth, "API key is not scoped to the requested project")
        return requested

    def _check_api_key_permission(
        self, request: Request, auth: RequestAuth, min_role: str
    ) -> None:
        if auth.api_key is None:
            raise UnauthorizedError(MSG_API_KEY_CONTEXT_MISSING)
        required = MIN_ROLE_PERMISSIONS.get(min_role)
        if required is None:
            self._deny(request, auth, f"no API key permission stands in for role '{min_role}'")
        if not self._checker.has_permission(auth.api_key.permissions, required):
            self._deny(request, auth, f"API key lacks required permission '{required}'")

    # ------------------------------------------------------------------
    # Interactive users
    # ------------------------------------------------------------------

    async def _resolve_role(self, auth: RequestAuth, project_id: UUID, not_found: str) -> str:
        if auth.user_id is None:
            raise UnauthorizedError(MSG_NOT_AUTHENTICATED)
        try:
            member = await self._bounded(self._projects.get_member(project_id, auth.user_id))
        except NotFoundError:
            raise NotFoundError(not_found) from None
        return member.role

    def _require_role(
        self, request: Request, auth: RequestAuth, role: str, min_role: str
    ) -> None:
        try:
            self._checker.require_role(build_subject(auth, role), min_role)
        except AuthorizationError as exc:
            self._deny(request, auth, exc.message, exc.reason)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _lookup_file(self, file_id: UUID) -> FileRecord:
        try:
            return await self._bounded(self._files.get_by_id(file_id))
        except NotFoundError:
            raise NotFoundError(MSG_FILE_NOT_FOUND) from None

    async def _bounded(self, lookup: Awaitable[T]) -> T:
        try:
            async with asyncio.timeout(self._lookup_timeout):
                return await lookup
        except TimeoutError:
            _audit_logger.error(
                "Authorization lookup timed out after %.1fs",
                self._lookup_timeout,
                extra={"reason": "lookup_timeout"},
            )
            raise StorageError("authorization lookup timed out") from None

    def _deny(
        self, request: Request, auth: RequestAuth, detail: str, reason: str = "denied"
    ) -> NoReturn:
        _audit_logger.warning(
            "Authorization denied: %s %s: %s",
            request.method,
            request.url.path,
            detail,
            extra={
                "event_category": "audit",
                "action": "authz_denied",
                "reason": str(reason),
                "auth_type": str(auth.auth_type),
                "path": request.url.path,
                "method": request.method,
            },
        )
        raise ForbiddenError(MSG_FORBIDDEN)


def get_authorizer(request: Request) -> Authorizer:
    return request.app.state.authorizer


def require_project_role(min_role: str) -> Callable[[Request], Awaitable[UUID]]:
    """Dependency factory for routes carrying ``project_id`` (or ``id``)."""

    async def _check(request: Request) -> UUID:
        return await get_authorizer(request).check_project_role(request, min_role)

    return _check


def require_project_role_for_file(min_role: str) -> Callable[[Request], Awaitable[FileRecord]]:
    """Dependency factory for routes carrying a file ``id``."""

    async def _check(request: Request) -> FileRecord:
        return await get_authorizer(request).check_file_role(request, min_role)

    return _check


def require_capability(resource: str, action: str) -> Callable[[Request], Awaitable[UUID]]:
    """Dependency factory checking the capability matrix inside a project."""

    async def _check(request: Request) -> UUID:
        return await get_authorizer(request).check_capability(request, resource, action)

    return _check
