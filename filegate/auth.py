"""Bearer-token and API key authentication for FileGate.

This is the step that runs before authorization. It only establishes who
is calling and attaches a :class:`RequestAuth` to ``request.state.auth``:

- ``Authorization: Bearer <jwt>`` -- interactive user session. The token
  is an HS256 JWT whose ``sub`` claim is the user UUID.
- ``X-API-Key: pk_...`` -- machine credential. The key is looked up by its
  SHA-256 hash and carries its bound project and permissions.

A bearer token takes priority when both are present.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import time
from dataclasses import dataclass
from uuid import UUID

import jwt
from fastapi import Request

from filegate.exceptions import NotFoundError, StorageError, UnauthorizedError
from filegate.models import APIKey
from filegate.rbac.types import AuthType
from filegate.storage.base import APIKeyRepository

API_KEY_PREFIX = "pk_"

_JWT_ALGORITHM = "HS256"
_JWT_EXPIRY_SECONDS = 24 * 3600

logger = logging.getLogger("filegate.auth")
_audit_logger = logging.getLogger("filegate.audit")


@dataclass(frozen=True)
class RequestAuth:
    """Verified identity of the caller for one request."""

    auth_type: AuthType
    user_id: UUID | None = None
    project_id: UUID | None = None
    api_key: APIKey | None = None


def hash_api_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode()).hexdigest()


def generate_api_key() -> tuple[str, str, str]:
    """Return ``(raw_key, key_hash, key_prefix)`` for a new API key."""
    raw_key = f"{API_KEY_PREFIX}{secrets.token_urlsafe(32)}"
    return raw_key, hash_api_key(raw_key), raw_key[:10]


def issue_jwt(user_id: UUID, secret: str, expires_in: int = _JWT_EXPIRY_SECONDS) -> str:
    """Issue a session token for *user_id*."""
    now = int(time.time())
    payload = {"sub": str(user_id), "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, secret, algorithm=_JWT_ALGORITHM)


def decode_jwt(token: str, secret: str) -> UUID | None:
    """Verify *token* and return the user id, or None when invalid."""
    try:
        claims = jwt.decode(token, secret, algorithms=[_JWT_ALGORITHM])
        return UUID(claims["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        return None


def _extract_bearer(request: Request) -> str | None:
    header = request.headers.get("Authorization")
    if not header:
        return None
    parts = header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def _auth_failure(request: Request, reason: str) -> None:
    _audit_logger.warning(
        "Auth failure (%s): %s %s",
        reason,
        request.method,
        request.url.path,
        extra={"event_category": "audit", "action": "auth_failure", "reason": reason},
    )


class Authenticator:
    """Provides the ``require_authentication`` FastAPI dependency."""

    def __init__(self, api_keys: APIKeyRepository, jwt_secret: str) -> None:
        self._api_keys = api_keys
        self._jwt_secret = jwt_secret

    async def require_authentication(self, request: Request) -> RequestAuth:
        """Attach the caller's identity to ``request.state.auth``.

        Raises:
            UnauthorizedError: no credentials, or credentials that do not verify.
        """
        token = _extract_bearer(request)
        if token is not None:
            user_id = decode_jwt(token, self._jwt_secret)
            if user_id is None:
                _auth_failure(request, "invalid_token")
                raise UnauthorizedError("invalid or expired token")
            auth = RequestAuth(auth_type=AuthType.JWT, user_id=user_id)
            request.state.auth = auth
            return auth

        raw_key = request.headers.get("X-API-Key", "").strip()
        if not raw_key:
            _auth_failure(request, "no_credentials")
            raise UnauthorizedError("missing authorization token")

        key = await self._verify_api_key(request, raw_key)
        try:
            await self._api_keys.update_last_used(key.id)
        except StorageError:
            logger.warning("Failed to update last_used_at for API key %s", key.id, exc_info=True)
        auth = RequestAuth(auth_type=AuthType.API_KEY, project_id=key.project_id, api_key=key)
        request.state.auth = auth
        return auth

    async def _verify_api_key(self, request: Request, raw_key: str) -> APIKey:
        if not raw_key.startswith(API_KEY_PREFIX):
            _auth_failure(request, "malformed_api_key")
            raise UnauthorizedError("invalid API key format")
        try:
            key = await self._api_keys.get_by_hash(hash_api_key(raw_key))
        except NotFoundError:
            _auth_failure(request, "invalid_api_key")
            raise UnauthorizedError("invalid API key") from None
        if not key.is_active():
            if key.revoked_at is not None:
                _auth_failure(request, "api_key_revoked")
                raise UnauthorizedError("API key has been revoked")
            _auth_failure(request, "api_key_expired")
            raise UnauthorizedError("API key has expired")
        return key


async def require_authentication(request: Request) -> RequestAuth:
    """FastAPI dependency delegating to the app's :class:`Authenticator`.

    Usage::

        router = APIRouter(dependencies=[Depends(require_authentication)])
    """
    authenticator: Authenticator = request.app.state.authenticator
    return await authenticator.require_authentication(request)
