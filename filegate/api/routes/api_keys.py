"""Project-bound API key management routes."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field

from filegate.auth import RequestAuth, generate_api_key, require_authentication
from filegate.authz import require_project_role
from filegate.exceptions import ForbiddenError, ValidationError
from filegate.models import APIKey
from filegate.rbac import AuthType, InvalidPermissionError
from filegate.rbac.presets import ROLE_ADMIN

router = APIRouter(
    prefix="/projects/{project_id}/api-keys",
    tags=["API Keys"],
    dependencies=[Depends(require_authentication)],
)


class CreateKeyRequest(BaseModel):
    name: str = Field(default="default", min_length=1, max_length=256)
    permissions: list[str]
    expires_at: datetime | None = None


class KeyInfo(BaseModel):
    id: UUID
    name: str
    key_prefix: str
    permissions: list[str]
    expires_at: datetime | None
    created_at: datetime
    last_used_at: datetime | None
    revoked_at: datetime | None


class CreateKeyResponse(KeyInfo):
    key: str


def _info(key: APIKey) -> dict:
    return KeyInfo(**key.model_dump()).model_dump(mode="json")


@router.post("", status_code=status.HTTP_201_CREATED, summary="Mint an API key")
async def create_key(
    req: CreateKeyRequest,
    request: Request,
    project_id: UUID = Depends(require_project_role(ROLE_ADMIN)),
    auth: RequestAuth = Depends(require_authentication),
):
    """Generate a key for the project. The raw key is only ever returned here."""
    if auth.auth_type != AuthType.JWT or auth.user_id is None:
        raise ForbiddenError("forbidden")
    try:
        request.app.state.checker.validate_permissions(req.permissions)
    except InvalidPermissionError as e:
        raise ValidationError(e.message) from None

    raw_key, key_hash, key_prefix = generate_api_key()
    key = await request.app.state.store.create_api_key(
        APIKey(
            project_id=project_id,
            name=req.name,
            key_hash=key_hash,
            key_prefix=key_prefix,
            permissions=sorted(set(req.permissions)),
            expires_at=req.expires_at,
            created_by=auth.user_id,
        )
    )
    return CreateKeyResponse(**key.model_dump(), key=raw_key).model_dump(mode="json")


@router.get("", summary="List API keys")
async def list_keys(
    request: Request, project_id: UUID = Depends(require_project_role(ROLE_ADMIN))
):
    """List the project's keys (never shows the raw key)."""
    keys = await request.app.state.store.list_api_keys(project_id)
    return {"items": [_info(k) for k in keys], "total": len(keys)}


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT, summary="Revoke an API key")
async def revoke_key(
    id: UUID,
    request: Request,
    project_id: UUID = Depends(require_project_role(ROLE_ADMIN)),
):
    await request.app.state.store.revoke_api_key(project_id, id)
