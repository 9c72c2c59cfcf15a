"""Domain records of the file service.

Only the fields the authorization layer and its thin handlers need:
- Project / ProjectMember: tenancy and per-project roles
- FileRecord: a stored object and the project that owns it
- APIKey: a machine credential bound to exactly one project
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Project(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str = Field(min_length=1, max_length=256)
    owner_id: UUID
    created_at: datetime = Field(default_factory=_utcnow)


class ProjectMember(BaseModel):
    project_id: UUID
    user_id: UUID
    role: str
    created_at: datetime = Field(default_factory=_utcnow)


class FileRecord(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    project_id: UUID
    name: str = Field(min_length=1, max_length=1024)
    folder_id: UUID | None = None
    size_bytes: int = Field(default=0, ge=0)
    content_type: str = "application/octet-stream"
    created_at: datetime = Field(default_factory=_utcnow)


class APIKey(BaseModel):
    """A project-bound machine credential. Only the hash of the key is kept."""

    id: UUID = Field(default_factory=uuid4)
    project_id: UUID
    name: str = Field(min_length=1, max_length=256)
    key_hash: str
    key_prefix: str
    permissions: list[str] = Field(default_factory=list)
    expires_at: datetime | None = None
    created_by: UUID
    created_at: datetime = Field(default_factory=_utcnow)
    last_used_at: datetime | None = None
    revoked_at: datetime | None = None

    @field_validator("expires_at", "created_at", "last_used_at", "revoked_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Naive timestamps are taken as UTC so they compare with aware ones."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def is_active(self, now: datetime | None = None) -> bool:
        """True when the key is neither revoked nor expired."""
        if self.revoked_at is not None:
            return False
        now = now or _utcnow()
        return self.expires_at is None or self.expires_at > now
