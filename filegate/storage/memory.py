"""In-memory storage backend for development and tests."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from filegate.exceptions import ConflictError, NotFoundError
from filegate.models import APIKey, FileRecord, Project, ProjectMember


class InMemoryStore:
    """Dict-backed implementation of every repository protocol."""

    def __init__(self) -> None:
        self._projects: dict[UUID, Project] = {}
        self._members: dict[tuple[UUID, UUID], ProjectMember] = {}
        self._files: dict[UUID, FileRecord] = {}
        self._api_keys: dict[UUID, APIKey] = {}

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None

    # --- Projects ---

    def _require_project(self, project_id: UUID) -> None:
        if project_id not in self._projects:
            raise NotFoundError("project not found")

    async def create_project(self, project: Project) -> Project:
        if project.id in self._projects:
            raise ConflictError("project already exists")
        self._projects[project.id] = project
        return project

    async def get_project(self, project_id: UUID) -> Project:
        try:
            return self._projects[project_id]
        except KeyError:
            raise NotFoundError("project not found") from None

    async def delete_project(self, project_id: UUID) -> None:
        if self._projects.pop(project_id, None) is None:
            raise NotFoundError("project not found")
        self._members = {k: m for k, m in self._members.items() if k[0] != project_id}
        self._files = {k: f for k, f in self._files.items() if f.project_id != project_id}
        self._api_keys = {k: a for k, a in self._api_keys.items() if a.project_id != project_id}

    async def get_member(self, project_id: UUID, user_id: UUID) -> ProjectMember:
        try:
            return self._members[(project_id, user_id)]
        except KeyError:
            raise NotFoundError("member not found") from None

    async def add_member(self, member: ProjectMember) -> ProjectMember:
        self._require_project(member.project_id)
        key = (member.project_id, member.user_id)
        if key in self._members:
            raise ConflictError("user is already a member of this project")
        self._members[key] = member
        return member

    async def list_members(self, project_id: UUID) -> list[ProjectMember]:
        return [m for (pid, _), m in self._members.items() if pid == project_id]

    # --- Files ---

    async def create_file(self, record: FileRecord) -> FileRecord:
        self._require_project(record.project_id)
        self._files[record.id] = record
        return record

    async def get_by_id(self, file_id: UUID) -> FileRecord:
        try:
            return self._files[file_id]
        except KeyError:
            raise NotFoundError("file not found") from None

    async def list_by_project(self, project_id: UUID) -> list[FileRecord]:
        return sorted(
            (f for f in self._files.values() if f.project_id == project_id),
            key=lambda f: f.created_at,
        )

    async def delete_file(self, file_id: UUID) -> None:
        if self._files.pop(file_id, None) is None:
            raise NotFoundError("file not found")

    # --- API keys ---

    async def create_api_key(self, key: APIKey) -> APIKey:
        self._require_project(key.project_id)
        self._api_keys[key.id] = key
        return key

    async def get_by_hash(self, key_hash: str) -> APIKey:
        for key in self._api_keys.values():
            if key.key_hash == key_hash:
                return key
        raise NotFoundError("api key not found")

    async def list_api_keys(self, project_id: UUID) -> list[APIKey]:
        return [k for k in self._api_keys.values() if k.project_id == project_id]

    async def revoke_api_key(self, project_id: UUID, key_id: UUID) -> None:
        key = self._api_keys.get(key_id)
        if key is None or key.project_id != project_id or key.revoked_at is not None:
            raise NotFoundError("api key not found or already revoked")
        self._api_keys[key_id] = key.model_copy(update={"revoked_at": datetime.now(timezone.utc)})

    async def update_last_used(self, key_id: UUID) -> None:
        key = self._api_keys.get(key_id)
        if key is not None:
            self._api_keys[key_id] = key.model_copy(
                update={"last_used_at": datetime.now(timezone.utc)}
            )
