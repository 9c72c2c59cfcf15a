"""Repository protocols consumed by the authorization layer.

Lookups that find nothing raise :class:`filegate.exceptions.NotFoundError`;
any other failure surfaces as :class:`filegate.exceptions.StorageError`.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable
from uuid import UUID

from filegate.models import APIKey, FileRecord, Project, ProjectMember


@runtime_checkable
class ProjectRepository(Protocol):
    async def create_project(self, project: Project) -> Project: ...

    async def get_project(self, project_id: UUID) -> Project: ...

    async def delete_project(self, project_id: UUID) -> None: ...

    async def get_member(self, project_id: UUID, user_id: UUID) -> ProjectMember:
        """Return the membership row, raising NotFoundError when absent."""
        ...

    async def add_member(self, member: ProjectMember) -> ProjectMember: ...

    async def list_members(self, project_id: UUID) -> list[ProjectMember]: ...


@runtime_checkable
class FileRepository(Protocol):
    async def create_file(self, record: FileRecord) -> FileRecord: ...

    async def get_by_id(self, file_id: UUID) -> FileRecord:
        """Return the file, raising NotFoundError when absent."""
        ...

    async def list_by_project(self, project_id: UUID) -> list[FileRecord]: ...

    async def delete_file(self, file_id: UUID) -> None: ...


@runtime_checkable
class APIKeyRepository(Protocol):
    async def create_api_key(self, key: APIKey) -> APIKey: ...

    async def get_by_hash(self, key_hash: str) -> APIKey: ...

    async def list_api_keys(self, project_id: UUID) -> list[APIKey]: ...

    async def revoke_api_key(self, project_id: UUID, key_id: UUID) -> None: ...

    async def update_last_used(self, key_id: UUID) -> None: ...


@runtime_checkable
class Store(ProjectRepository, FileRepository, APIKeyRepository, Protocol):
    """A backend providing every repository, with a connection lifecycle."""

    async def connect(self) -> None: ...

    async def close(self) -> None: ...
