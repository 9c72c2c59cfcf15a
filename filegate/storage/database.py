"""Async SQLite storage backend.

Uses aiosqlite for async access. Implements the project, file and API key
repositories on a single connection; the schema is created on connect.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID

import aiosqlite

from filegate.exceptions import ConflictError, NotFoundError, StorageError
from filegate.models import APIKey, FileRecord, Project, ProjectMember

logger = logging.getLogger("filegate.storage")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    owner_id TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS project_members (
    project_id TEXT NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
    user_id TEXT NOT NULL,
    role TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (project_id, user_id)
);

CREATE TABLE IF NOT EXISTS files (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    folder_id TEXT,
    size_bytes INTEGER NOT NULL DEFAULT 0,
    content_type TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_files_project
    ON files (project_id, created_at);

CREATE TABLE IF NOT EXISTS api_keys (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    key_hash TEXT NOT NULL UNIQUE,
    key_prefix TEXT NOT NULL,
    permissions TEXT NOT NULL DEFAULT '[]',
    expires_at TEXT,
    created_by TEXT NOT NULL,
    created_at TEXT NOT NULL,
    last_used_at TEXT,
    revoked_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_api_keys_project
    ON api_keys (project_id);
"""


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class Database:
    """Async SQLite database wrapper."""

    def __init__(self, db_path: Path | str = "filegate.db") -> None:
        self.db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA foreign_keys = ON")
        await self._db.executescript(SCHEMA_SQL)
        await self._db.commit()
        logger.info("Connected to SQLite database at %s", self.db_path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StorageError("Database not connected. Call connect() first.")
        return self._db

    async def _write(self, sql: str, params: tuple) -> int:
        try:
            cursor = await self.db.execute(sql, params)
            await self.db.commit()
        except sqlite3.IntegrityError as exc:
            if "FOREIGN KEY" in str(exc):
                raise NotFoundError("project not found") from exc
            raise ConflictError("record already exists") from exc
        except sqlite3.Error as exc:
            logger.exception("SQLite write failed")
            raise StorageError("storage write failed") from exc
        return cursor.rowcount

    async def _fetchone(self, sql: str, params: tuple) -> aiosqlite.Row | None:
        try:
            cursor = await self.db.execute(sql, params)
            return await cursor.fetchone()
        except sqlite3.Error as exc:
            logger.exception("SQLite read failed")
            raise StorageError("storage read failed") from exc

    async def _fetchall(self, sql: str, params: tuple) -> list[aiosqlite.Row]:
        try:
            cursor = await self.db.execute(sql, params)
            return list(await cursor.fetchall())
        except sqlite3.Error as exc:
            logger.exception("SQLite read failed")
            raise StorageError("storage read failed") from exc

    # --- Projects ---

    async def create_project(self, project: Project) -> Project:
        await self._write(
            "INSERT INTO projects (id, name, owner_id, created_at) VALUES (?, ?, ?, ?)",
            (str(project.id), project.name, str(project.owner_id), _ts(project.created_at)),
        )
        return project

    async def get_project(self, project_id: UUID) -> Project:
        row = await self._fetchone("SELECT * FROM projects WHERE id = ?", (str(project_id),))
        if row is None:
            raise NotFoundError("project not found")
        return Project(
            id=UUID(row["id"]),
            name=row["name"],
            owner_id=UUID(row["owner_id"]),
            created_at=_parse_ts(row["created_at"]),
        )

    async def delete_project(self, project_id: UUID) -> None:
        deleted = await self._write("DELETE FROM projects WHERE id = ?", (str(project_id),))
        if deleted == 0:
            raise NotFoundError("project not found")

    async def get_member(self, project_id: UUID, user_id: UUID) -> ProjectMember:
        row = await self._fetchone(
            "SELECT * FROM project_members WHERE project_id = ? AND user_id = ?",
            (str(project_id), str(user_id)),
        )
        if row is None:
            raise NotFoundError("member not found")
        return self._row_to_member(row)

    async def add_member(self, member: ProjectMember) -> ProjectMember:
        await self._write(
            "INSERT INTO project_members (project_id, user_id, role, created_at) "
            "VALUES (?, ?, ?, ?)",
            (str(member.project_id), str(member.user_id), member.role, _ts(member.created_at)),
        )
        return member

    async def list_members(self, project_id: UUID) -> list[ProjectMember]:
        rows = await self._fetchall(
            "SELECT * FROM project_members WHERE project_id = ? ORDER BY created_at",
            (str(project_id),),
        )
        return [self._row_to_member(r) for r in rows]

    def _row_to_member(self, row: aiosqlite.Row) -> ProjectMember:
        return ProjectMember(
            project_id=UUID(row["project_id"]),
            user_id=UUID(row["user_id"]),
            role=row["role"],
            created_at=_parse_ts(row["created_at"]),
        )

    # --- Files ---

    async def create_file(self, record: FileRecord) -> FileRecord:
        await self._write(
            "INSERT INTO files (id, project_id, name, folder_id, size_bytes, content_type, "
            "created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                str(record.id),
                str(record.project_id),
                record.name,
                str(record.folder_id) if record.folder_id else None,
                record.size_bytes,
                record.content_type,
                _ts(record.created_at),
            ),
        )
        return record

    async def get_by_id(self, file_id: UUID) -> FileRecord:
        row = await self._fetchone("SELECT * FROM files WHERE id = ?", (str(file_id),))
        if row is None:
            raise NotFoundError("file not found")
        return self._row_to_file(row)

    async def list_by_project(self, project_id: UUID) -> list[FileRecord]:
        rows = await self._fetchall(
            "SELECT * FROM files WHERE project_id = ? ORDER BY created_at",
            (str(project_id),),
        )
        return [self._row_to_file(r) for r in rows]

    async def delete_file(self, file_id: UUID) -> None:
        deleted = await self._write("DELETE FROM files WHERE id = ?", (str(file_id),))
        if deleted == 0:
            raise NotFoundError("file not found")

    def _row_to_file(self, row: aiosqlite.Row) -> FileRecord:
        return FileRecord(
            id=UUID(row["id"]),
            project_id=UUID(row["project_id"]),
            name=row["name"],
            folder_id=UUID(row["folder_id"]) if row["folder_id"] else None,
            size_bytes=row["size_bytes"],
            content_type=row["content_type"],
            created_at=_parse_ts(row["created_at"]),
        )

    # --- API keys ---

    async def create_api_key(self, key: APIKey) -> APIKey:
        await self._write(
            "INSERT INTO api_keys (id, project_id, name, key_hash, key_prefix, permissions, "
            "expires_at, created_by, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                str(key.id),
                str(key.project_id),
                key.name,
                key.key_hash,
                key.key_prefix,
                json.dumps(key.permissions),
                _ts(key.expires_at),
                str(key.created_by),
                _ts(key.created_at),
            ),
        )
        return key

    async def get_by_hash(self, key_hash: str) -> APIKey:
        row = await self._fetchone("SELECT * FROM api_keys WHERE key_hash = ?", (key_hash,))
        if row is None:
            raise NotFoundError("api key not found")
        return self._row_to_api_key(row)

    async def list_api_keys(self, project_id: UUID) -> list[APIKey]:
        rows = await self._fetchall(
            "SELECT * FROM api_keys WHERE project_id = ? ORDER BY created_at DESC",
            (str(project_id),),
        )
        return [self._row_to_api_key(r) for r in rows]

    async def revoke_api_key(self, project_id: UUID, key_id: UUID) -> None:
        updated = await self._write(
            "UPDATE api_keys SET revoked_at = ? "
            "WHERE id = ? AND project_id = ? AND revoked_at IS NULL",
            (_ts(datetime.now(timezone.utc)), str(key_id), str(project_id)),
        )
        if updated == 0:
            raise NotFoundError("api key not found or already revoked")

    async def update_last_used(self, key_id: UUID) -> None:
        await self._write(
            "UPDATE api_keys SET last_used_at = ? WHERE id = ?",
            (_ts(datetime.now(timezone.utc)), str(key_id)),
        )

    def _row_to_api_key(self, row: aiosqlite.Row) -> APIKey:
        return APIKey(
            id=UUID(row["id"]),
            project_id=UUID(row["project_id"]),
            name=row["name"],
            key_hash=row["key_hash"],
            key_prefix=row["key_prefix"],
            permissions=json.loads(row["permissions"]),
            expires_at=_parse_ts(row["expires_at"]),
            created_by=UUID(row["created_by"]),
            created_at=_parse_ts(row["created_at"]),
            last_used_at=_parse_ts(row["last_used_at"]),
            revoked_at=_parse_ts(row["revoked_at"]),
        )
