"""Tests for the storage backends.

Every test runs against both the in-memory store and SQLite.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
import pytest_asyncio

from filegate.exceptions import ConflictError, NotFoundError, StorageError
from filegate.models import APIKey, FileRecord, Project, ProjectMember
from filegate.storage import Store, create_store
from filegate.storage.database import Database
from filegate.storage.memory import InMemoryStore


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def backend(request, tmp_path):
    """Fresh, connected store of each kind."""
    store = create_store(request.param, str(tmp_path / "test.db"))
    await store.connect()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def project(backend):
    return await backend.create_project(Project(name="alpha", owner_id=uuid4()))


def _key(project_id, **fields) -> APIKey:
    return APIKey(
        project_id=project_id,
        name="ci",
        key_hash=uuid4().hex,
        key_prefix="pk_abcdefg",
        permissions=["read", "write"],
        created_by=uuid4(),
        **fields,
    )


class TestCreateStore:
    def test_memory(self):
        assert isinstance(create_store("memory"), InMemoryStore)

    def test_sqlite(self, tmp_path):
        store = create_store("sqlite", str(tmp_path / "x.db"))
        assert isinstance(store, Database)
        assert isinstance(store, Store)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown storage backend"):
            create_store("postgres")

    async def test_unconnected_database(self, tmp_path):
        with pytest.raises(StorageError, match="not connected"):
            await Database(tmp_path / "x.db").get_project(uuid4())


# ---------------------------------------------------------------------------
# Projects and members
# ---------------------------------------------------------------------------


class TestProjects:
    async def test_get(self, backend, project):
        fetched = await backend.get_project(project.id)
        assert fetched.name == "alpha"
        assert fetched.owner_id == project.owner_id

    async def test_missing(self, backend):
        with pytest.raises(NotFoundError, match="project not found"):
            await backend.get_project(uuid4())

    async def test_members(self, backend, project):
        user_id = uuid4()
        await backend.add_member(
            ProjectMember(project_id=project.id, user_id=user_id, role="editor")
        )
        member = await backend.get_member(project.id, user_id)
        assert member.role == "editor"
        assert [m.user_id for m in await backend.list_members(project.id)] == [user_id]

    async def test_duplicate_member(self, backend, project):
        member = ProjectMember(project_id=project.id, user_id=uuid4(), role="viewer")
        await backend.add_member(member)
        with pytest.raises(ConflictError):
            await backend.add_member(member)

    async def test_missing_member(self, backend, project):
        with pytest.raises(NotFoundError):
            await backend.get_member(project.id, uuid4())

    async def test_delete_cascades(self, backend, project):
        user_id = uuid4()
        await backend.add_member(
            ProjectMember(project_id=project.id, user_id=user_id, role="admin")
        )
        record = await backend.create_file(FileRecord(project_id=project.id, name="a.txt"))
        await backend.delete_project(project.id)
        with pytest.raises(NotFoundError):
            await backend.get_member(project.id, user_id)
        with pytest.raises(NotFoundError):
            await backend.get_by_id(record.id)

    async def test_member_of_missing_project(self, backend):
        member = ProjectMember(project_id=uuid4(), user_id=uuid4(), role="viewer")
        with pytest.raises(NotFoundError, match="project not found"):
            await backend.add_member(member)

    async def test_delete_missing(self, backend):
        with pytest.raises(NotFoundError):
            await backend.delete_project(uuid4())


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


class TestFiles:
    async def test_create_and_get(self, backend, project):
        folder = uuid4()
        record = await backend.create_file(
            FileRecord(project_id=project.id, name="a.txt", folder_id=folder, size_bytes=3)
        )
        fetched = await backend.get_by_id(record.id)
        assert fetched.project_id == project.id
        assert fetched.folder_id == folder
        assert fetched.size_bytes == 3

    async def test_file_in_missing_project(self, backend):
        with pytest.raises(NotFoundError, match="project not found"):
            await backend.create_file(FileRecord(project_id=uuid4(), name="a.txt"))

    async def test_list_by_project(self, backend, project):
        other = await backend.create_project(Project(name="beta", owner_id=uuid4()))
        await backend.create_file(FileRecord(project_id=project.id, name="a.txt"))
        await backend.create_file(FileRecord(project_id=other.id, name="b.txt"))
        assert [f.name for f in await backend.list_by_project(project.id)] == ["a.txt"]

    async def test_delete(self, backend, project):
        record = await backend.create_file(FileRecord(project_id=project.id, name="a.txt"))
        await backend.delete_file(record.id)
        with pytest.raises(NotFoundError, match="file not found"):
            await backend.get_by_id(record.id)
        with pytest.raises(NotFoundError):
            await backend.delete_file(record.id)


# ---------------------------------------------------------------------------
# API keys
# ---------------------------------------------------------------------------


class TestAPIKeys:
    async def test_get_by_hash(self, backend, project):
        key = await backend.create_api_key(_key(project.id))
        fetched = await backend.get_by_hash(key.key_hash)
        assert fetched.id == key.id
        assert fetched.permissions == ["read", "write"]
        assert fetched.is_active()

    async def test_naive_expiry_read_as_utc(self, backend, project):
        key = await backend.create_api_key(_key(project.id, expires_at=datetime(2099, 1, 1)))
        fetched = await backend.get_by_hash(key.key_hash)
        assert fetched.expires_at == datetime(2099, 1, 1, tzinfo=timezone.utc)
        assert fetched.is_active()

    async def test_unknown_hash(self, backend):
        with pytest.raises(NotFoundError):
            await backend.get_by_hash("deadbeef")

    async def test_revoke(self, backend, project):
        key = await backend.create_api_key(_key(project.id))
        await backend.revoke_api_key(project.id, key.id)
        revoked = await backend.get_by_hash(key.key_hash)
        assert revoked.revoked_at is not None
        assert not revoked.is_active()
        with pytest.raises(NotFoundError, match="already revoked"):
            await backend.revoke_api_key(project.id, key.id)

    async def test_revoke_requires_owning_project(self, backend, project):
        key = await backend.create_api_key(_key(project.id))
        with pytest.raises(NotFoundError):
            await backend.revoke_api_key(uuid4(), key.id)

    async def test_update_last_used(self, backend, project):
        key = await backend.create_api_key(_key(project.id))
        await backend.update_last_used(key.id)
        (listed,) = await backend.list_api_keys(project.id)
        assert listed.last_used_at is not None

    async def test_expiry_round_trips(self, backend, project):
        expires = datetime.now(timezone.utc) - timedelta(seconds=1)
        key = await backend.create_api_key(_key(project.id, expires_at=expires))
        fetched = await backend.get_by_hash(key.key_hash)
        assert fetched.expires_at == expires
        assert not fetched.is_active()
