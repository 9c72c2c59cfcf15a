"""Shared fixtures for FileGate tests."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from filegate.api.app import create_app
from filegate.auth import generate_api_key, issue_jwt
from filegate.config import Settings
from filegate.models import APIKey, FileRecord, Project, ProjectMember
from filegate.rbac import Checker
from filegate.rbac.presets import ROLE_ADMIN, ROLE_EDITOR, ROLE_VIEWER, file_management
from filegate.storage.memory import InMemoryStore

JWT_SECRET = "filegate-test-secret-0123456789abcdef"


@dataclass
class World:
    """Two projects, their members and one file in each."""

    project_a: Project
    project_b: Project
    admin: UUID
    editor: UUID
    viewer: UUID
    outsider: UUID
    file_a: FileRecord
    file_b: FileRecord


@pytest.fixture
def settings():
    return Settings(storage="memory", jwt_secret=JWT_SECRET)


@pytest.fixture
def checker():
    return Checker(file_management())


@pytest.fixture
def store():
    return InMemoryStore()


@pytest_asyncio.fixture
async def world(store):
    """Seed project A (admin/editor/viewer) and project B (outsider is its admin)."""
    admin, editor, viewer, outsider = uuid4(), uuid4(), uuid4(), uuid4()
    project_a = await store.create_project(Project(name="alpha", owner_id=admin))
    project_b = await store.create_project(Project(name="beta", owner_id=outsider))
    for user_id, role in ((admin, ROLE_ADMIN), (editor, ROLE_EDITOR), (viewer, ROLE_VIEWER)):
        await store.add_member(ProjectMember(project_id=project_a.id, user_id=user_id, role=role))
    await store.add_member(
        ProjectMember(project_id=project_b.id, user_id=outsider, role=ROLE_ADMIN)
    )
    file_a = await store.create_file(FileRecord(project_id=project_a.id, name="a.txt"))
    file_b = await store.create_file(FileRecord(project_id=project_b.id, name="b.txt"))
    return World(project_a, project_b, admin, editor, viewer, outsider, file_a, file_b)


@pytest.fixture
def bearer():
    """Return Authorization headers for a user id."""

    def _bearer(user_id: UUID) -> dict[str, str]:
        return {"Authorization": f"Bearer {issue_jwt(user_id, JWT_SECRET)}"}

    return _bearer


@pytest.fixture
def make_key(store):
    """Store an API key bound to a project and return its X-API-Key headers."""

    async def _make_key(project_id: UUID, permissions, **fields) -> dict[str, str]:
        raw_key, key_hash, key_prefix = generate_api_key()
        await store.create_api_key(
            APIKey(
                project_id=project_id,
                name="test",
                key_hash=key_hash,
                key_prefix=key_prefix,
                permissions=list(permissions),
                created_by=uuid4(),
                **fields,
            )
        )
        return {"X-API-Key": raw_key}

    return _make_key


@pytest.fixture
def app(settings, store, checker):
    return create_app(settings=settings, store=store, checker=checker)


@pytest_asyncio.fixture
async def client(app):
    """HTTP test client wired to a fresh in-memory store."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
