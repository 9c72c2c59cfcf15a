"""Storage backends for projects, members, files and API keys."""

from __future__ import annotations

from filegate.storage.base import APIKeyRepository, FileRepository, ProjectRepository, Store


def create_store(backend: str, db_path: str = "filegate.db") -> Store:
    """Create the storage backend named by FG_STORAGE."""
    if backend == "sqlite":
        from filegate.storage.database import Database

        return Database(db_path)
    if backend == "memory":
        from filegate.storage.memory import InMemoryStore

        return InMemoryStore()
    msg = f"Unknown storage backend: {backend}"
    raise ValueError(msg)


__all__ = ["APIKeyRepository", "FileRepository", "ProjectRepository", "Store", "create_store"]
