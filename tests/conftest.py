# Rev 0.1.0

"""Pytest fixtures for taskboard (Rev 0.1.0)"""
from __future__ import annotations
import pytest
from pathlib import Path

from taskboard.repositories.db import Database
from taskboard.repositories.sqlite_backend import SQLiteBackend
from taskboard.repositories.task_repository import TaskRepository

from memory_backend import MemoryBackend


@pytest.fixture()
def db(tmp_path: Path):
    database = Database(path=tmp_path / "test.db")
    try:
        database.run_migrations()
        yield database
    finally:
        database.close()


@pytest.fixture()
def sqlite_backend(db) -> SQLiteBackend:
    return SQLiteBackend(db)


@pytest.fixture()
def memory_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture(params=["memory", "sqlite"])
def backend(request):
    # the move protocol must behave the same on every adapter
    return request.getfixturevalue(f"{request.param}_backend")


@pytest.fixture()
def repo(backend) -> TaskRepository:
    return TaskRepository(backend)


@pytest.fixture()
def seed(repo):
    """seed(project_id, type, *titles) -> {title: Task}, appended in order."""
    def _seed(project_id: int, task_type: str, *titles: str):
        out = {}
        for title in titles:
            task, _ = repo.create({"title": title, "type": task_type}, project_id, "u1")
            out[title] = task
        return out
    return _seed
