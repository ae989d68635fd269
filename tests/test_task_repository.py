# tests/test_task_repository.py
from __future__ import annotations

import pytest

from taskboard.errors import BackendError, NotFound, PartialFailure, ValidationError
from taskboard.repositories.backend import eq
from taskboard.repositories.task_repository import TASK_USERS, TASKS, TaskRepository

from memory_backend import MemoryBackend


# --- create ----------------------------------------------------------------

def test_create_appends_and_links_owner(repo):
    first, owner = repo.create({"title": "  Write docs  ", "estimate_seconds": 600}, 7, "alice")
    second, _ = repo.create({"title": "Review"}, 7, "alice")

    assert first.title == "Write docs"
    assert (first.project_id, first.type, first.position) == (7, "todo", 0)
    assert second.position == 1
    assert owner.task_id == first.id and owner.user_id == "alice"
    assert first.created_at_utc is not None


def test_create_at_position_shifts_later_tasks(repo, seed):
    seed(1, "todo", "A", "B")
    task, _ = repo.create({"title": "N", "position": 1}, 1, "u1")
    assert task.position == 1
    assert {t.title: t.position for t in repo.list_partition(1, "todo")} == {"A": 0, "N": 1, "B": 2}


def test_create_position_past_the_end_is_clamped(repo, seed):
    seed(1, "todo", "A")
    task, _ = repo.create({"title": "N", "position": 9}, 1, "u1")
    assert task.position == 1


def test_create_validates_before_touching_backend():
    backend = MemoryBackend()
    repo = TaskRepository(backend)
    with pytest.raises(ValidationError):
        repo.create({"title": ""}, 1, "u1")
    with pytest.raises(ValidationError):
        repo.create({"title": "x", "project_id": 3}, 1, "u1")
    with pytest.raises(ValidationError):
        repo.create({"title": "x"}, 1, "")
    assert backend.calls == []


def test_create_rolls_back_task_when_owner_link_fails():
    backend = MemoryBackend()
    repo = TaskRepository(backend)
    repo.create({"title": "A"}, 1, "u1")
    backend.fail_on("insert", TASK_USERS)

    with pytest.raises(PartialFailure) as exc:
        repo.create({"title": "B"}, 1, "u1")

    assert exc.value.compensated is True
    assert isinstance(exc.value.__cause__, BackendError)
    assert [t.title for t in repo.list_by_project_id(1)] == ["A"]
    assert backend.positions(1, "todo") == {"A": 0}


def test_create_reports_failed_compensation():
    backend = MemoryBackend()
    repo = TaskRepository(backend)
    backend.fail_on("insert", TASK_USERS)
    backend.fail_on("delete", TASKS)

    with pytest.raises(PartialFailure) as exc:
        repo.create({"title": "A"}, 1, "u1")
    assert exc.value.compensated is False


def test_create_rollback_on_sqlite(sqlite_backend, monkeypatch):
    repo = TaskRepository(sqlite_backend)
    real_insert = sqlite_backend.insert

    def flaky_insert(table, row):
        if table == TASK_USERS:
            raise BackendError("permission denied")
        return real_insert(table, row)

    monkeypatch.setattr(sqlite_backend, "insert", flaky_insert)
    with pytest.raises(PartialFailure):
        repo.create({"title": "orphan?"}, 1, "u1")
    assert sqlite_backend.select(TASKS) == []


# --- update ----------------------------------------------------------------

def test_update_applies_partial_patch(repo, seed):
    task = seed(1, "todo", "A")["A"]
    updated = repo.update(task.id, {"description": "details"})
    assert updated.title == "A"
    assert updated.description == "details"
    assert updated.position == task.position


def test_update_missing_task(repo):
    with pytest.raises(NotFound):
        repo.update(999, {"title": "nope"})


def test_update_rejects_position_and_type(repo, seed):
    task = seed(1, "todo", "A")["A"]
    with pytest.raises(ValidationError):
        repo.update(task.id, {"position": 3})
    with pytest.raises(ValidationError):
        repo.update(task.id, {"type": "done"})


def test_empty_patch_returns_current_row(repo, seed):
    task = seed(1, "todo", "A")["A"]
    assert repo.update(task.id, {}).title == "A"


# --- delete / list ---------------------------------------------------------

def test_delete_returns_snapshot_and_closes_gap(repo, seed):
    tasks = seed(1, "todo", "A", "B", "C")
    gone = repo.delete(tasks["A"].id)
    assert gone.title == "A" and gone.position == 0
    assert {t.title: t.position for t in repo.list_partition(1, "todo")} == {"B": 0, "C": 1}


def test_delete_removes_owner_link(repo, backend, seed):
    task = seed(1, "todo", "A")["A"]
    repo.delete(task.id)
    with pytest.raises(NotFound):
        repo.get(task.id)
    assert backend.select(TASK_USERS, [eq("task_id", task.id)]) == []


def test_delete_missing_task(repo):
    with pytest.raises(NotFound):
        repo.delete(12345)


def test_list_by_project_id_is_scoped(repo, seed):
    seed(1, "todo", "A", "B")
    seed(2, "done", "C")
    assert sorted(t.title for t in repo.list_by_project_id(1)) == ["A", "B"]
    assert [t.title for t in repo.list_by_project_id(2)] == ["C"]
    assert repo.list_by_project_id(3) == []


# --- subscribe -------------------------------------------------------------

def test_subscribe_filters_by_project(repo, seed):
    seen = []
    sub = repo.subscribe(1, seen.append)
    seed(1, "todo", "A")
    seed(2, "todo", "B")

    assert [(p.event, p.new["title"]) for p in seen] == [("INSERT", "A")]

    sub.unsubscribe()
    seed(1, "todo", "C")
    assert len(seen) == 1


def test_subscribe_sees_every_row_a_move_touched(repo, seed):
    todo = seed(1, "todo", "A", "B")
    seen = []
    repo.subscribe(1, seen.append)
    repo.move(todo["A"].id, "done", 0)

    final = {}
    for p in seen:
        final[p.new["title"]] = (p.new["type"], p.new["position"])
    assert final == {"B": ("todo", 0), "A": ("done", 0)}


def test_rolled_back_move_publishes_nothing():
    backend = MemoryBackend()
    repo = TaskRepository(backend)
    a, _ = repo.create({"title": "A"}, 1, "u1")
    repo.create({"title": "B"}, 1, "u1")
    seen = []
    repo.subscribe(1, seen.append)

    backend.fail_on("update", TASKS, skip=1)
    with pytest.raises(PartialFailure):
        repo.move(a.id, "done", 0)
    assert seen == []
