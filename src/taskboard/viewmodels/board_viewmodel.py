# Rev 0.1.0 - optimistic moves + realtime reconcile
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional

from PySide6.QtCore import QObject, Signal

from taskboard.errors import TaskboardError
from taskboard.models.entities import Task
from taskboard.models.types import TASK_TYPES
from taskboard.repositories.backend import ChangePayload, Subscription

logger = logging.getLogger(__name__)


class BoardViewModel(QObject):
    """UI state for one project's board; mirrors the repository and its change feed."""

    boardReloaded = Signal(list)
    tasksChanged = Signal(list)
    taskRemoved = Signal(int)
    errorRaised = Signal(str)

    def __init__(self, tasks_repo, *, user_id: str):
        super().__init__()
        self._tasks = tasks_repo
        self._user_id = user_id
        self._project_id: Optional[int] = None
        self._rows: Dict[int, Task] = {}
        self._subscription: Optional[Subscription] = None

    @property
    def project_id(self) -> Optional[int]:
        return self._project_id

    # ---- project
    def set_project(self, project_id: int) -> None:
        self.close()
        self._project_id = project_id
        self._subscription = self._tasks.subscribe(project_id, self.apply_change)
        self.reload()

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    # ---- queries
    def reload(self) -> None:
        if self._project_id is None:
            self._rows = {}
            self.boardReloaded.emit([])
            return
        try:
            tasks = self._tasks.list_by_project_id(self._project_id)
        except TaskboardError as e:
            logger.exception("Reload failed for project %s", self._project_id)
            self.errorRaised.emit(str(e))
            return
        self._rows = {t.id: t for t in tasks}
        self.boardReloaded.emit(self.ordered())

    def task(self, task_id: int) -> Optional[Task]:
        return self._rows.get(task_id)

    def columns(self) -> Dict[str, List[Task]]:
        cols: Dict[str, List[Task]] = {t: [] for t in TASK_TYPES}
        for task in self._rows.values():
            cols.setdefault(task.type, []).append(task)
        for items in cols.values():
            items.sort(key=lambda t: (t.position, t.id))
        return cols

    def ordered(self) -> List[Task]:
        return [t for items in self.columns().values() for t in items]

    def total_remaining_seconds(self) -> int:
        return sum(t.estimate_seconds for t in self._rows.values() if t.type != "done")

    # ---- commands
    def create_task(self, payload: Mapping[str, Any]) -> Optional[Task]:
        if self._project_id is None:
            self.errorRaised.emit("no project selected")
            return None
        try:
            task, _owner = self._tasks.create(payload, self._project_id, self._user_id)
        except TaskboardError as e:
            self._fail("create", e)
            return None
        # inserting may have pushed later cards down; the feed or a reload covers those
        self._merge([task])
        return task

    def update_task(self, task_id: int, patch: Mapping[str, Any]) -> Optional[Task]:
        try:
            task = self._tasks.update(task_id, patch)
        except TaskboardError as e:
            self._fail("update", e)
            return None
        self._merge([task])
        return task

    def delete_task(self, task_id: int) -> bool:
        try:
            task = self._tasks.delete(task_id)
        except TaskboardError as e:
            self._fail("delete", e)
            return False
        self._remove(task.id)
        if self._subscription is None:
            # subscribed boards already received the shifted neighbours
            self._close_gap(task)
        return True

    def move_task(self, task_id: int, to_type: str, new_order: int) -> bool:
        local = self._apply_local_move(task_id, to_type, new_order)
        if local:
            self.tasksChanged.emit(local)
        try:
            changed = self._tasks.move(task_id, to_type, new_order)
        except TaskboardError as e:
            self._fail("move", e)
            return False
        self._merge(changed)
        return True

    # ---- realtime
    def apply_change(self, payload: ChangePayload) -> None:
        if payload.project_id != self._project_id:
            return
        if payload.event == "DELETE":
            if payload.old is not None:
                self._remove(int(payload.old["id"]))
            return
        if payload.new is not None:
            self._merge([Task.from_row(payload.new)])

    # ---- internals
    def _fail(self, what: str, err: TaskboardError) -> None:
        logger.error("%s failed: %s", what, err)
        self.errorRaised.emit(str(err))
        self.reload()

    def _merge(self, tasks: List[Task]) -> None:
        changed = [t for t in tasks if self._rows.get(t.id) != t]
        for t in changed:
            self._rows[t.id] = t
        if changed:
            self.tasksChanged.emit(changed)

    def _remove(self, task_id: int) -> None:
        if self._rows.pop(task_id, None) is not None:
            self.taskRemoved.emit(task_id)

    def _close_gap(self, deleted: Task) -> None:
        self._merge([
            replace(t, position=t.position - 1)
            for t in self._rows.values()
            if t.type == deleted.type and t.position > deleted.position
        ])

    def _apply_local_move(self, task_id: int, to_type: str, new_order: int) -> List[Task]:
        """Reorder the local columns the way the repository will; returns changed tasks."""
        moving = self._rows.get(task_id)
        if moving is None or to_type not in TASK_TYPES or new_order < 0:
            return []
        cols = self.columns()
        source = [t for t in cols[moving.type] if t.id != task_id]
        dest = source if to_type == moving.type else list(cols[to_type])
        dest.insert(min(new_order, len(dest)), moving)

        out: List[Task] = []
        for items in ([source, dest] if dest is not source else [dest]):
            for pos, t in enumerate(items):
                new_type = to_type if t.id == task_id else t.type
                if t.position != pos or t.type != new_type:
                    updated = replace(t, position=pos, type=new_type)
                    self._rows[t.id] = updated
                    out.append(updated)
        return out
