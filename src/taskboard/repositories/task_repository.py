# Rev 0.1.0
from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, Union

from taskboard.errors import BackendError, NotFound, PartialFailure, ValidationError
from taskboard.models.entities import Task, TaskUser
from taskboard.repositories.backend import Backend, ChangePayload, Filter, Subscription, eq, gt, gte, lt, lte, neq
from taskboard.validators.task_validator import (
    TaskCreate,
    TaskUpdate,
    validate_create,
    validate_task_type,
    validate_update,
)

logger = logging.getLogger(__name__)

TASKS = "tasks"
TASK_USERS = "task_users"


class TaskRepository:
    """
    Task CRUD + move/reorder over an injected Backend.

    Positions are dense per (project_id, type) partition: {0..n-1} at rest.
    create/delete/move shift neighbours so that holds after every call.
    """

    def __init__(self, backend: Backend):
        self._backend = backend

    # -------------------------
    # Reads
    # -------------------------
    def get(self, task_id: int) -> Task:
        rows = self._backend.select(TASKS, [eq("id", task_id)])
        if not rows:
            raise NotFound(f"task {task_id} not found")
        return Task.from_row(rows[0])

    def list_by_project_id(self, project_id: int) -> List[Task]:
        return [Task.from_row(r) for r in self._backend.select(TASKS, [eq("project_id", project_id)])]

    def list_partition(self, project_id: int, task_type: str) -> List[Task]:
        rows = self._backend.select(
            TASKS,
            [eq("project_id", project_id), eq("type", validate_task_type(task_type))],
            order_by="position",
        )
        return [Task.from_row(r) for r in rows]

    def _count(self, project_id: int, task_type: str) -> int:
        return len(self._backend.select(TASKS, [eq("project_id", project_id), eq("type", task_type)]))

    # -------------------------
    # CRUD
    # -------------------------
    def create(
        self,
        payload: Union[TaskCreate, Mapping[str, Any]],
        project_id: int,
        user_id: str,
    ) -> Tuple[Task, TaskUser]:
        data = validate_create(payload)
        if not user_id:
            raise ValidationError("user_id: required")

        with self._backend.transaction():
            size = self._count(project_id, data.type)
            position = size if data.position is None else min(data.position, size)
            if position < size:
                self._shift(project_id, data.type, [gte("position", position)], +1)
            row = data.model_dump(exclude={"position"})
            row.update(project_id=project_id, position=position)
            task = Task.from_row(self._backend.insert(TASKS, row))

        try:
            owner = TaskUser.from_row(
                self._backend.insert(TASK_USERS, {"task_id": task.id, "user_id": user_id})
            )
        except BackendError as e:
            logger.warning("Owner link failed for task %s; removing it", task.id)
            try:
                self.delete(task.id)
            except Exception:
                logger.exception("Compensating delete failed for task %s", task.id)
                raise PartialFailure(
                    f"task {task.id} created but owner link failed and cleanup failed: {e}",
                    compensated=False,
                ) from e
            raise PartialFailure(f"owner link for new task failed: {e}", compensated=True) from e

        logger.info("Task created id=%s project=%s type=%s pos=%s", task.id, project_id, task.type, task.position)
        return task, owner

    def update(self, task_id: int, patch: Union[TaskUpdate, Mapping[str, Any]]) -> Task:
        fields = validate_update(patch).patch()
        if not fields:
            return self.get(task_id)
        rows = self._backend.update(TASKS, fields, [eq("id", task_id)])
        if not rows:
            raise NotFound(f"task {task_id} not found")
        logger.debug("Task updated id=%s fields=%s", task_id, sorted(fields))
        return Task.from_row(rows[0])

    def delete(self, task_id: int) -> Task:
        task = self.get(task_id)
        with self._backend.transaction():
            self._backend.delete(TASK_USERS, [eq("task_id", task_id)])
            self._backend.delete(TASKS, [eq("id", task_id)])
            self._shift(task.project_id, task.type, [gt("position", task.position)], -1)
        logger.info("Task deleted id=%s", task_id)
        return task

    # -------------------------
    # Move / reorder
    # -------------------------
    def move(self, task_id: int, to_type: str, new_order: int) -> List[Task]:
        """
        Put a task at `new_order` in column `to_type`.

        Returns every row the move touched (destination shifts, source shifts,
        then the moved task) so callers can reconcile without a re-fetch.
        The whole sequence runs in one backend transaction.
        """
        to_type = validate_task_type(to_type)
        if int(new_order) < 0:
            raise ValidationError(f"new_order: must be >= 0 (got {new_order})")
        try:
            with self._backend.transaction():
                changed = self._move(task_id, to_type, int(new_order))
        except BackendError as e:
            raise PartialFailure(f"move of task {task_id} rolled back: {e}", compensated=True) from e
        logger.info("Task moved id=%s -> %s@%s (%d rows)", task_id, to_type, changed[-1].position, len(changed))
        return changed

    def _move(self, task_id: int, to_type: str, new_order: int) -> List[Task]:
        current = self.get(task_id)
        project_id, from_type, from_pos = current.project_id, current.type, current.position

        shifted_to: List[Task] = []
        if to_type != from_type:
            new_order = min(new_order, self._count(project_id, to_type))
            # make room in the destination, then park the task there so the
            # source shift below does not see it
            shifted_to = self._shift(project_id, to_type, [gte("position", new_order)], +1)
            self._backend.update(TASKS, {"type": to_type, "position": 0}, [eq("id", task_id)])
            shifted_from = self._shift(project_id, from_type, [gt("position", from_pos)], -1, exclude_id=task_id)
        else:
            new_order = min(new_order, self._count(project_id, to_type) - 1)
            if new_order > from_pos:
                shifted_from = self._shift(
                    project_id, from_type, [gt("position", from_pos), lte("position", new_order)], -1,
                    exclude_id=task_id,
                )
            elif new_order < from_pos:
                shifted_from = self._shift(
                    project_id, from_type, [gte("position", new_order), lt("position", from_pos)], +1,
                    exclude_id=task_id,
                )
            else:
                shifted_from = []

        rows = self._backend.update(TASKS, {"type": to_type, "position": new_order}, [eq("id", task_id)])
        if not rows:
            raise NotFound(f"task {task_id} vanished during move")
        return [*shifted_to, *shifted_from, Task.from_row(rows[0])]

    def _shift(
        self,
        project_id: int,
        task_type: str,
        bounds: Sequence[Filter],
        delta: int,
        *,
        exclude_id: Optional[int] = None,
    ) -> List[Task]:
        filters = [eq("project_id", project_id), eq("type", task_type), *bounds]
        if exclude_id is not None:
            filters.append(neq("id", exclude_id))
        rows = self._backend.select(TASKS, filters, order_by="position", descending=delta > 0)
        if not rows:
            return []
        moved = [{**r, "position": r["position"] + delta} for r in rows]
        return [Task.from_row(r) for r in self._backend.upsert(TASKS, moved)]

    # -------------------------
    # Realtime
    # -------------------------
    def subscribe(self, project_id: int, callback: Callable[[ChangePayload], None]) -> Subscription:
        return self._backend.subscribe(TASKS, callback, filter=eq("project_id", project_id))
