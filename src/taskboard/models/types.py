# taskboard type definitions
# Rev 0.1.0

from __future__ import annotations
from typing import Literal, get_args

# Board columns, left to right
TaskType = Literal["backlog", "todo", "in_progress", "done"]
TASK_TYPES: tuple[str, ...] = get_args(TaskType)

ChangeEvent = Literal["INSERT", "UPDATE", "DELETE"]
