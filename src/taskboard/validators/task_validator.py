# Rev 0.1.0
"""Create/update payload schemas for tasks.

Validation runs before the repository touches the backend, so a bad payload
never costs a round trip.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from taskboard.errors import ValidationError
from taskboard.models.types import TaskType


class TaskCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    type: TaskType = "todo"
    position: Optional[int] = Field(default=None, ge=0)   # None -> append
    estimate_seconds: int = Field(default=0, ge=0)


class TaskUpdate(BaseModel):
    # position/type are not editable here; moves go through TaskRepository.move
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    estimate_seconds: Optional[int] = Field(default=None, ge=0)

    def patch(self) -> dict[str, Any]:
        """Only the fields the caller actually set."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


_task_type = TypeAdapter(TaskType)


def _describe(err: PydanticValidationError) -> str:
    parts = []
    for e in err.errors():
        loc = ".".join(str(p) for p in e.get("loc", ())) or "payload"
        parts.append(f"{loc}: {e.get('msg')}")
    return "; ".join(parts)


def validate_create(raw: Union[TaskCreate, Mapping[str, Any]]) -> TaskCreate:
    if isinstance(raw, TaskCreate):
        return raw
    try:
        return TaskCreate.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(_describe(e)) from e


def validate_update(raw: Union[TaskUpdate, Mapping[str, Any]]) -> TaskUpdate:
    if isinstance(raw, TaskUpdate):
        return raw
    try:
        return TaskUpdate.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(_describe(e)) from e


def validate_task_type(value: Any) -> str:
    try:
        return _task_type.validate_python(value)
    except PydanticValidationError as e:
        raise ValidationError(f"type: {value!r} is not a board column") from e
