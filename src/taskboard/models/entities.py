# Rev 0.1.0
"""Lightweight entities aligned with migrations 0001/0002 (tasks + task_users)"""
from __future__ import annotations
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional


@dataclass
class Task:
    id: int
    project_id: int
    type: str
    position: int
    title: str
    description: str = ""
    estimate_seconds: int = 0
    created_at_utc: Optional[str] = None
    updated_at_utc: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Task":
        return cls(
            id=int(row["id"]),
            project_id=int(row["project_id"]),
            type=str(row["type"]),
            position=int(row["position"]),
            title=str(row["title"]),
            description=str(row.get("description") or ""),
            estimate_seconds=int(row.get("estimate_seconds") or 0),
            created_at_utc=row.get("created_at_utc"),
            updated_at_utc=row.get("updated_at_utc"),
        )


@dataclass
class TaskUser:
    id: int
    task_id: int
    user_id: str
    created_at_utc: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TaskUser":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in row.items() if k in known})
