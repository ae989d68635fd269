# Rev 0.1.0
"""Backend contract the task repository is written against.

The repository never talks to SQLite (or any other store) directly; it only
uses the capabilities below. One adapter per store implements them.
"""
from __future__ import annotations

import operator
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from taskboard.models.types import ChangeEvent

Row = Dict[str, Any]

# op name -> (SQL operator, python comparison)
OPS: Dict[str, tuple[str, Callable[[Any, Any], bool]]] = {
    "eq": ("=", operator.eq),
    "neq": ("!=", operator.ne),
    "gt": (">", operator.gt),
    "gte": (">=", operator.ge),
    "lt": ("<", operator.lt),
    "lte": ("<=", operator.le),
}


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in OPS:
            raise ValueError(f"unsupported filter op: {self.op!r}")

    @property
    def sql_op(self) -> str:
        return OPS[self.op][0]

    def matches(self, row: Optional[Mapping[str, Any]]) -> bool:
        if row is None or self.column not in row:
            return False
        left = row[self.column]
        if left is None:
            return False
        return OPS[self.op][1](left, self.value)


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, "neq", value)


def gt(column: str, value: Any) -> Filter:
    return Filter(column, "gt", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lt(column: str, value: Any) -> Filter:
    return Filter(column, "lt", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


def matches_all(row: Optional[Mapping[str, Any]], filters: Iterable[Filter]) -> bool:
    return all(f.matches(row) for f in filters)


@dataclass(frozen=True)
class ChangePayload:
    """Raw change notification for one row of one table."""
    event: ChangeEvent
    table: str
    new: Optional[Row] = None
    old: Optional[Row] = None

    @property
    def record(self) -> Optional[Row]:
        return self.new if self.new is not None else self.old

    @property
    def project_id(self) -> Optional[int]:
        rec = self.record
        return rec.get("project_id") if rec else None


@dataclass
class Subscription:
    _disconnect: Callable[[], None]
    active: bool = field(default=True)

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._disconnect()


class Backend(Protocol):
    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Row]: ...

    def insert(self, table: str, row: Mapping[str, Any]) -> Row: ...

    def update(self, table: str, patch: Mapping[str, Any], filters: Sequence[Filter]) -> List[Row]: ...

    def delete(self, table: str, filters: Sequence[Filter]) -> List[Row]: ...

    def upsert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> List[Row]: ...

    def transaction(self) -> AbstractContextManager[Any]: ...

    def subscribe(
        self,
        table: str,
        callback: Callable[[ChangePayload], None],
        *,
        filter: Optional[Filter] = None,
    ) -> Subscription: ...
