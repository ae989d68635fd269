# Rev 0.1.0
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from taskboard.errors import BackendError
from taskboard.repositories.backend import ChangePayload, Filter, Row, Subscription
from taskboard.repositories.db import utc_now_iso
from taskboard.services.realtime import ChangeFeed, RealtimeBridge

logger = logging.getLogger(__name__)


class SQLiteBackend:
    """
    Backend adapter over a local SQLite database.

    - every write runs in a transaction; nested `transaction()` blocks join
      the outermost one
    - change payloads are queued per write and published on the feed only
      after the outermost commit (a rollback drops them)
    - table/column names are checked against the live schema before they are
      interpolated into SQL
    """

    def __init__(self, db_or_conn: Union[sqlite3.Connection, Any], feed: Optional[ChangeFeed] = None):
        self._db_or_conn = db_or_conn
        self.feed = feed if feed is not None else ChangeFeed()
        self._bridge = RealtimeBridge(self.feed)
        self._depth = 0
        self._pending: List[ChangePayload] = []
        self._columns: Dict[str, set[str]] = {}

    # -------------------------
    # Connection handling
    # -------------------------
    def _conn(self) -> sqlite3.Connection:
        c = None
        if isinstance(self._db_or_conn, sqlite3.Connection):
            c = self._db_or_conn
        elif hasattr(self._db_or_conn, "conn") and isinstance(self._db_or_conn.conn, sqlite3.Connection):
            c = self._db_or_conn.conn
        if c is None:
            raise RuntimeError(
                "SQLiteBackend: could not obtain sqlite3.Connection "
                "(expected .conn on wrapper, or a raw Connection)."
            )
        return c

    @contextmanager
    def _guard(self, what: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as e:
            raise BackendError(f"{what} failed: {e}") from e

    def _table_columns(self, table: str) -> set[str]:
        cols = self._columns.get(table)
        if cols is None:
            with self._guard(f"describe {table}"):
                rows = self._conn().execute(f"PRAGMA table_info({table})").fetchall()
            cols = {r[1] for r in rows}
            if not cols:
                raise BackendError(f"unknown table: {table}")
            self._columns[table] = cols
        return cols

    def _check_columns(self, table: str, names) -> None:
        unknown = set(names) - self._table_columns(table)
        if unknown:
            raise BackendError(f"unknown column(s) on {table}: {', '.join(sorted(unknown))}")

    def _where(self, table: str, filters: Sequence[Filter]) -> tuple[str, list[Any]]:
        if not filters:
            return "", []
        self._check_columns(table, [f.column for f in filters])
        clause = " AND ".join(f'"{f.column}" {f.sql_op} ?' for f in filters)
        return f" WHERE {clause}", [f.value for f in filters]

    @staticmethod
    def _to_dict(row: Union[sqlite3.Row, Mapping[str, Any]]) -> Row:
        return dict(row)

    def _by_ids(self, table: str, ids: Sequence[int]) -> List[Row]:
        if not ids:
            return []
        marks = ", ".join("?" for _ in ids)
        with self._guard(f"select {table}"):
            rows = self._conn().execute(f"SELECT * FROM {table} WHERE id IN ({marks})", list(ids)).fetchall()
        by_id = {r["id"]: self._to_dict(r) for r in rows}
        return [by_id[i] for i in ids if i in by_id]

    def _queue(self, payload: ChangePayload) -> None:
        self._pending.append(payload)

    # -------------------------
    # Transactions
    # -------------------------
    @contextmanager
    def transaction(self) -> Iterator["SQLiteBackend"]:
        con = self._conn()
        outer = self._depth == 0
        if outer:
            with self._guard("begin"):
                con.execute("BEGIN IMMEDIATE")
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if outer:
                self._pending.clear()
                if con.in_transaction:
                    con.execute("ROLLBACK")
                logger.debug("transaction rolled back")
            raise
        self._depth -= 1
        if outer:
            try:
                with self._guard("commit"):
                    con.execute("COMMIT")
            except BackendError:
                self._pending.clear()
                if con.in_transaction:
                    con.execute("ROLLBACK")
                logger.debug("commit failed, transaction rolled back")
                raise
            pending, self._pending = self._pending, []
            for p in pending:
                self.feed.publish(p)

    # -------------------------
    # Queries
    # -------------------------
    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Row]:
        where, params = self._where(table, filters)
        sql = f"SELECT * FROM {table}{where}"
        if order_by:
            self._check_columns(table, [order_by])
            sql += f' ORDER BY "{order_by}" {"DESC" if descending else "ASC"}'
        with self._guard(f"select {table}"):
            rows = self._conn().execute(sql, params).fetchall()
        return [self._to_dict(r) for r in rows]

    def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        values = dict(row)
        cols = self._table_columns(table)
        now = utc_now_iso()
        for stamp in ("created_at_utc", "updated_at_utc"):
            if stamp in cols:
                values.setdefault(stamp, now)
        self._check_columns(table, values)
        names = ", ".join(f'"{k}"' for k in values)
        marks = ", ".join("?" for _ in values)
        with self.transaction(), self._guard(f"insert {table}"):
            cur = self._conn().execute(f"INSERT INTO {table}({names}) VALUES ({marks})", list(values.values()))
            stored = self._by_ids(table, [cur.lastrowid])[0]
            self._queue(ChangePayload("INSERT", table, new=stored))
        logger.debug("insert %s id=%s", table, stored.get("id"))
        return stored

    def update(self, table: str, patch: Mapping[str, Any], filters: Sequence[Filter]) -> List[Row]:
        values = dict(patch)
        if "updated_at_utc" in self._table_columns(table):
            values["updated_at_utc"] = utc_now_iso()
        self._check_columns(table, values)
        with self.transaction():
            old_rows = self.select(table, filters)
            if not old_rows:
                return []
            ids = [r["id"] for r in old_rows]
            sets = ", ".join(f'"{k}" = ?' for k in values)
            marks = ", ".join("?" for _ in ids)
            with self._guard(f"update {table}"):
                self._conn().execute(
                    f"UPDATE {table} SET {sets} WHERE id IN ({marks})",
                    [*values.values(), *ids],
                )
            new_rows = self._by_ids(table, ids)
            for old, new in zip(old_rows, new_rows):
                self._queue(ChangePayload("UPDATE", table, new=new, old=old))
        return new_rows

    def delete(self, table: str, filters: Sequence[Filter]) -> List[Row]:
        with self.transaction():
            old_rows = self.select(table, filters)
            if not old_rows:
                return []
            ids = [r["id"] for r in old_rows]
            marks = ", ".join("?" for _ in ids)
            with self._guard(f"delete {table}"):
                self._conn().execute(f"DELETE FROM {table} WHERE id IN ({marks})", ids)
            for old in old_rows:
                self._queue(ChangePayload("DELETE", table, old=old))
        return old_rows

    def upsert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> List[Row]:
        if not rows:
            return []
        out: List[Row] = []
        cols = self._table_columns(table)
        with self.transaction():
            for row in rows:
                values = dict(row)
                if "id" not in values or values["id"] is None:
                    values.pop("id", None)
                    out.append(self.insert(table, values))
                    continue
                now = utc_now_iso()
                if "updated_at_utc" in cols:
                    values["updated_at_utc"] = now
                if "created_at_utc" in cols:
                    values.setdefault("created_at_utc", now)
                self._check_columns(table, values)
                old = self._by_ids(table, [values["id"]])
                names = ", ".join(f'"{k}"' for k in values)
                marks = ", ".join("?" for _ in values)
                updates = ", ".join(f'"{k}" = excluded."{k}"' for k in values if k not in ("id", "created_at_utc"))
                with self._guard(f"upsert {table}"):
                    self._conn().execute(
                        f"INSERT INTO {table}({names}) VALUES ({marks}) "
                        f"ON CONFLICT(id) DO UPDATE SET {updates}",
                        list(values.values()),
                    )
                stored = self._by_ids(table, [values["id"]])[0]
                if old:
                    self._queue(ChangePayload("UPDATE", table, new=stored, old=old[0]))
                else:
                    self._queue(ChangePayload("INSERT", table, new=stored))
                out.append(stored)
        logger.debug("upsert %s rows=%d", table, len(out))
        return out

    # -------------------------
    # Realtime
    # -------------------------
    def subscribe(
        self,
        table: str,
        callback: Callable[[ChangePayload], None],
        *,
        filter: Optional[Filter] = None,
    ) -> Subscription:
        self._table_columns(table)
        return self._bridge.subscribe(table, callback, filter=filter)
