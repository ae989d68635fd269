# Rev 0.1.0

"""SQLite connection & migration runner (Rev 0.1.0)
- WAL mode, foreign_keys=ON, autocommit (transactions are explicit)
- Applies SQL files in taskboard/data/migrations in lexical order
- Tracks applied files in schema_migrations(filename, sha256, applied_at_utc)
"""
from __future__ import annotations
import hashlib
import logging
import sqlite3
from pathlib import Path
from datetime import datetime, timezone

from taskboard.utils.paths import DB_PATH, MIGRATIONS_DIR

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class Database:
    def __init__(self, path: Path | str = DB_PATH) -> None:
        self.path = str(path)
        if self.path != MEMORY:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path, isolation_level=None, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL;")
        self.conn.execute("PRAGMA foreign_keys=ON;")
        self.conn.execute("PRAGMA busy_timeout=5000;")
        self.conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_migrations ("
            "filename TEXT PRIMARY KEY, sha256 TEXT NOT NULL, applied_at_utc TEXT NOT NULL)"
        )
        logger.info("SQLite open %s", self.path)

    def close(self) -> None:
        self.conn.close()

    def applied(self) -> dict[str, str]:
        rows = self.conn.execute("SELECT filename, sha256 FROM schema_migrations").fetchall()
        return {r[0]: r[1] for r in rows}

    def apply_sql(self, sql: str) -> None:
        # executescript commits anything pending first, so the BEGIN lives in the script
        try:
            self.conn.executescript(f"BEGIN;\n{sql}\nCOMMIT;")
        except Exception:
            if self.conn.in_transaction:
                self.conn.execute("ROLLBACK;")
            raise

    def run_migrations(self, migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
        applied = self.applied()
        done: list[str] = []
        for p in sorted(Path(migrations_dir).glob("*.sql")):
            sql = p.read_text(encoding="utf-8")
            digest = hashlib.sha256(sql.encode("utf-8")).hexdigest()
            if p.name in applied:
                if applied[p.name] != digest:
                    logger.warning("Migration %s changed after it was applied", p.name)
                continue
            logger.info("Applying migration %s", p.name)
            self.apply_sql(sql)
            self.conn.execute(
                "INSERT INTO schema_migrations(filename, sha256, applied_at_utc) VALUES(?, ?, ?)",
                (p.name, digest, utc_now_iso()),
            )
            done.append(p.name)
        return done
