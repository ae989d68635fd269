# Rev 0.1.0

# src/taskboard/main.py  (Rev 0.1.0)
# Usage examples:
#   taskboard list
#   taskboard add "Write release notes" --type todo --estimate 1800
#   taskboard mv 12 in_progress 0
#   taskboard edit 12 --title "Release notes v2"
#   taskboard rm 12
#   taskboard total
#
# DB path / user / project default to settings.json, overridable by
# TASKBOARD_DB / TASKBOARD_USER or the flags below.
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from taskboard.errors import BackendError, NotFound, ValidationError
from taskboard.models.entities import Task
from taskboard.models.types import TASK_TYPES
from taskboard.repositories.db import Database
from taskboard.repositories.sqlite_backend import SQLiteBackend
from taskboard.repositories.task_repository import TaskRepository
from taskboard.utils.config import load_settings
from taskboard.utils.logging_setup import setup_logging
from taskboard.utils.timefmt import seconds_to_hhmmss
from taskboard.viewmodels.board_viewmodel import BoardViewModel

logger = logging.getLogger(__name__)


def _build_repository(db_path: str) -> tuple[Database, TaskRepository]:
    db = Database(db_path)
    db.run_migrations()
    return db, TaskRepository(SQLiteBackend(db))


def _fmt(task: Task) -> str:
    est = f"  [{seconds_to_hhmmss(task.estimate_seconds)}]" if task.estimate_seconds else ""
    return f"{task.id:>5}  {task.type:<12} {task.position:>3}  {task.title}{est}"


def cmd_list(board: BoardViewModel, only: Optional[str]) -> int:
    for col, tasks in board.columns().items():
        if only and col != only:
            continue
        print(f"== {col} ({len(tasks)})")
        for t in tasks:
            print(_fmt(t))
    return 0


def cmd_total(board: BoardViewModel) -> int:
    print(seconds_to_hhmmss(board.total_remaining_seconds()))
    return 0


def parse_args(argv: list[str], defaults: dict) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="taskboard", description="Kanban task board")
    p.add_argument("--db", type=Path, default=Path(defaults["db_path"]), help="Path to SQLite DB")
    p.add_argument("--project", type=int, default=int(defaults["project_id"]), help="Project id")
    p.add_argument("--user", default=str(defaults["user_id"]), help="Owner recorded on new tasks")
    p.add_argument("--debug", action="store_true", help="Log at DEBUG level")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_list = sub.add_parser("list", help="Show the board, column by column")
    s_list.add_argument("--type", choices=TASK_TYPES, help="Only this column")

    s_add = sub.add_parser("add", help="Create a task")
    s_add.add_argument("title")
    s_add.add_argument("--description", default="")
    s_add.add_argument("--type", choices=TASK_TYPES, default="todo")
    s_add.add_argument("--position", type=int, help="Index in the column (default: append)")
    s_add.add_argument("--estimate", type=int, default=0, help="Estimate in seconds")

    s_edit = sub.add_parser("edit", help="Edit title/description/estimate")
    s_edit.add_argument("id", type=int)
    s_edit.add_argument("--title")
    s_edit.add_argument("--description")
    s_edit.add_argument("--estimate", type=int)

    s_mv = sub.add_parser("mv", help="Move a task to a column and index")
    s_mv.add_argument("id", type=int)
    s_mv.add_argument("type", choices=TASK_TYPES)
    s_mv.add_argument("position", type=int)

    s_rm = sub.add_parser("rm", help="Delete a task")
    s_rm.add_argument("id", type=int)

    sub.add_parser("total", help="Remaining estimated time (everything not done)")

    return p.parse_args(argv)


def run(ns: argparse.Namespace, repo: TaskRepository) -> int:
    board = BoardViewModel(repo, user_id=ns.user)
    board.set_project(ns.project)
    try:
        if ns.cmd == "list":
            return cmd_list(board, ns.type)
        if ns.cmd == "total":
            return cmd_total(board)
        if ns.cmd == "add":
            payload = {"title": ns.title, "description": ns.description, "type": ns.type,
                       "position": ns.position, "estimate_seconds": ns.estimate}
            task, _owner = repo.create(payload, ns.project, ns.user)
            print(_fmt(task))
            return 0
        if ns.cmd == "edit":
            patch = {"title": ns.title, "description": ns.description, "estimate_seconds": ns.estimate}
            print(_fmt(repo.update(ns.id, {k: v for k, v in patch.items() if v is not None})))
            return 0
        if ns.cmd == "mv":
            for t in repo.move(ns.id, ns.type, ns.position):
                print(_fmt(t))
            return 0
        # rm
        print(_fmt(repo.delete(ns.id)))
        return 0
    finally:
        board.close()


def main(argv: Optional[list[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    ns = parse_args(argv, load_settings())
    setup_logging("taskboard", level_name="DEBUG" if ns.debug else None)

    db, repo = _build_repository(str(ns.db))
    try:
        return run(ns, repo)
    except (ValidationError, NotFound) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except BackendError as e:
        logger.error("backend failure: %s", e)
        print(f"error: {e}", file=sys.stderr)
        return 2
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
