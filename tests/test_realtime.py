# tests/test_realtime.py
from __future__ import annotations

import pytest

from taskboard.repositories.backend import ChangePayload, Filter, eq, gt
from taskboard.services.realtime import ChangeFeed, RealtimeBridge


def _payload(event="INSERT", table="tasks", **row):
    return ChangePayload(event, table, new=row or None)


def test_bridge_filters_table_and_row():
    feed = ChangeFeed()
    bridge = RealtimeBridge(feed)
    seen = []
    bridge.subscribe("tasks", seen.append, filter=eq("project_id", 1))

    feed.publish(_payload(id=1, project_id=1))
    feed.publish(_payload(id=2, project_id=2))
    feed.publish(_payload(table="task_users", id=3, project_id=1))

    assert [p.new["id"] for p in seen] == [1]


def test_delete_payload_matches_on_old_row():
    feed = ChangeFeed()
    seen = []
    RealtimeBridge(feed).subscribe("tasks", seen.append, filter=eq("project_id", 5))
    feed.publish(ChangePayload("DELETE", "tasks", old={"id": 9, "project_id": 5}))
    assert seen[0].event == "DELETE"
    assert seen[0].project_id == 5


def test_failing_callback_does_not_block_others():
    feed = ChangeFeed()
    bridge = RealtimeBridge(feed)
    seen = []

    def boom(_payload):
        raise RuntimeError("subscriber bug")

    bridge.subscribe("tasks", boom)
    bridge.subscribe("tasks", seen.append)
    feed.publish(_payload(id=1, project_id=1))
    assert len(seen) == 1


def test_unsubscribe_is_idempotent():
    feed = ChangeFeed()
    seen = []
    sub = RealtimeBridge(feed).subscribe("tasks", seen.append)
    sub.unsubscribe()
    sub.unsubscribe()
    feed.publish(_payload(id=1, project_id=1))
    assert seen == []
    assert sub.active is False


def test_filter_ops():
    row = {"position": 3, "type": "todo"}
    assert gt("position", 2).matches(row)
    assert not gt("position", 3).matches(row)
    assert Filter("position", "lte", 3).matches(row)
    assert not eq("missing", 1).matches(row)
    assert not eq("position", 3).matches(None)
    with pytest.raises(ValueError):
        Filter("position", "like", 3)
