# tests/test_utils.py
from __future__ import annotations

import json

import pytest

from taskboard.utils.config import load_settings, save_settings
from taskboard.utils.timefmt import seconds_to_hhmmss


@pytest.mark.parametrize(
    "seconds,expected",
    [(0, "00:00:00"), (59, "00:00:59"), (3661, "01:01:01"), (90000, "25:00:00"), (-4, "00:00:00")],
)
def test_seconds_to_hhmmss(seconds, expected):
    assert seconds_to_hhmmss(seconds) == expected


def test_settings_merge_over_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("TASKBOARD_DB", raising=False)
    monkeypatch.delenv("TASKBOARD_USER", raising=False)
    path = tmp_path / "settings.json"
    save_settings({"project_id": 4}, path)
    data = load_settings(path)
    assert data["project_id"] == 4
    assert data["user_id"] == "local"


def test_env_overrides_settings(tmp_path, monkeypatch):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"user_id": "file"}), encoding="utf-8")
    monkeypatch.setenv("TASKBOARD_USER", "env")
    assert load_settings(path)["user_id"] == "env"


def test_broken_settings_fall_back(tmp_path, monkeypatch):
    monkeypatch.delenv("TASKBOARD_USER", raising=False)
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_settings(path)["user_id"] == "local"
