# src/taskboard/utils/config.py
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional
from .paths import DB_PATH, config_dir

logger = logging.getLogger(__name__)

SETTINGS_NAME = "settings.json"

_DEFAULTS: Dict[str, Any] = {
    "db_path": str(DB_PATH),
    "project_id": 1,
    "user_id": "local",
}

_ENV = {
    "db_path": "TASKBOARD_DB",
    "user_id": "TASKBOARD_USER",
}


def settings_file() -> Path:
    return config_dir() / SETTINGS_NAME


def load_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    path = path or settings_file()
    data = dict(_DEFAULTS)
    if path.exists():
        try:
            data.update(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable settings %s: %s", path, e)
    for key, env in _ENV.items():
        if os.environ.get(env):
            data[key] = os.environ[env]
    return data


def save_settings(data: Dict[str, Any], path: Optional[Path] = None) -> None:
    path = path or settings_file()
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
