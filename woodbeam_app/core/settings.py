from __future__ import annotations

import json
from typing import Any, Dict

from loguru import logger

from woodbeam_app.core.paths import settings_path


def load_settings() -> Dict[str, Any]:
    p = settings_path()
    if not p.exists():
        return {}
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable settings file {p}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring settings file {p}: top level is not an object")
        return {}
    return data


def tool_settings(tool_id: str) -> Dict[str, Any]:
    section = load_settings().get(tool_id, {})
    return dict(section) if isinstance(section, dict) else {}


def save_settings(data: Dict[str, Any]) -> None:
    p = settings_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
