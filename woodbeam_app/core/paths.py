from __future__ import annotations

import os
from pathlib import Path

APP_NAME = "WoodBeamToolbox"
DATA_DIR_ENV = "WOODBEAM_DATA_DIR"


def user_data_dir() -> Path:
    """
    Writable location for logs/settings.
    Override with %WOODBEAM_DATA_DIR%; otherwise %LOCALAPPDATA%\\WoodBeamToolbox\\ (or the home dir).
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        p = Path(override)
    else:
        base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA") or str(Path.home())
        p = Path(base) / APP_NAME
    p.mkdir(parents=True, exist_ok=True)
    return p


def logs_dir() -> Path:
    p = user_data_dir() / "logs"
    p.mkdir(parents=True, exist_ok=True)
    return p


def runs_dir() -> Path:
    p = user_data_dir() / "runs"
    p.mkdir(parents=True, exist_ok=True)
    return p


def settings_path() -> Path:
    return user_data_dir() / "settings.json"
