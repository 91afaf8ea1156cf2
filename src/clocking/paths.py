"""Helpers for locating the clocking store."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Union

from platformdirs import PlatformDirs

from .db import IN_MEMORY

APP_NAME = "clocking"
APP_AUTHOR = "clocking"
STORE_FILE_VAR = "CLOCKING_FILE"


def get_data_dir() -> Path:
    """Return the base directory for persistent data."""
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
    path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_db_path() -> Path:
    return get_data_dir() / "clocking.sqlite3"


def resolve_store_location(explicit: Optional[Union[str, Path]] = None) -> Union[str, Path]:
    """Pick the store location: explicit value, then $CLOCKING_FILE, then the data dir."""
    if explicit:
        return IN_MEMORY if str(explicit) == IN_MEMORY else Path(explicit)
    from_env = os.environ.get(STORE_FILE_VAR)
    if from_env:
        return IN_MEMORY if from_env == IN_MEMORY else Path(from_env)
    return get_db_path()
