"""
Where TickBot keeps its runtime data (currently just logs).

TICKBOT_APP_DATA_DIR overrides the per-user platform directory.
"""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path


APP_IDENTIFIER = "com.tickbot.app"
DATA_DIR_ENV = "TICKBOT_APP_DATA_DIR"


def _platform_data_root() -> Path:
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    if os.name == "nt":
        appdata = os.getenv("APPDATA", "").strip()
        return Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    xdg_data_home = os.getenv("XDG_DATA_HOME", "").strip()
    return Path(xdg_data_home) if xdg_data_home else Path.home() / ".local" / "share"


def _usable(directory: Path) -> bool:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return os.access(directory, os.W_OK)


def resolve_app_data_dir() -> Path:
    """
    Resolve the data directory, falling back to the system temp dir
    when the preferred location cannot be created or written.
    """
    override = os.getenv(DATA_DIR_ENV, "").strip()
    preferred = Path(override) if override else _platform_data_root() / APP_IDENTIFIER
    preferred = preferred.expanduser().resolve()
    if _usable(preferred):
        return preferred

    fallback = Path(tempfile.gettempdir()) / "tickbot-data"
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback


def default_log_directory() -> str:
    return str(resolve_app_data_dir() / "logs")
