"""
File logging for the bot process.
"""
from __future__ import annotations

from pathlib import Path
import logging


LOG_FILE_NAME = "tickbot.log"
_FILE_HANDLER_TAG = "tickbot_file_handler"


def configure_file_logging(log_directory: str) -> Path:
    """
    Add (or replace) the root file handler writing to <log_directory>/tickbot.log.

    Returns:
        Resolved log directory
    """
    log_dir = Path(log_directory).expanduser().resolve()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root_logger = logging.getLogger()
    existing = next((h for h in root_logger.handlers if getattr(h, "name", "") == _FILE_HANDLER_TAG), None)
    if existing:
        root_logger.removeHandler(existing)
        existing.close()

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.name = _FILE_HANDLER_TAG
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    root_logger.addHandler(file_handler)
    if root_logger.level > logging.INFO:
        root_logger.setLevel(logging.INFO)
    return log_dir


def remove_file_logging() -> None:
    """Detach and close the handler added by configure_file_logging()."""
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, "name", "") == _FILE_HANDLER_TAG:
            root_logger.removeHandler(handler)
            handler.close()
