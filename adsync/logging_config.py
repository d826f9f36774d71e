"""Application-wide logging configuration utilities."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from adsync import app_paths

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_LOG_PATH: Optional[Path] = None


def _attach_console(root_logger: logging.Logger) -> None:
    for handler in root_logger.handlers:
        if type(handler) is logging.StreamHandler:
            return
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(stream_handler)


def configure_logging(level: int = logging.INFO, *, console: bool = False) -> Path:
    """Configure logging to write to the adsync log file.

    Parameters
    ----------
    level:
        The minimum logging level for the root logger.
    console:
        Also mirror records to ``stderr``. Enabled by the CLI in debug mode.

    Returns
    -------
    pathlib.Path
        The path to the log file.
    """

    global _LOG_PATH

    root_logger = logging.getLogger()
    if _LOG_PATH is not None:
        root_logger.setLevel(min(root_logger.level, level))
        if console:
            _attach_console(root_logger)
        return _LOG_PATH

    log_path = app_paths.logs_path("adsync.log")
    try:
        log_path.touch(exist_ok=True)
    except OSError:
        pass

    if not root_logger.handlers:
        root_logger.setLevel(level)
    else:
        root_logger.setLevel(min(root_logger.level, level))

    formatter = logging.Formatter(LOG_FORMAT)
    already_configured = any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(log_path)
        for handler in root_logger.handlers
    )
    if not already_configured:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    if console:
        _attach_console(root_logger)

    _LOG_PATH = log_path
    root_logger.debug("Logging configured. Writing to %s", log_path)
    return log_path


def get_log_path() -> Path:
    """Return the path to the adsync log file, configuring logging if needed."""

    if _LOG_PATH is None:
        return configure_logging()
    return _LOG_PATH


__all__ = ["LOG_FORMAT", "configure_logging", "get_log_path"]
