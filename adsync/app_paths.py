"""Centralised helpers for managing adsync application directories."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

_APP_ENV_VARS: Iterable[str] = ("ADSYNC_HOME", "XDG_DATA_HOME", "LOCALAPPDATA")


def _detect_base_directory() -> Path:
    for env_var in _APP_ENV_VARS:
        value = os.environ.get(env_var)
        if not value:
            continue
        base = Path(value).expanduser().resolve()
        return base if env_var == "ADSYNC_HOME" else base / "adsync"
    return Path.home().resolve() / ".adsync"


APP_DIR: Path = _detect_base_directory()
CACHE_DIR: Path = APP_DIR / "cache"
LOGS_DIR: Path = APP_DIR / "logs"
CREDENTIALS_DIR: Path = APP_DIR / "credentials"


def ensure_directory(path: Path) -> Path:
    """Ensure that ``path`` exists, returning the :class:`~pathlib.Path`."""

    path.mkdir(parents=True, exist_ok=True)
    return path


def ensure_app_structure() -> None:
    """Create the base directories required for application data."""

    for directory in (APP_DIR, CACHE_DIR, LOGS_DIR, CREDENTIALS_DIR):
        ensure_directory(directory)


def data_path(*parts: str) -> Path:
    """Return a path rooted inside :data:`APP_DIR`, creating parent directories."""

    ensure_app_structure()
    target = APP_DIR.joinpath(*parts)
    if target.parent and not target.parent.exists():
        target.parent.mkdir(parents=True, exist_ok=True)
    return target


def logs_path(*parts: str) -> Path:
    return data_path("logs", *parts)


def cache_path(*parts: str) -> Path:
    return data_path("cache", *parts)


def credentials_path(*parts: str) -> Path:
    return data_path("credentials", *parts)


__all__ = [
    "APP_DIR",
    "CACHE_DIR",
    "LOGS_DIR",
    "CREDENTIALS_DIR",
    "cache_path",
    "credentials_path",
    "data_path",
    "ensure_app_structure",
    "ensure_directory",
    "logs_path",
]
