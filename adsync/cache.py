"""Expiring key-value caches used to persist the linked-column index.

``MemoryCache`` keeps entries for the lifetime of the process while
``SqliteCache`` stores them in a small SQLite file so that separate CLI
invocations (for example one per edit event) share a snapshot.
"""
from __future__ import annotations

import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol, Tuple, Union

logger = logging.getLogger(__name__)

CACHE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL NOT NULL
)
"""


class KeyValueCache(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def put(self, key: str, value: Optional[str], ttl_seconds: int) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryCache:
    """Process-local cache with per-entry expiration."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def put(self, key: str, value: Optional[str], ttl_seconds: int) -> None:
        if value is None:
            self.remove(key)
            return
        with self._lock:
            self._entries[key] = (value, self._clock() + max(0, ttl_seconds))

    def remove(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)


class SqliteCache:
    """Cache persisted in a SQLite database file."""

    def __init__(
        self,
        path: Union[str, Path],
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._path = str(path)
        self._clock = clock
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._path)
        with self._conn:
            self._conn.execute(CACHE_TABLE_SQL)

    @property
    def path(self) -> str:
        return self._path

    def get(self, key: str) -> Optional[str]:
        row = self._conn.execute(
            "SELECT value, expires_at FROM cache_entries WHERE key = ?",
            (key,),
        ).fetchone()
        if row is None:
            return None
        value, expires_at = row
        if float(expires_at) <= self._clock():
            logger.debug("Cache entry %s expired", key)
            self.remove(key)
            return None
        return str(value)

    def put(self, key: str, value: Optional[str], ttl_seconds: int) -> None:
        if value is None:
            self.remove(key)
            return
        expires_at = self._clock() + max(0, ttl_seconds)
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO cache_entries(key, value, expires_at)
                VALUES(?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    expires_at = excluded.expires_at
                """,
                (key, value, expires_at),
            )

    def remove(self, key: str) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))

    def close(self) -> None:
        self._conn.close()


__all__ = ["KeyValueCache", "MemoryCache", "SqliteCache", "CACHE_TABLE_SQL"]
