"""Linked-column bucket index.

The index groups row ids by the value a row holds in a linked column::

    {column: {hash(value): [row_id, ...] | None}}

Snapshots are stored as JSON in a :class:`~adsync.cache.KeyValueCache`.  The
hash is the 32-bit signed rolling hash (``h = h * 31 + unit``) over UTF-16
code units so that snapshots written by earlier deployments stay readable.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Union

from adsync.cache import KeyValueCache
from adsync.errors import BucketStorageError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRATION = 21600

ColumnKey = Union[int, str]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def cell_text(value: Any) -> str:
    """Return the text form used for hashing a cell value."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def hash_code(value: Any) -> int:
    """Return the signed 32-bit rolling hash of ``value``'s text."""

    text = cell_text(value)
    if not text:
        return 0
    encoded = text.encode("utf-16-le")
    result = 0
    for offset in range(0, len(encoded), 2):
        unit = encoded[offset] | (encoded[offset + 1] << 8)
        result = (result * 31 + unit) & 0xFFFFFFFF
    if result >= 0x80000000:
        result -= 0x100000000
    return result


class MatchingColumnBuckets:
    """Value → row-id buckets for each linked column."""

    def __init__(
        self,
        cache: KeyValueCache,
        storage_key: str,
        *,
        expiration: int = DEFAULT_EXPIRATION,
    ) -> None:
        if not storage_key:
            raise ValueError("A storage key is required")
        self._cache = cache
        self._storage_key = storage_key
        self._expiration = expiration
        self._buckets: Dict[str, Dict[str, Optional[List[int]]]] = {}

    @property
    def storage_key(self) -> str:
        return self._storage_key

    def is_empty(self) -> bool:
        return not self._buckets

    def add_value(self, column: ColumnKey, value: Any, row_id: int) -> None:
        if _is_blank(column) or _is_blank(value) or _is_blank(row_id):
            raise ValueError(
                f"Unable to add value {value!r} for row {row_id!r} in column {column!r}"
            )
        column_buckets = self._buckets.setdefault(str(column), {})
        key = str(hash_code(value))
        bucket = column_buckets.get(key)
        if bucket is None:
            bucket = []
            column_buckets[key] = bucket
        row_number = int(row_id)
        if row_number not in bucket:
            bucket.append(row_number)

    def get_value(self, column: ColumnKey, value: Any) -> Optional[List[int]]:
        """Return the rows sharing ``value`` in ``column``.

        ``None`` means the column has never been indexed; an empty list means
        no row currently holds the value.
        """

        column_buckets = self._buckets.get(str(column))
        if column_buckets is None:
            return None
        bucket = column_buckets.get(str(hash_code(value)))
        return list(bucket) if bucket else []

    def transfer_bucket(self, column: ColumnKey, old_value: Any, new_value: Any) -> None:
        """Move every row filed under ``old_value`` to ``new_value``.

        Membership of the target bucket is the old members followed by the
        existing target members, without duplicates.  The old bucket is
        nulled.
        """

        old_key = str(hash_code(old_value))
        new_key = str(hash_code(new_value))
        if old_key == new_key:
            return
        column_buckets = self._buckets.setdefault(str(column), {})
        moving = column_buckets.get(old_key) or []
        existing = column_buckets.get(new_key) or []
        merged: List[int] = []
        for row_id in list(moving) + list(existing):
            if row_id not in merged:
                merged.append(row_id)
        column_buckets[new_key] = merged
        column_buckets[old_key] = None

    def save(self) -> None:
        payload = json.dumps(self._buckets, separators=(",", ":"))
        self._cache.put(self._storage_key, payload, self._expiration)
        logger.debug("Saved bucket index %s (%d columns)", self._storage_key, len(self._buckets))

    def clear(self) -> None:
        self._cache.put(self._storage_key, None, self._expiration)
        self._buckets = {}

    def load(self) -> bool:
        """Load the persisted snapshot. Returns ``False`` when none exists."""

        raw = self._cache.get(self._storage_key)
        if raw is None:
            self._buckets = {}
            return False
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise BucketStorageError(
                f"Stored bucket index {self._storage_key!r} is not valid JSON: {exc.msg}"
            ) from exc
        if not isinstance(data, dict):
            raise BucketStorageError(
                f"Stored bucket index {self._storage_key!r} must be a JSON object"
            )
        buckets: Dict[str, Dict[str, Optional[List[int]]]] = {}
        for column, entries in data.items():
            if not isinstance(entries, dict):
                raise BucketStorageError(f"Column {column!r} in the bucket index is malformed")
            buckets[str(column)] = {
                str(key): (list(rows) if isinstance(rows, list) else None)
                for key, rows in entries.items()
            }
        self._buckets = buckets
        return True

    def to_dict(self) -> Dict[str, Dict[str, Optional[List[int]]]]:
        return {
            column: {key: (list(rows) if rows is not None else None) for key, rows in entries.items()}
            for column, entries in self._buckets.items()
        }


__all__ = ["MatchingColumnBuckets", "cell_text", "hash_code", "DEFAULT_EXPIRATION"]
