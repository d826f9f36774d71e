from __future__ import annotations

import json

import pytest

from adsync.buckets import MatchingColumnBuckets, hash_code
from adsync.cache import MemoryCache
from adsync.errors import BucketStorageError


def _buckets(cache: MemoryCache | None = None) -> MatchingColumnBuckets:
    return MatchingColumnBuckets(cache or MemoryCache(), "test-buckets")


def test_hash_code_matches_rolling_hash() -> None:
    assert hash_code("") == 0
    assert hash_code("a") == 97
    assert hash_code("ab") == 97 * 31 + 98
    assert hash_code("hello") == 99162322


def test_hash_code_wraps_to_signed_32_bits() -> None:
    assert hash_code("polygenelubricants") == -(2 ** 31)


def test_hash_code_treats_integral_floats_like_their_text() -> None:
    assert hash_code(123.0) == hash_code("123") == hash_code(123)


def test_add_value_rejects_blank_arguments() -> None:
    buckets = _buckets()
    with pytest.raises(ValueError):
        buckets.add_value(1, "", 4)
    with pytest.raises(ValueError):
        buckets.add_value("", "value", 4)
    with pytest.raises(ValueError):
        buckets.add_value(1, "value", None)


def test_get_value_distinguishes_unknown_column_from_empty_bucket() -> None:
    buckets = _buckets()
    assert buckets.get_value(1, "x") is None

    buckets.add_value(1, "x", 4)
    buckets.add_value(1, "x", 6)
    assert buckets.get_value(1, "x") == [4, 6]
    assert buckets.get_value(1, "y") == []


def test_add_value_stores_each_row_once() -> None:
    buckets = _buckets()
    buckets.add_value(1, "x", "3")
    buckets.add_value(1, "x", 3)
    buckets.add_value(1, "x", 3)
    assert buckets.get_value(1, "x") == [3]


def test_transfer_bucket_preserves_membership() -> None:
    buckets = _buckets()
    buckets.add_value(2, "old", 4)
    buckets.add_value(2, "old", 5)
    buckets.add_value(2, "new", 7)

    buckets.transfer_bucket(2, "old", "new")

    assert buckets.get_value(2, "new") == [4, 5, 7]
    assert buckets.get_value(2, "old") == []
    assert buckets.to_dict()["2"][str(hash_code("old"))] is None


def test_transfer_bucket_does_not_duplicate_rows() -> None:
    buckets = _buckets()
    buckets.add_value(2, "old", 4)
    buckets.add_value(2, "new", 4)

    buckets.transfer_bucket(2, "old", "new")

    assert buckets.get_value(2, "new") == [4]


def test_transfer_to_same_value_keeps_bucket() -> None:
    buckets = _buckets()
    buckets.add_value(3, "same", 4)

    buckets.transfer_bucket(3, "same", "same")

    assert buckets.get_value(3, "same") == [4]


def test_save_and_load_round_trip_through_cache() -> None:
    cache = MemoryCache()
    buckets = _buckets(cache)
    buckets.add_value(1, "x", 4)
    buckets.transfer_bucket(1, "x", "y")
    buckets.save()

    stored = json.loads(cache.get("test-buckets"))
    assert stored["1"][str(hash_code("y"))] == [4]
    assert stored["1"][str(hash_code("x"))] is None

    reloaded = _buckets(cache)
    assert reloaded.load() is True
    assert reloaded.get_value(1, "y") == [4]


def test_load_without_snapshot_returns_false() -> None:
    buckets = _buckets()
    assert buckets.load() is False
    assert buckets.is_empty()


def test_load_rejects_malformed_snapshot() -> None:
    cache = MemoryCache()
    cache.put("test-buckets", "{not json", 60)

    with pytest.raises(BucketStorageError):
        _buckets(cache).load()


def test_clear_drops_snapshot() -> None:
    cache = MemoryCache()
    buckets = _buckets(cache)
    buckets.add_value(1, "x", 4)
    buckets.save()

    buckets.clear()

    assert cache.get("test-buckets") is None
    assert buckets.is_empty()
