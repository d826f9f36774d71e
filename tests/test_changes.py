from __future__ import annotations

import json

from adsync import app_paths, changes
from adsync.changes import AdChange, RowChanges, format_changes, is_array_shallow_equal


def test_is_array_shallow_equal() -> None:
    nested = [1]
    assert is_array_shallow_equal([1, "a"], [1, "a"])
    assert not is_array_shallow_equal([1, "a"], ["a", 1])
    assert not is_array_shallow_equal([1], [1, 2])
    assert is_array_shallow_equal([nested], [nested])
    assert not is_array_shallow_equal([[1]], [[1]])
    assert not is_array_shallow_equal("ab", "ab")


def test_track_change_ignores_unchanged_values() -> None:
    change = AdChange(1, 10)
    change.track_change("status", "paused", "paused")
    change.track_change("labels", ["a"], ["a"])
    assert change.changes == []

    change.track_change("labels", ["a"], ["a", "b"])
    change.track_change("status", "enabled", "paused")
    assert [item.field_name for item in change.changes] == ["labels", "status"]


def test_format_changes_lines() -> None:
    sta = AdChange(111, 10)
    sta.track_change("status", "enabled", "paused")
    eta = AdChange(None, 10)
    eta.track_create(9001, 10)
    eta.track_change("labels", "", ["eta-upgrade"])
    eta.track_change("status", "", "paused")

    existing = AdChange(222, 10)
    existing.track_change("status", "enabled", "paused")

    lines = format_changes(
        [RowChanges(4, sta, eta), RowChanges(5, AdChange(), existing)]
    )

    assert lines == [
        'Standard text ad (111): status changed from "enabled" to "paused"',
        "Expanded text ad (9001): created",
        '+ labels changed from "" to "eta-upgrade"',
        '+ status changed from "" to "paused"',
        '+ Expanded text ad (222): status changed from "enabled" to "paused"',
    ]


def test_report_skips_empty_rows_and_writes_change_log() -> None:
    sta = AdChange(111, 10)
    sta.track_change("status", "enabled", "paused")
    log_path = app_paths.logs_path("changes.log")
    before = len(log_path.read_text(encoding="utf-8").splitlines()) if log_path.exists() else 0

    lines = changes.report(
        [RowChanges(4, sta, AdChange()), RowChanges(5, AdChange(), AdChange())],
        context={"customer_id": "42"},
    )

    assert lines == ['Standard text ad (111): status changed from "enabled" to "paused"']
    logged = log_path.read_text(encoding="utf-8").splitlines()[before:]
    assert len(logged) == 2
    payload = json.loads(logged[1].split(" ", 2)[2])
    assert payload["row"] == 4
    assert payload["customer_id"] == "42"
    assert payload["sta"]["changes"] == [{"field": "status", "old": "enabled", "new": "paused"}]
