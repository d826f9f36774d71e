"""Read-only rules and error/staged presentation for edited rows."""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence

from adsync.errors import ReadOnlyViolation
from adsync.rows import TabularStore, is_blank
from settings import ERROR_COLUMN, SheetConfig

logger = logging.getLogger(__name__)

DISABLED = "disabled"

Notifier = Callable[[str], None]


def _normalised(value: Any) -> str:
    return "" if value is None else str(value).strip().lower()


def _cell(values: Sequence[Any], config: SheetConfig, column_name: str) -> Any:
    index = config.column_map().get(column_name)
    if index is None or index >= len(values):
        return ""
    return values[index]


def is_read_only(
    values: Sequence[Any],
    config: SheetConfig,
    column_name: str,
    old_value: Any,
) -> bool:
    """Return ``True`` when ``column_name`` may not be edited on this row.

    ``values`` are the row's current cells; ``old_value`` is the content of
    the edited cell before the edit.
    """

    if column_name in config.read_only_columns:
        return True

    if column_name in config.status_columns and _normalised(old_value) == DISABLED:
        return True

    if column_name in config.eta_columns:
        # ``values`` already hold the edit, so the status cell itself is
        # judged by the value it had before.
        if column_name == "eta_status":
            previous_status = old_value
        else:
            previous_status = _cell(values, config, "eta_status")
        if _normalised(previous_status) == DISABLED:
            return True
        if not is_blank(_cell(values, config, "eta_id")) and column_name not in config.status_columns:
            return True

    return False


def check_edit(
    values: Sequence[Any],
    config: SheetConfig,
    row_index: int,
    column_name: str,
    old_value: Any,
) -> None:
    """Raise :class:`ReadOnlyViolation` if the edit must be rejected."""

    if is_read_only(values, config, column_name, old_value):
        raise ReadOnlyViolation(column_name, row_index)


def revert_edit(
    store: TabularStore,
    violation: ReadOnlyViolation,
    column_index: int,
    old_value: Any,
    notify: Optional[Notifier] = None,
) -> None:
    """Restore ``old_value`` into the rejected cell and tell the user."""

    store.write_cell(violation.row_index, column_index, "" if old_value is None else old_value)
    logger.info("Reverted edit of %s on row %s", violation.field, violation.row_index)
    if notify is not None:
        notify(str(violation))


def has_error(values: Sequence[Any], config: SheetConfig) -> bool:
    return not is_blank(_cell(values, config, ERROR_COLUMN))


def mark_row_as_staged(store: TabularStore, row_index: int, config: SheetConfig) -> None:
    """Paint a previously failing row to show it carries pending edits."""

    if row_index < 1:
        raise ValueError("Cannot mark row as staged without a valid row index")
    store.set_background(row_index, None, config.staged_color)


__all__ = [
    "DISABLED",
    "Notifier",
    "check_edit",
    "has_error",
    "is_read_only",
    "mark_row_as_staged",
    "revert_edit",
]
