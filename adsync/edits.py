"""Entry point for single edit events coming from the sheet.

The handler applies, in order: the linking toggle on the settings sheet,
the multi-cell guard, the read-only rules, the staged marker, linked-column
propagation and mismatch re-highlighting.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from adsync.cache import KeyValueCache
from adsync.errors import ReadOnlyViolation
from adsync.linking import (
    handle_linked_edit,
    handle_mismatch_edit,
    link_matching_columns,
    refresh_index,
)
from adsync.row_state import Notifier, check_edit, has_error, mark_row_as_staged, revert_edit
from adsync.rows import SheetRow, TabularStore
from settings import SheetConfig

logger = logging.getLogger(__name__)

MULTI_CELL_MESSAGE = (
    "You have edited multiple cells simultaneously, please undo (ctrl-z) "
    "in order for the sheet to function properly."
)


def column_letter(index: int) -> str:
    if index < 1:
        raise ValueError("Column index must be >= 1")
    letters: List[str] = []
    while index:
        index, remainder = divmod(index - 1, 26)
        letters.append(chr(65 + remainder))
    return "".join(reversed(letters))


@dataclass(slots=True)
class EditEvent:
    """A user edit as reported by the sheet trigger.

    ``old_value`` of ``None`` means the cell was empty before the edit.
    """

    sheet_name: str
    row: int
    column: int
    value: Any
    old_value: Any = None
    num_rows: int = 1
    num_columns: int = 1

    @property
    def is_multi_cell(self) -> bool:
        return self.num_rows > 1 or self.num_columns > 1

    def a1_notation(self) -> str:
        return f"{column_letter(self.column)}{self.row}"


@dataclass(slots=True)
class EditResult:
    handled: bool = False
    reverted: bool = False
    staged: bool = False
    relinked: bool = False
    linked_rows: List[int] = field(default_factory=list)
    message: Optional[str] = None


def _notify_log(message: str) -> None:
    logger.info("%s", message)


class EditHandler:
    """Applies edit events to the main sheet."""

    def __init__(
        self,
        store: TabularStore,
        cache: KeyValueCache,
        config: SheetConfig,
        *,
        main_sheet: str,
        settings_sheet: str,
        toggle_cell: str,
        linking_enabled: Callable[[], bool],
        notify: Optional[Notifier] = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._config = config
        self._main_sheet = main_sheet
        self._settings_sheet = settings_sheet
        self._toggle_cell = toggle_cell.upper()
        self._linking_enabled = linking_enabled
        self._notify = notify or _notify_log

    def on_edit(self, event: EditEvent) -> EditResult:
        if event.sheet_name == self._settings_sheet:
            return self._on_settings_edit(event)
        if event.sheet_name != self._main_sheet:
            return EditResult()

        if event.is_multi_cell:
            self._notify(MULTI_CELL_MESSAGE)
            return EditResult(handled=True, message=MULTI_CELL_MESSAGE)

        if event.row < self._config.first_content_row:
            return EditResult()

        column_name = self._config.column_name(event.column)
        if column_name is None:
            return EditResult()

        return self._on_cell_edit(event, column_name)

    def _on_settings_edit(self, event: EditEvent) -> EditResult:
        if event.is_multi_cell or event.a1_notation() != self._toggle_cell:
            return EditResult()
        value = "" if event.value is None else str(event.value)
        if value.strip().lower() != "on":
            return EditResult(handled=True)
        link_matching_columns(self._store, self._cache, self._config)
        return EditResult(handled=True, relinked=True)

    def _on_cell_edit(self, event: EditEvent, column_name: str) -> EditResult:
        config = self._config
        values = self._store.read_row(event.row)
        result = EditResult(handled=True)

        try:
            check_edit(values, config, event.row, column_name, event.old_value)
        except ReadOnlyViolation as violation:
            revert_edit(self._store, violation, event.column, event.old_value, self._notify)
            result.reverted = True
            result.message = str(violation)
            return result

        if has_error(values, config):
            mark_row_as_staged(self._store, event.row, config)
            result.staged = True

        linked: List[SheetRow] = []
        if column_name in config.linked_columns and self._linking_enabled():
            buckets = refresh_index(self._store, self._cache, config)
            linked = handle_linked_edit(
                self._store,
                buckets,
                config,
                event.row,
                event.column,
                event.old_value,
                event.value,
            )
            result.linked_rows = [row.row_index for row in linked]

        if column_name in config.mismatch_columns:
            handle_mismatch_edit(self._store, config, event.row, linked)

        return result


__all__ = ["EditEvent", "EditHandler", "EditResult", "MULTI_CELL_MESSAGE", "column_letter"]
