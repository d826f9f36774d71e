"""Typed access to a single sheet row.

:class:`SheetRow` wraps the values of one row together with the column
layout from :class:`settings.SheetConfig`.  Reads come from the cached
values, writes go straight through to the :class:`TabularStore` so that the
sheet always reflects what the engine decided.

Helpers
-------
``get_content_rows``
    Read every non-empty row below the header in one call.
``validate_headers``
    Compare the header row against the configured column order.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Union

from adsync.errors import ConfigurationError, RowValidationError
from settings import ERROR_COLUMN, SheetConfig

logger = logging.getLogger(__name__)

SUPPORTED_STATUSES = ("enabled", "paused", "disabled", "")

_HEADER_STRIP_RE = re.compile(r"[\W_]+")


class TabularStore(Protocol):
    """Minimal surface of a sheet needed by the engine.

    Row and column indices are 1-based like the sheet itself.
    """

    def read_rows(self, first_row: int, last_row: int) -> List[List[Any]]:
        ...

    def read_row(self, row_index: int) -> List[Any]:
        ...

    def write_cell(self, row_index: int, column_index: int, value: Any) -> None:
        ...

    def set_background(
        self,
        row_index: int,
        column_index: Optional[int],
        color: Optional[str],
    ) -> None:
        ...

    def last_row(self) -> int:
        ...

    def last_column(self) -> int:
        ...


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


class SheetRow:
    def __init__(
        self,
        store: TabularStore,
        row_index: int,
        values: Sequence[Any],
        config: SheetConfig,
        *,
        resolve: bool = False,
        validate: bool = True,
    ) -> None:
        columns = config.column_map()
        if ERROR_COLUMN not in columns:
            raise ConfigurationError(
                f"`{ERROR_COLUMN}` must be configured to record row errors."
            )
        self._store = store
        self._row_index = row_index
        self._config = config
        self._columns: Dict[str, int] = columns
        padded = list(values)[: len(config.columns)]
        padded.extend([""] * (len(config.columns) - len(padded)))
        self._values: List[Any] = padded
        self._has_errors = False

        if resolve:
            self.mark_as_resolved()
        if validate:
            self._validate_statuses()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------
    @property
    def row_index(self) -> int:
        return self._row_index

    @property
    def config(self) -> SheetConfig:
        return self._config

    def values(self) -> List[Any]:
        return list(self._values)

    def has_errors(self) -> bool:
        """Return ``True`` if this row was marked with an error."""

        return self._has_errors

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def _column_index(self, column_name: str) -> int:
        try:
            return self._columns[column_name]
        except KeyError:
            raise ConfigurationError(f'Column "{column_name}" does not exist.') from None

    def get(self, column_name: str) -> Any:
        return self._values[self._column_index(column_name)]

    def get_string(self, column_name: str) -> str:
        value = self.get(column_name)
        if value is None:
            return ""
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)

    def get_number(self, column_name: str) -> Union[int, float]:
        value = self.get(column_name)
        if isinstance(value, bool):
            raise RowValidationError(
                f'Value stored in "{column_name}" is not a valid number.', field=column_name
            )
        if isinstance(value, (int, float)):
            return value
        text = "" if value is None else str(value).strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            raise RowValidationError(
                f'Value stored in "{column_name}" is not a valid number.', field=column_name
            ) from None

    def get_array(self, column_name: str) -> List[Any]:
        """Return the JSON list stored in ``column_name``.

        A bare unquoted string is accepted and wrapped in a list.  Blank
        cells give an empty list.
        """

        raw = self.get(column_name)
        if is_blank(raw):
            return []
        text = raw if isinstance(raw, str) else self.get_string(column_name)
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            try:
                parsed = json.loads(f'"{text}"')
            except json.JSONDecodeError:
                raise RowValidationError(
                    f"Incorrect JSON value stored in `{column_name}` column.",
                    field=column_name,
                ) from None

        if isinstance(parsed, str):
            return [parsed]
        if not isinstance(parsed, list):
            raise RowValidationError(
                f"Incorrect array value stored in `{column_name}` column.",
                field=column_name,
            )
        return parsed

    def set(self, column_name: str, value: Any) -> None:
        index = self._column_index(column_name)
        self._store.write_cell(self._row_index, index + 1, value)
        self._values[index] = value

    def set_value_at(self, column_index: int, value: Any) -> None:
        """Write ``value`` to the 1-based ``column_index`` of this row."""

        name = self._config.column_name(column_index)
        if name is None:
            self._store.write_cell(self._row_index, column_index, value)
            return
        self.set(name, value)

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------
    def set_cell_background(self, column_name: str, color: Optional[str]) -> None:
        self._store.set_background(self._row_index, self._column_index(column_name) + 1, color)

    def set_background(self, color: Optional[str]) -> None:
        self._store.set_background(self._row_index, None, color)

    def mark_as_error(self, messages: Union[str, Iterable[str]]) -> None:
        """Highlight the row and append ``messages`` to its error column."""

        if isinstance(messages, str):
            items = [messages] if messages.strip() else []
        else:
            items = [str(message) for message in messages if str(message).strip()]
        if not items:
            raise ValueError("A non-empty error message must be provided.")

        self.set_background(self._config.error_color)
        text = "- " + "\n- ".join(items) + "\n"
        self.set(ERROR_COLUMN, self.get_string(ERROR_COLUMN) + text)
        logger.info("Row %s: %s", self._row_index, text.strip())
        self._has_errors = True

    def mark_as_resolved(self) -> None:
        self.set_background(None)
        self.set(ERROR_COLUMN, "")
        self._has_errors = False

    def _validate_statuses(self) -> None:
        for column_name, label in (("sta_status", "STA"), ("eta_status", "ETA")):
            if column_name not in self._columns:
                continue
            value = self.get(column_name)
            if is_blank(value):
                continue
            if str(value).strip().lower() not in SUPPORTED_STATUSES:
                self.mark_as_error(f"Unsupported {label} status with value of '{value}'.")

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"SheetRow(row_index={self._row_index!r})"


def get_content_rows(
    store: TabularStore,
    config: SheetConfig,
    *,
    valid_only: bool = False,
    resolve: bool = False,
    validate: bool = False,
) -> List[SheetRow]:
    """Return every non-empty row starting at ``config.first_content_row``.

    A row is non-empty when its ``config.non_empty_column`` cell holds a
    value.  ``resolve`` clears previous error marks and ``validate`` checks
    the status cells; with ``valid_only`` rows that failed that check are
    skipped.
    """

    if config.first_content_row <= 0:
        raise ConfigurationError("first_content_row must be a positive row number.")
    check_index = config.column_map().get(config.non_empty_column)
    if check_index is None:
        raise ConfigurationError(
            "Please configure a non-empty check column that decides whether a row is empty."
        )

    last_row = store.last_row()
    if config.first_content_row > last_row:
        return []

    values = store.read_rows(config.first_content_row, last_row)
    rows: List[SheetRow] = []
    for offset, row_values in enumerate(values):
        cell = row_values[check_index] if check_index < len(row_values) else None
        if is_blank(cell):
            continue
        row = SheetRow(
            store,
            config.first_content_row + offset,
            row_values,
            config,
            resolve=resolve,
            validate=validate,
        )
        if valid_only and row.has_errors():
            continue
        rows.append(row)
    return rows


def normalise_header(text: Any) -> str:
    return _HEADER_STRIP_RE.sub("", "" if text is None else str(text)).lower()


def validate_headers(store: TabularStore, config: SheetConfig) -> Dict[str, str]:
    """Compare the header row against the configured columns.

    Returns a mapping of expected column name to the header text found for
    every position that does not match.  An empty mapping means the layout
    is correct.
    """

    header = store.read_row(config.header_row)
    mismatches: Dict[str, str] = {}
    for position, column_name in enumerate(config.columns):
        expected = config.header_special_cases.get(column_name, normalise_header(column_name))
        found = header[position] if position < len(header) else ""
        if normalise_header(found) != expected:
            mismatches[column_name] = "" if found is None else str(found)

    if mismatches:
        logger.warning(
            "Sheet header does not match configuration: %s",
            ", ".join(f"{key} -> {value!r}" for key, value in mismatches.items()),
        )
    return mismatches


__all__ = [
    "SUPPORTED_STATUSES",
    "SheetRow",
    "TabularStore",
    "get_content_rows",
    "is_blank",
    "normalise_header",
    "validate_headers",
]
