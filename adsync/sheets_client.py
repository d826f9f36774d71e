"""Google Sheets implementation of :class:`adsync.rows.TabularStore`.

All HTTP traffic goes through google-api-python-client.  The store reads
whole rectangles with ``values().get`` and writes single cells with
``values().update``; background colours are set with ``repeatCell``
requests through ``spreadsheets().batchUpdate``.  Rate limit and server
errors (HTTP 429/5xx) are retried with exponential backoff, anything else
is raised as :class:`SheetsApiResponseError`.
"""

from __future__ import annotations

import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from adsync.edits import column_letter

logger = logging.getLogger(__name__)

SCOPES: Sequence[str] = ("https://www.googleapis.com/auth/spreadsheets",)

MAX_RETRY_ATTEMPTS = 5
BACKOFF_SCHEDULE = (1, 2, 4, 8, 16)
RETRIABLE_STATUSES = frozenset({429, 500, 502, 503, 504})
SERVICE_ACCOUNT_FIELDS: Sequence[str] = ("client_email", "private_key", "token_uri")

_SIMPLE_TITLE_RE = re.compile(r"^[A-Za-z0-9_]+$")
_HEX_COLOR_RE = re.compile(r"^#?([0-9A-Fa-f]{6})$")
_A1_CELL_RE = re.compile(r"^([A-Za-z]+)(\d+)$")


class SheetsClientError(RuntimeError):
    """Base error raised for Sheets API failures."""


class SheetsCredentialsError(SheetsClientError):
    """Raised when the provided credential file is invalid or missing."""


class SheetsApiResponseError(SheetsClientError):
    """Raised when the Google API returns an error response."""


def _quote_title(title: str) -> str:
    """Return a worksheet title safely formatted for A1 notation."""

    normalised = (title or "").strip()
    if not normalised:
        raise SheetsClientError("Worksheet title must be configured.")
    if _SIMPLE_TITLE_RE.fullmatch(normalised):
        return normalised
    escaped = normalised.replace("'", "''")
    return f"'{escaped}'"


def a1_cell(title: str, row_index: int, column_index: int) -> str:
    if row_index < 1:
        raise ValueError("Row index must be >= 1")
    return f"{_quote_title(title)}!{column_letter(column_index)}{row_index}"


def parse_a1_cell(reference: str) -> Tuple[int, int]:
    """Return ``(row, column)`` for an A1 cell reference such as ``B2``."""

    match = _A1_CELL_RE.match((reference or "").strip())
    if not match:
        raise ValueError(f"Invalid cell reference: {reference!r}")
    letters, digits = match.groups()
    column = 0
    for char in letters.upper():
        column = column * 26 + (ord(char) - 64)
    return int(digits), column


def hex_to_rgb(color: str) -> Dict[str, float]:
    match = _HEX_COLOR_RE.match((color or "").strip())
    if not match:
        raise ValueError(f"Unsupported colour value: {color!r}")
    value = match.group(1)
    return {
        "red": int(value[0:2], 16) / 255.0,
        "green": int(value[2:4], 16) / 255.0,
        "blue": int(value[4:6], 16) / 255.0,
    }


def _http_status(exc: HttpError) -> int:
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "resp", None), "status", 0)
    try:
        return int(status)
    except (TypeError, ValueError):
        return 0


def _call_with_retry(
    func: Callable[[], Any],
    description: str,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """Execute ``func`` applying exponential backoff for retriable errors."""

    attempt = 0
    while True:
        try:
            return func()
        except HttpError as exc:
            status = _http_status(exc)
            if status not in RETRIABLE_STATUSES or attempt >= MAX_RETRY_ATTEMPTS - 1:
                raise SheetsApiResponseError(f"Sheets API {description} failed: {exc}") from exc
            delay = BACKOFF_SCHEDULE[min(attempt, len(BACKOFF_SCHEDULE) - 1)]
            attempt += 1
            logger.warning(
                "Sheets API %s error (%s). Retrying in %ss (%d/%d)",
                description,
                status,
                delay,
                attempt,
                MAX_RETRY_ATTEMPTS,
            )
            sleep(delay)


def load_service_account_info(credential_path: Path) -> Dict[str, Any]:
    """Read a service account key file, checking the fields the token flow needs."""

    try:
        payload = json.loads(Path(credential_path).read_text(encoding="utf-8-sig"))
    except OSError as exc:
        raise SheetsCredentialsError(f"Unable to read credentials file {credential_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SheetsCredentialsError(f"Credentials file {credential_path} is not valid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict) or payload.get("type") != "service_account":
        raise SheetsCredentialsError(f"Credentials file {credential_path} is not a service account key")
    missing = [name for name in SERVICE_ACCOUNT_FIELDS if not str(payload.get(name) or "").strip()]
    if missing:
        raise SheetsCredentialsError(f"Credentials file is missing: {', '.join(missing)}")
    # Keys pasted through some editors keep literal "\n" sequences.
    payload["private_key"] = str(payload["private_key"]).replace("\\n", "\n")
    return payload


def build_service(credential_path: Path):
    payload = load_service_account_info(Path(credential_path))
    try:
        credentials = service_account.Credentials.from_service_account_info(payload, scopes=SCOPES)
    except ValueError as exc:
        raise SheetsCredentialsError(str(exc)) from exc

    return build("sheets", "v4", credentials=credentials, cache_discovery=False)


class GoogleSheetsStore:
    """A worksheet exposed through the :class:`~adsync.rows.TabularStore` surface."""

    def __init__(
        self,
        spreadsheet_id: str,
        worksheet_title: str,
        *,
        credential_path: Optional[Path] = None,
        service=None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not spreadsheet_id:
            raise SheetsClientError("A spreadsheet id must be configured.")
        if service is None:
            if credential_path is None:
                raise SheetsCredentialsError("A service account credential file is required.")
            service = build_service(credential_path)
        self._spreadsheet_id = spreadsheet_id
        self._title = worksheet_title
        self._service = service
        self._sleep = sleep
        self._sheet_id: Optional[int] = None
        self._values: Optional[List[List[Any]]] = None

    @property
    def title(self) -> str:
        return self._title

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def _grid(self) -> List[List[Any]]:
        if self._values is None:
            request = self._service.spreadsheets().values().get(
                spreadsheetId=self._spreadsheet_id,
                range=_quote_title(self._title),
                majorDimension="ROWS",
                valueRenderOption="UNFORMATTED_VALUE",
            )
            response = _call_with_retry(request.execute, "values.get", sleep=self._sleep)
            self._values = [list(row) for row in response.get("values", [])]
        return self._values

    def refresh(self) -> None:
        """Drop cached values so the next read hits the API again."""

        self._values = None

    def last_row(self) -> int:
        grid = self._grid()
        for index in range(len(grid), 0, -1):
            if any(cell not in (None, "") for cell in grid[index - 1]):
                return index
        return 0

    def last_column(self) -> int:
        return max((len(row) for row in self._grid()), default=0)

    def read_rows(self, first_row: int, last_row: int) -> List[List[Any]]:
        grid = self._grid()
        width = self.last_column()
        rows: List[List[Any]] = []
        for index in range(first_row, last_row + 1):
            row = list(grid[index - 1]) if index - 1 < len(grid) else []
            row.extend([""] * (width - len(row)))
            rows.append(row)
        return rows

    def read_row(self, row_index: int) -> List[Any]:
        return self.read_rows(row_index, row_index)[0]

    def read_cell(self, reference: str) -> Any:
        row_index, column_index = parse_a1_cell(reference)
        row = self.read_row(row_index)
        return row[column_index - 1] if column_index - 1 < len(row) else ""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def write_cell(self, row_index: int, column_index: int, value: Any) -> None:
        request = self._service.spreadsheets().values().update(
            spreadsheetId=self._spreadsheet_id,
            range=a1_cell(self._title, row_index, column_index),
            valueInputOption="RAW",
            body={"values": [["" if value is None else value]]},
        )
        _call_with_retry(request.execute, "values.update", sleep=self._sleep)

        grid = self._values
        if grid is not None:
            while len(grid) < row_index:
                grid.append([])
            row = grid[row_index - 1]
            while len(row) < column_index:
                row.append("")
            row[column_index - 1] = value

    def set_background(
        self,
        row_index: int,
        column_index: Optional[int],
        color: Optional[str],
    ) -> None:
        grid_range: Dict[str, Any] = {
            "sheetId": self._resolve_sheet_id(),
            "startRowIndex": row_index - 1,
            "endRowIndex": row_index,
        }
        if column_index is not None:
            grid_range["startColumnIndex"] = column_index - 1
            grid_range["endColumnIndex"] = column_index
        else:
            grid_range["startColumnIndex"] = 0
            grid_range["endColumnIndex"] = max(1, self.last_column())

        cell_format: Dict[str, Any] = {}
        if color:
            cell_format["backgroundColor"] = hex_to_rgb(color)
        body = {
            "requests": [
                {
                    "repeatCell": {
                        "range": grid_range,
                        "cell": {"userEnteredFormat": cell_format},
                        "fields": "userEnteredFormat.backgroundColor",
                    }
                }
            ]
        }
        request = self._service.spreadsheets().batchUpdate(
            spreadsheetId=self._spreadsheet_id,
            body=body,
        )
        _call_with_retry(request.execute, "batchUpdate", sleep=self._sleep)

    def _resolve_sheet_id(self) -> int:
        if self._sheet_id is not None:
            return self._sheet_id
        request = self._service.spreadsheets().get(
            spreadsheetId=self._spreadsheet_id,
            includeGridData=False,
        )
        metadata = _call_with_retry(request.execute, "spreadsheets.get", sleep=self._sleep)
        sheets: Sequence[Mapping[str, Any]] = metadata.get("sheets", []) if isinstance(metadata, Mapping) else []
        target = self._title.strip().casefold()
        for sheet in sheets:
            properties = sheet.get("properties", {})
            if str(properties.get("title", "")).strip().casefold() == target:
                self._sheet_id = int(properties.get("sheetId", 0))
                return self._sheet_id
        raise SheetsClientError(f"Worksheet {self._title!r} was not found in the spreadsheet.")


__all__ = [
    "GoogleSheetsStore",
    "SheetsApiResponseError",
    "SheetsClientError",
    "SheetsCredentialsError",
    "a1_cell",
    "build_service",
    "hex_to_rgb",
    "parse_a1_cell",
]
