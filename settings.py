"""Application configuration helpers for adsync.

Two dataclasses make up the configuration object handed to every component:
:class:`SheetConfig` describes the sheet layout and the behaviour rules and
:class:`SyncSettings` holds the connection details for a deployment.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional

from adsync import app_paths
from adsync.errors import ConfigurationError


logger = logging.getLogger(__name__)


DEFAULT_SETTINGS_PATH = os.getenv(
    "ADSYNC_SETTINGS_PATH",
    str(app_paths.data_path("sync_settings.json")),
)
DEFAULT_SPREADSHEET_ID = os.getenv("ADSYNC_SPREADSHEET_ID", "")
DEFAULT_CREDENTIALS_PATH = os.getenv(
    "ADSYNC_CREDENTIALS_PATH",
    str(app_paths.credentials_path("service_account.json")),
)
DEFAULT_CACHE_PATH = os.getenv(
    "ADSYNC_CACHE_PATH",
    str(app_paths.cache_path("buckets.sqlite3")),
)
DEFAULT_WORKSHEET_TITLE = "Main"
DEFAULT_SETTINGS_TAB = "Settings"
DEFAULT_TOGGLE_CELL = "B2"

ERROR_COLUMN = "error_message"

DEFAULT_COLUMNS: List[str] = [
    "customer_id",
    "customer_name",
    "campaign_id",
    "campaign_name",
    "ad_group_id",
    "ad_group_name",
    "sta_id",
    "headline",
    "description1",
    "description2",
    "sta_approval_status",
    "display_url",
    "sta_status",
    "impressions",
    "clicks",
    "ctr",
    "final_url",
    "mobile_final_url",
    "tracking_template",
    "custom_parameters",
    "labels",
    "headline1",
    "characters_remaining_h1",
    "headline2",
    "characters_remaining_h2",
    "description",
    "characters_remaining_desc",
    "path1",
    "path2",
    "eta_status",
    "eta_approval_status",
    "eta_created",
    "eta_id",
    "ready_to_upload",
    ERROR_COLUMN,
]

DEFAULT_READ_ONLY_COLUMNS: List[str] = [
    "customer_id",
    "customer_name",
    "campaign_id",
    "campaign_name",
    "ad_group_id",
    "ad_group_name",
    "sta_id",
    "headline",
    "description1",
    "description2",
    "sta_approval_status",
    "impressions",
    "clicks",
    "ctr",
    "labels",
    "eta_approval_status",
    "eta_created",
    "eta_id",
    ERROR_COLUMN,
]

# Columns that describe the replacement (expanded) ad.
DEFAULT_ETA_COLUMNS: List[str] = [
    "final_url",
    "mobile_final_url",
    "tracking_template",
    "custom_parameters",
    "headline1",
    "headline2",
    "description",
    "path1",
    "path2",
    "eta_status",
    "ready_to_upload",
]

DEFAULT_STATUS_COLUMNS: List[str] = ["sta_status", "eta_status"]

DEFAULT_LINKED_COLUMNS: List[str] = ["final_url", "mobile_final_url", "tracking_template"]
DEFAULT_MISMATCH_COLUMNS: List[str] = ["display_url", "final_url"]

# Headers whose normalised text does not match the logical column name.
DEFAULT_HEADER_SPECIAL_CASES: Dict[str, str] = {
    "characters_remaining_h1": "charactersremaining",
    "characters_remaining_h2": "charactersremaining",
    "characters_remaining_desc": "charactersremaining",
}


@dataclass
class SheetConfig:
    """Layout of the main sheet and the rules applied to it."""

    columns: List[str] = field(default_factory=lambda: list(DEFAULT_COLUMNS))
    header_row: int = 3
    first_content_row: int = 4
    non_empty_column: str = "customer_id"
    read_only_columns: List[str] = field(default_factory=lambda: list(DEFAULT_READ_ONLY_COLUMNS))
    eta_columns: List[str] = field(default_factory=lambda: list(DEFAULT_ETA_COLUMNS))
    status_columns: List[str] = field(default_factory=lambda: list(DEFAULT_STATUS_COLUMNS))
    linked_columns: List[str] = field(default_factory=lambda: list(DEFAULT_LINKED_COLUMNS))
    link_storage_key: str = "matchingColumnsBuckets"
    mismatch_columns: List[str] = field(default_factory=lambda: list(DEFAULT_MISMATCH_COLUMNS))
    mismatch_color: str = "#FF0000"
    error_color: str = "#FF0000"
    staged_color: str = "#FFF3E0"
    default_status: str = "paused"
    default_label: str = "eta-upgrade"
    cache_expiration: int = 21600
    header_special_cases: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_HEADER_SPECIAL_CASES)
    )

    def column_map(self) -> Dict[str, int]:
        """Return a mapping of column name to its 0-based position."""

        return {name: index for index, name in enumerate(self.columns)}

    def column_index(self, name: str) -> int:
        """Return the 1-based sheet column for ``name``."""

        try:
            return self.columns.index(name) + 1
        except ValueError:
            raise ConfigurationError(f"Column {name!r} is not configured.") from None

    def column_name(self, index: int) -> Optional[str]:
        """Return the column name for a 1-based sheet column, if any."""

        if 1 <= index <= len(self.columns):
            return self.columns[index - 1]
        return None

    def validate(self) -> None:
        if ERROR_COLUMN not in self.columns:
            raise ConfigurationError(f"The {ERROR_COLUMN} column is required.")
        if len(set(self.columns)) != len(self.columns):
            raise ConfigurationError("Column names must be unique.")
        if self.non_empty_column not in self.columns:
            raise ConfigurationError(
                f"Non-empty check column {self.non_empty_column!r} is not configured."
            )
        if self.first_content_row <= self.header_row:
            raise ConfigurationError("The first content row must come after the header row.")
        for group_name in ("linked_columns", "mismatch_columns", "read_only_columns", "eta_columns"):
            unknown = [name for name in getattr(self, group_name) if name not in self.columns]
            if unknown:
                raise ConfigurationError(
                    f"{group_name} references unknown columns: {', '.join(unknown)}"
                )
        if self.cache_expiration <= 0:
            raise ConfigurationError("cache_expiration must be a positive number of seconds.")


@dataclass
class SyncSettings:
    spreadsheet_id: str = DEFAULT_SPREADSHEET_ID
    credential_path: str = DEFAULT_CREDENTIALS_PATH
    worksheet_title: str = DEFAULT_WORKSHEET_TITLE
    settings_tab: str = DEFAULT_SETTINGS_TAB
    linking_toggle_cell: str = DEFAULT_TOGGLE_CELL
    cache_path: str = DEFAULT_CACHE_PATH
    debug: bool = False
    sheet: SheetConfig = field(default_factory=SheetConfig)

    def to_json(self) -> Dict[str, object]:
        return asdict(self)


def _sheet_config_from_mapping(data: Mapping[str, Any]) -> SheetConfig:
    known = {item.name for item in fields(SheetConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown sheet settings: %s", ", ".join(unknown))
    values = {key: value for key, value in data.items() if key in known}
    for key in ("header_row", "first_content_row", "cache_expiration"):
        if key in values:
            try:
                values[key] = int(values[key])
            except (TypeError, ValueError):
                raise ConfigurationError(f"{key} must be an integer.") from None
    return SheetConfig(**values)


def _apply_environment(settings: SyncSettings) -> SyncSettings:
    override = os.getenv("ADSYNC_SPREADSHEET_ID")
    if override:
        settings.spreadsheet_id = override
    override = os.getenv("ADSYNC_CREDENTIALS_PATH")
    if override:
        settings.credential_path = override
    override = os.getenv("ADSYNC_CACHE_PATH")
    if override:
        settings.cache_path = override
    return settings


def save_sync_settings(settings: SyncSettings, path: str = DEFAULT_SETTINGS_PATH) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(settings.to_json(), handle, indent=2)


def load_sync_settings(path: str = DEFAULT_SETTINGS_PATH) -> SyncSettings:
    """Load settings from ``path``, writing a default file when it is missing."""

    if not os.path.exists(path):
        settings = SyncSettings()
        save_sync_settings(settings, path)
        logger.info("Created default sync settings at %s", path)
        return _apply_environment(settings)

    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Settings file {path} is not valid JSON: {exc.msg}") from exc

    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Settings file {path} must contain a JSON object.")

    sheet_data = data.get("sheet") or {}
    if not isinstance(sheet_data, Mapping):
        raise ConfigurationError("The 'sheet' settings entry must be an object.")

    defaults = SyncSettings()
    settings = SyncSettings(
        spreadsheet_id=str(data.get("spreadsheet_id", defaults.spreadsheet_id) or ""),
        credential_path=str(data.get("credential_path", defaults.credential_path) or ""),
        worksheet_title=str(data.get("worksheet_title", defaults.worksheet_title) or DEFAULT_WORKSHEET_TITLE),
        settings_tab=str(data.get("settings_tab", defaults.settings_tab) or DEFAULT_SETTINGS_TAB),
        linking_toggle_cell=str(
            data.get("linking_toggle_cell", defaults.linking_toggle_cell) or DEFAULT_TOGGLE_CELL
        ),
        cache_path=str(data.get("cache_path", defaults.cache_path) or DEFAULT_CACHE_PATH),
        debug=bool(data.get("debug", False)),
        sheet=_sheet_config_from_mapping(sheet_data),
    )
    return _apply_environment(settings)


__all__ = [
    "DEFAULT_COLUMNS",
    "DEFAULT_SETTINGS_PATH",
    "ERROR_COLUMN",
    "SheetConfig",
    "SyncSettings",
    "load_sync_settings",
    "save_sync_settings",
]
