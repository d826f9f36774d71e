"""Command line entry point for the adsync spreadsheet engine."""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional

import settings
from adsync.ads import AdPlatform, ReportSnapshot
from adsync.cache import SqliteCache
from adsync.edits import EditEvent, EditHandler
from adsync.errors import SyncError
from adsync.linking import link_matching_columns
from adsync.logging_config import configure_logging
from adsync.reconcile import SpreadsheetSynchroniser
from adsync.rows import validate_headers
from adsync.sheets_client import GoogleSheetsStore, SheetsClientError

logger = logging.getLogger(__name__)

StoreFactory = Callable[[settings.SyncSettings, str], Any]


def _google_store(sync_settings: settings.SyncSettings, title: str) -> GoogleSheetsStore:
    return GoogleSheetsStore(
        sync_settings.spreadsheet_id,
        title,
        credential_path=Path(sync_settings.credential_path),
    )


_store_factory: StoreFactory = _google_store


def _load(args: argparse.Namespace) -> settings.SyncSettings:
    sync_settings = settings.load_sync_settings(args.settings)
    if sync_settings.debug and not args.debug:
        configure_logging(logging.DEBUG, console=True)
    sync_settings.sheet.validate()
    return sync_settings


def load_platform(reference: str) -> AdPlatform:
    """Instantiate the ad platform named by ``module:factory``."""

    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise SyncError(f"Platform must be given as module:factory, got {reference!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise SyncError(f"Unable to import platform module {module_name!r}: {exc}") from exc
    factory = getattr(module, attribute, None)
    if factory is None:
        raise SyncError(f"{module_name!r} has no attribute {attribute!r}")
    return factory()


def load_report_snapshots(path: Optional[str]) -> List[ReportSnapshot]:
    """Read report rows exported as a JSON list of objects."""

    if not path:
        return []
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except OSError as exc:
        raise SyncError(f"Unable to read report file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SyncError(f"Report file {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise SyncError(f"Report file {path} must contain a JSON list")
    snapshots: List[ReportSnapshot] = []
    for position, entry in enumerate(data, start=1):
        if not isinstance(entry, dict):
            raise SyncError(f"Report file {path}: entry {position} must be a JSON object")
        snapshots.append(
            ReportSnapshot(
                ad_id=entry.get("id"),
                ad_group_id=entry.get("ad_group_id"),
                status=str(entry.get("status", "")),
                labels=entry.get("labels"),
                approval_status=entry.get("approval_status"),
            )
        )
    return snapshots


def command_check(args: argparse.Namespace) -> int:
    sync_settings = _load(args)
    store = _store_factory(sync_settings, sync_settings.worksheet_title)
    mismatches = validate_headers(store, sync_settings.sheet)
    if not mismatches:
        print("Sheet header matches the configured columns.")
        return 0
    print("Sheet header does not match the configured columns:")
    for expected, found in mismatches.items():
        print(f"  {expected}: found {found!r}")
    return 1


def command_link(args: argparse.Namespace) -> int:
    sync_settings = _load(args)
    store = _store_factory(sync_settings, sync_settings.worksheet_title)
    cache = SqliteCache(sync_settings.cache_path)
    try:
        link_matching_columns(store, cache, sync_settings.sheet)
    finally:
        cache.close()
    print("Linked columns rebuilt.")
    return 0


def command_edit(args: argparse.Namespace) -> int:
    sync_settings = _load(args)
    store = _store_factory(sync_settings, sync_settings.worksheet_title)
    cache = SqliteCache(sync_settings.cache_path)

    def linking_enabled() -> bool:
        settings_store = _store_factory(sync_settings, sync_settings.settings_tab)
        value = settings_store.read_cell(sync_settings.linking_toggle_cell)
        return str(value or "").strip().lower() == "on"

    handler = EditHandler(
        store,
        cache,
        sync_settings.sheet,
        main_sheet=sync_settings.worksheet_title,
        settings_sheet=sync_settings.settings_tab,
        toggle_cell=sync_settings.linking_toggle_cell,
        linking_enabled=linking_enabled,
        notify=print,
    )
    event = EditEvent(
        sheet_name=args.sheet or sync_settings.worksheet_title,
        row=args.row,
        column=args.column,
        value=args.new,
        old_value=args.old,
        num_rows=args.rows,
        num_columns=args.columns,
    )
    try:
        result = handler.on_edit(event)
    finally:
        cache.close()
    if result.linked_rows:
        print(f"Updated linked rows: {', '.join(str(row) for row in result.linked_rows)}")
    return 0


def command_sync(args: argparse.Namespace) -> int:
    sync_settings = _load(args)
    store = _store_factory(sync_settings, sync_settings.worksheet_title)
    platform = load_platform(args.platform)
    synchroniser = SpreadsheetSynchroniser(
        store,
        platform,
        sync_settings.sheet,
        sta_reports=load_report_snapshots(args.sta_report),
        eta_reports=load_report_snapshots(args.eta_report),
    )
    result = synchroniser.run(customer_id=args.customer_id)
    for line in result.report_lines:
        print(line)

    if not args.skip_link:
        cache = SqliteCache(sync_settings.cache_path)
        try:
            link_matching_columns(store, cache, sync_settings.sheet)
        finally:
            cache.close()

    print(f"Processed {result.rows_processed} rows with {result.error_count} errors.")
    return 1 if result.error_count else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Spreadsheet to ad platform synchronisation")
    parser.add_argument(
        "--settings",
        default=settings.DEFAULT_SETTINGS_PATH,
        help="Path to the sync settings JSON file",
    )
    parser.add_argument("--debug", action="store_true", help="Log to stderr at debug level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser("check", help="Validate the sheet header row")
    check_parser.set_defaults(func=command_check)

    link_parser = subparsers.add_parser("link", help="Rebuild linked columns and highlight mismatches")
    link_parser.set_defaults(func=command_link)

    edit_parser = subparsers.add_parser("edit", help="Apply a single edit event")
    edit_parser.add_argument("--row", type=int, required=True)
    edit_parser.add_argument("--column", type=int, required=True)
    edit_parser.add_argument("--new", default="", help="Value after the edit")
    edit_parser.add_argument("--old", default=None, help="Value before the edit")
    edit_parser.add_argument("--sheet", default=None, help="Worksheet the edit happened on")
    edit_parser.add_argument("--rows", type=int, default=1, help="Height of the edited range")
    edit_parser.add_argument("--columns", type=int, default=1, help="Width of the edited range")
    edit_parser.set_defaults(func=command_edit)

    sync_parser = subparsers.add_parser("sync", help="Reconcile rows with the ad platform")
    sync_parser.add_argument(
        "--platform",
        required=True,
        help="Ad platform factory given as module:callable",
    )
    sync_parser.add_argument("--customer-id", default=None, help="Only sync rows for this customer")
    sync_parser.add_argument("--sta-report", default=None, help="JSON export of standard text ads")
    sync_parser.add_argument("--eta-report", default=None, help="JSON export of expanded text ads")
    sync_parser.add_argument(
        "--skip-link",
        action="store_true",
        help="Do not rebuild linked columns after the pass",
    )
    sync_parser.set_defaults(func=command_sync)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.debug else logging.INFO, console=args.debug)
    try:
        return args.func(args)
    except (SyncError, SheetsClientError) as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
