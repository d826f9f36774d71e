"""Reconcile sheet rows against the ad platform.

Each content row describes a standard text ad (STA) and the expanded text ad
(ETA) that replaces it.  A pass walks the rows in order and, per row:

1. resolves the STA, from a supplied report snapshot or the platform;
2. syncs the ETA: creates it when the row is ready for upload, otherwise
   mirrors approval status and pushes status and labels;
3. syncs the STA status and labels once an ETA exists.

Failures are scoped to the row: the row is painted and annotated, the pass
error count is incremented and the next row is processed.  Only a
:class:`~adsync.errors.ConfigurationError` aborts the pass.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from adsync import changes as change_log
from adsync.ads import DISABLED, PAUSED, Ad, AdPlatform, ReportSnapshot, normalise_status
from adsync.changes import AdChange, RowChanges
from adsync.creation import create_replacement
from adsync.errors import RowValidationError
from adsync.rows import SheetRow, TabularStore, get_content_rows, is_blank
from settings import SheetConfig

logger = logging.getLogger(__name__)


@dataclass
class PassResult:
    error_count: int = 0
    rows_processed: int = 0
    failed_rows: List[int] = field(default_factory=list)
    changes: List[RowChanges] = field(default_factory=list)
    report_lines: List[str] = field(default_factory=list)


def _index_snapshots(snapshots: Optional[Iterable[ReportSnapshot]]) -> Dict[str, ReportSnapshot]:
    indexed: Dict[str, ReportSnapshot] = {}
    for snapshot in snapshots or ():
        if not is_blank(snapshot.ad_id):
            indexed[_id_key(snapshot.ad_id)] = snapshot
    return indexed


def _id_key(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def row_id(row: SheetRow, column_name: str) -> Optional[Any]:
    """Return the numeric id stored in ``column_name``, or ``None`` if unset.

    A zero id counts as unset.
    """

    if is_blank(row.get(column_name)):
        return None
    value = row.get_number(column_name)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if value == 0:
        return None
    return value


def get_labels_to_apply(row: SheetRow, default_label: str) -> List[str]:
    labels = [str(label).strip() for label in row.get_array("labels") if str(label).strip()]
    if default_label and default_label not in labels:
        labels.append(default_label)
    return labels


def _labels_text(labels: List[str]) -> str:
    return ",".join(labels)


class SpreadsheetSynchroniser:
    """Runs reconciliation passes over a sheet."""

    def __init__(
        self,
        store: TabularStore,
        platform: AdPlatform,
        config: SheetConfig,
        *,
        sta_reports: Optional[Iterable[ReportSnapshot]] = None,
        eta_reports: Optional[Iterable[ReportSnapshot]] = None,
    ) -> None:
        config.validate()
        self._store = store
        self._platform = platform
        self._config = config
        self._sta_reports = _index_snapshots(sta_reports)
        self._eta_reports = _index_snapshots(eta_reports)

    # ------------------------------------------------------------------
    # Pass
    # ------------------------------------------------------------------
    def run(self, customer_id: Optional[Any] = None) -> PassResult:
        """Reconcile every valid row, optionally limited to one customer."""

        result = PassResult()
        rows = get_content_rows(self._store, self._config, resolve=True, validate=True)

        customer_key = _id_key(customer_id) if customer_id not in (None, "") else None
        for row in rows:
            if customer_key is not None and _id_key(row.get_string("customer_id")) != customer_key:
                continue
            if row.has_errors():
                result.error_count += 1
                result.failed_rows.append(row.row_index)
                continue

            errors, row_changes = self.sync_row(row)
            result.rows_processed += 1
            result.changes.append(row_changes)
            if errors:
                result.error_count += errors
                result.failed_rows.append(row.row_index)

        context = {"customer_id": customer_key} if customer_key is not None else None
        result.report_lines = change_log.report(result.changes, context=context)
        logger.info(
            "Reconciliation pass finished: %d rows, %d errors",
            result.rows_processed,
            result.error_count,
        )
        return result

    def sync_row(self, row: SheetRow) -> Tuple[int, RowChanges]:
        """Reconcile one row. Never raises for row-scoped problems.

        Every sub-step runs even when an earlier one failed; each failure
        adds one to the returned error count.
        """

        row_changes = RowChanges(row.row_index, AdChange(), AdChange())
        try:
            ad_group_id = row_id(row, "ad_group_id")
            row_changes.sta = AdChange(row_id(row, "sta_id"), ad_group_id)
            row_changes.eta = AdChange(row_id(row, "eta_id"), ad_group_id)
        except RowValidationError as exc:
            row.mark_as_error(str(exc))
            return 1, row_changes

        errors = 0
        sta = self._resolve_sta(row)
        if sta is None:
            errors += 1
        errors += self._run_step(row, "syncing ETA", lambda: self.sync_eta(row, row_changes.eta))
        if sta is not None:
            errors += self.sync_sta(sta, row, row_changes.sta)
        return errors, row_changes

    def _run_step(self, row: SheetRow, description: str, step: Callable[[], int]) -> int:
        """Run one sub-step, converting any failure into a row error."""

        try:
            return step()
        except RowValidationError as exc:
            row.mark_as_error(str(exc))
        except Exception as exc:
            logger.exception("Row %s: %s failed", row.row_index, description)
            row.mark_as_error(f"Unexpected error while {description} on row {row.row_index}: {exc}")
        return 1

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def _resolve(self, reports: Dict[str, ReportSnapshot], ad_group_id: Any, ad_id: Any) -> Optional[Ad]:
        snapshot = reports.get(_id_key(ad_id))
        if snapshot is not None:
            return Ad.from_snapshot(self._platform, snapshot)
        try:
            return Ad.lookup(self._platform, ad_group_id, ad_id)
        except Exception:
            logger.warning("Lookup of ad %s in group %s failed", ad_id, ad_group_id, exc_info=True)
            return None

    def _resolve_sta(self, row: SheetRow) -> Optional[Ad]:
        sta_id = row_id(row, "sta_id")
        if sta_id is None:
            row.mark_as_error(f"Error retrieving STA with missing Id, row : {row.row_index}")
            return None
        sta = self._resolve(self._sta_reports, row_id(row, "ad_group_id"), sta_id)
        if sta is None:
            row.mark_as_error(f"Error retrieving STA with Id {sta_id}")
        return sta

    # ------------------------------------------------------------------
    # Shared status / label steps
    # ------------------------------------------------------------------
    def _apply_status(
        self,
        ad: Ad,
        row: SheetRow,
        target: str,
        tracker: AdChange,
        failure: str,
        *,
        created: bool = False,
    ) -> int:
        current = ad.get_status()
        if current == target and not created:
            return 0
        if not ad.sync_status(target):
            row.mark_as_error(failure)
            return 1
        tracker.track_change("status", "" if created else current, target)
        return 0

    def _apply_labels(
        self,
        ad: Ad,
        row: SheetRow,
        kind: str,
        tracker: AdChange,
        *,
        created: bool = False,
    ) -> int:
        labels = get_labels_to_apply(row, self._config.default_label)
        current = "" if created else ad.get_labels()
        if not ad.sync_labels(labels):
            row.mark_as_error(
                f"Error applying labels {_labels_text(labels)} on {kind} with Id {ad.get_id()}"
            )
            return 1
        tracker.track_change("labels", current, labels)
        return 0

    # ------------------------------------------------------------------
    # Standard text ads
    # ------------------------------------------------------------------
    def sync_sta(self, sta: Ad, row: SheetRow, tracker: AdChange) -> int:
        if row_id(row, "eta_id") is None:
            return 0

        sta_id = row_id(row, "sta_id")
        declared = normalise_status(row.get("sta_status"))
        errors = self._run_step(
            row,
            "syncing STA status",
            lambda: self._apply_status(
                sta,
                row,
                declared or PAUSED,
                tracker,
                f"Error syncing status for STA with id {sta_id}",
            ),
        )

        def labels_step() -> int:
            if declared == DISABLED or sta.get_status() == DISABLED:
                return 0
            return self._apply_labels(sta, row, "STA", tracker)

        errors += self._run_step(row, "applying STA labels", labels_step)
        return errors

    # ------------------------------------------------------------------
    # Expanded text ads
    # ------------------------------------------------------------------
    def sync_eta(self, row: SheetRow, tracker: AdChange) -> int:
        eta_id = row_id(row, "eta_id")
        ready = row.get_string("ready_to_upload").strip().lower() == "yes"
        if ready and eta_id is None:
            return self._create_eta(row, tracker)
        if eta_id is not None:
            return self._update_eta(row, eta_id, tracker)
        return 0

    def _create_eta(self, row: SheetRow, tracker: AdChange) -> int:
        outcome = create_replacement(row, self._platform)
        if not outcome.success:
            if outcome.errors:
                row.mark_as_error(outcome.errors)
            else:
                row.mark_as_error(
                    f"Error creating new ETA for STA with Id {row_id(row, 'sta_id')}"
                )
            return 1

        ad_group_id = row_id(row, "ad_group_id")
        eta = Ad.from_entity(self._platform, ad_group_id, outcome.entity)
        tracker.track_create(eta.get_id(), ad_group_id)
        row.set("eta_id", eta.get_id())
        if is_blank(row.get("eta_status")):
            row.set("eta_status", self._config.default_status)

        errors = self._run_step(
            row,
            "applying ETA labels",
            lambda: self._apply_labels(eta, row, "ETA", tracker, created=True),
        )
        status = normalise_status(row.get("eta_status")) or PAUSED
        errors += self._run_step(
            row,
            "syncing ETA status",
            lambda: self._apply_status(
                eta,
                row,
                status,
                tracker,
                f"Error syncing status for ETA with Id {eta.get_id()}",
                created=True,
            ),
        )
        return errors

    def _update_eta(self, row: SheetRow, eta_id: Any, tracker: AdChange) -> int:
        eta = self._resolve(self._eta_reports, row_id(row, "ad_group_id"), eta_id)
        if eta is None:
            row.mark_as_error(f"Error retrieving ETA with Id {eta_id}")
            return 1

        approval = eta.get_approval_status()
        if approval:
            row.set("eta_approval_status", approval)

        declared = normalise_status(row.get("eta_status"))
        if declared == DISABLED:
            return 0

        errors = self._run_step(
            row,
            "syncing ETA status",
            lambda: self._apply_status(
                eta,
                row,
                declared or PAUSED,
                tracker,
                f"Error syncing status for ETA with Id {eta_id}",
            ),
        )
        errors += self._run_step(
            row,
            "applying ETA labels",
            lambda: self._apply_labels(eta, row, "ETA", tracker),
        )
        return errors


__all__ = ["PassResult", "SpreadsheetSynchroniser", "get_labels_to_apply", "row_id"]
