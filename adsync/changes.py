"""Per-pass record of the changes pushed to the ad platform.

:class:`AdChange` collects field changes for one ad while a row is being
reconciled.  :func:`report` writes the human-readable summary through the
``adsync.changes`` logger, which also keeps a JSON-lines copy in
``changes.log`` inside the application log directory.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from adsync import app_paths

_LOGGER = logging.getLogger("adsync.changes")

STA_LABEL = "Standard text ad"
ETA_LABEL = "Expanded text ad"


def is_array_shallow_equal(first: Any, second: Any) -> bool:
    """Compare two lists element by element.

    Scalars compare by value, nested containers by identity.
    """

    if not isinstance(first, list) or not isinstance(second, list):
        return False
    if len(first) != len(second):
        return False
    for left, right in zip(first, second):
        if isinstance(left, (list, dict)) or isinstance(right, (list, dict)):
            if left is not right:
                return False
        elif left != right:
            return False
    return True


@dataclass(slots=True)
class FieldChange:
    field_name: str
    old_value: Any
    new_value: Any


@dataclass
class AdChange:
    ad_id: Any = None
    ad_group_id: Any = None
    created: bool = False
    changes: List[FieldChange] = field(default_factory=list)

    def track_change(self, field_name: str, old_value: Any, new_value: Any) -> None:
        if isinstance(old_value, list) or isinstance(new_value, list):
            if is_array_shallow_equal(old_value, new_value):
                return
        elif old_value == new_value:
            return
        self.changes.append(FieldChange(field_name, old_value, new_value))

    def track_create(self, ad_id: Any, ad_group_id: Any) -> None:
        self.created = True
        self.ad_id = ad_id
        self.ad_group_id = ad_group_id

    def to_dict(self) -> Dict[str, object]:
        return {
            "ad_id": self.ad_id,
            "ad_group_id": self.ad_group_id,
            "created": self.created,
            "changes": [
                {"field": item.field_name, "old": item.old_value, "new": item.new_value}
                for item in self.changes
            ],
        }


@dataclass
class RowChanges:
    row_index: int
    sta: AdChange
    eta: AdChange

    def is_empty(self) -> bool:
        return not (self.sta.changes or self.eta.changes or self.eta.created)


def _display(value: Any) -> str:
    if isinstance(value, list):
        return ",".join(str(item) for item in value)
    return "" if value is None else str(value)


def _change_line(prefix: str, change: FieldChange) -> str:
    return (
        f'{prefix}{change.field_name} changed from "{_display(change.old_value)}" '
        f'to "{_display(change.new_value)}"'
    )


def _prefix(label: str, ad_id: Any) -> str:
    if ad_id is None or ad_id == "":
        return f"{label} "
    return f"{label} ({ad_id}): "


def format_changes(all_changes: Iterable[RowChanges]) -> List[str]:
    """Render the change summary lines for a pass."""

    lines: List[str] = []
    for row_changes in all_changes:
        sta = row_changes.sta
        for change in sta.changes:
            lines.append(_change_line(_prefix(STA_LABEL, sta.ad_id), change))
        eta = row_changes.eta
        if eta.created:
            lines.append(f"{ETA_LABEL} ({eta.ad_id}): created")
            for change in eta.changes:
                lines.append(_change_line("+ ", change))
        else:
            for change in eta.changes:
                lines.append(_change_line(_prefix(f"+ {ETA_LABEL}", eta.ad_id), change))
    return lines


def _change_logger() -> logging.Logger:
    """Return the change logger, attaching the changes.log file handler once."""

    path = str(app_paths.logs_path("changes.log"))
    for handler in _LOGGER.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == path:
            return _LOGGER
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(message)s"))
    _LOGGER.addHandler(handler)
    _LOGGER.setLevel(logging.INFO)
    return _LOGGER


def report(all_changes: Iterable[RowChanges], *, context: Optional[Dict[str, object]] = None) -> List[str]:
    """Log the summary of ``all_changes`` and return the printed lines."""

    items = [entry for entry in all_changes if not entry.is_empty()]
    lines = format_changes(items)
    logger = _change_logger()
    for line in lines:
        logger.info("%s", line)

    timestamp = datetime.now(timezone.utc).replace(microsecond=0).isoformat()
    for entry in items:
        payload: Dict[str, object] = {
            "row": entry.row_index,
            "sta": entry.sta.to_dict(),
            "eta": entry.eta.to_dict(),
            "timestamp": timestamp,
        }
        if context:
            payload.update(context)
        try:
            logger.info("%s", json.dumps(payload, ensure_ascii=False, sort_keys=True))
        except TypeError:
            logger.info("row=%s changes=%s", entry.row_index, payload)
    return lines


__all__ = [
    "AdChange",
    "ETA_LABEL",
    "FieldChange",
    "RowChanges",
    "STA_LABEL",
    "format_changes",
    "is_array_shallow_equal",
    "report",
]
