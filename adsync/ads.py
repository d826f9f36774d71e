"""Remote ad handles and the status/label synchronisation primitives.

An :class:`Ad` wraps either a live :class:`RemoteEntity` obtained from the
:class:`AdPlatform` or a :class:`ReportSnapshot` supplied by a report
export.  Reads work on both; a snapshot is upgraded to the live entity only
when a mutation is required.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Sequence, Union

from adsync.errors import PlatformOperationError

logger = logging.getLogger(__name__)

ENABLED = "enabled"
PAUSED = "paused"
DISABLED = "disabled"
STATUSES = (ENABLED, PAUSED, DISABLED)


def normalise_status(status: Any) -> str:
    return "" if status is None else str(status).strip().lower()


class RemoteEntity(Protocol):
    def get_id(self) -> Any:
        ...

    def get_status(self) -> str:
        ...

    def enable(self) -> None:
        ...

    def pause(self) -> None:
        ...

    def get_labels(self) -> List[str]:
        ...

    def apply_label(self, name: str) -> None:
        ...

    def get_approval_status(self) -> Optional[str]:
        ...


@dataclass(slots=True)
class CreationResult:
    success: bool
    entity: Optional[RemoteEntity] = None
    errors: List[str] = field(default_factory=list)


class AdPlatform(Protocol):
    def find_entity(self, ad_group_id: Any, ad_id: Any) -> Optional[RemoteEntity]:
        ...

    def find_parent_group(self, ad_group_id: Any) -> bool:
        ...

    def create_entity(self, ad_group_id: Any, fields: Mapping[str, Any]) -> CreationResult:
        ...

    def ensure_label_exists(self, name: str) -> bool:
        ...


@dataclass(slots=True)
class ReportSnapshot:
    """Read-only view of an ad as exported by a platform report."""

    ad_id: Any
    ad_group_id: Any
    status: str = ""
    labels: Union[str, Sequence[str], None] = None
    approval_status: Optional[str] = None

    def get_labels(self) -> List[str]:
        raw = self.labels
        if raw is None:
            return []
        if not isinstance(raw, str):
            return [str(item) for item in raw]
        text = raw.strip()
        if not text or text == "--":
            return []
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            raise PlatformOperationError(
                f"Invalid JSON string stored in report labels for ad {self.ad_id}"
            ) from None
        if isinstance(parsed, str):
            return [parsed]
        if not isinstance(parsed, list):
            raise PlatformOperationError(f"Report labels for ad {self.ad_id} must be a list")
        return [str(item) for item in parsed]


@dataclass(slots=True)
class LabelDiff:
    add: List[str] = field(default_factory=list)
    remove: List[str] = field(default_factory=list)

    @property
    def has_diff(self) -> bool:
        return bool(self.add or self.remove)


def diff_labels(current: Iterable[str], target: Iterable[str]) -> LabelDiff:
    """Compute the labels to add to and remove from ``current``."""

    current_names = [str(name).strip() for name in current]
    target_names = [str(name).strip() for name in target]
    diff = LabelDiff()
    for name in target_names:
        if name and name not in current_names and name not in diff.add:
            diff.add.append(name)
    for name in current_names:
        if name and name not in target_names and name not in diff.remove:
            diff.remove.append(name)
    return diff


class Ad:
    def __init__(
        self,
        platform: AdPlatform,
        ad_group_id: Any,
        ad_id: Any,
        *,
        entity: Optional[RemoteEntity] = None,
        snapshot: Optional[ReportSnapshot] = None,
    ) -> None:
        self._platform = platform
        self._ad_group_id = ad_group_id
        self._ad_id = ad_id
        self._entity = entity
        self._snapshot = snapshot

    @classmethod
    def from_snapshot(cls, platform: AdPlatform, snapshot: ReportSnapshot) -> "Ad":
        return cls(platform, snapshot.ad_group_id, snapshot.ad_id, snapshot=snapshot)

    @classmethod
    def from_entity(cls, platform: AdPlatform, ad_group_id: Any, entity: RemoteEntity) -> "Ad":
        return cls(platform, ad_group_id, entity.get_id(), entity=entity)

    @classmethod
    def lookup(cls, platform: AdPlatform, ad_group_id: Any, ad_id: Any) -> Optional["Ad"]:
        """Fetch the live entity, returning ``None`` when it does not exist."""

        entity = platform.find_entity(ad_group_id, ad_id)
        if entity is None:
            return None
        return cls(platform, ad_group_id, ad_id, entity=entity)

    @property
    def is_live(self) -> bool:
        return self._entity is not None

    def get_id(self) -> Any:
        if self._entity is not None:
            return self._entity.get_id()
        return self._ad_id

    def get_status(self) -> str:
        if self._entity is not None:
            return normalise_status(self._entity.get_status())
        if self._snapshot is not None:
            return normalise_status(self._snapshot.status)
        raise PlatformOperationError(f"Ad {self._ad_id} has no data source")

    def get_labels(self) -> List[str]:
        if self._entity is not None:
            return list(self._entity.get_labels())
        if self._snapshot is not None:
            return self._snapshot.get_labels()
        raise PlatformOperationError(f"Ad {self._ad_id} has no data source")

    def get_approval_status(self) -> Optional[str]:
        if self._entity is not None:
            value = self._entity.get_approval_status()
        elif self._snapshot is not None:
            value = self._snapshot.approval_status
        else:
            value = None
        text = normalise_status(value)
        return text or None

    def ensure_live(self) -> bool:
        """Resolve the live entity. Returns ``False`` when it no longer exists."""

        if self._entity is not None:
            return True
        entity = self._platform.find_entity(self._ad_group_id, self._ad_id)
        if entity is None:
            return False
        self._entity = entity
        return True

    def sync_status(self, status: Any) -> bool:
        """Bring the remote status in line with ``status``.

        A blank target means paused.  Returns ``False`` for targets that
        cannot be applied or when the platform call fails.
        """

        if status is None:
            raise ValueError("A status is required")
        target = normalise_status(status) or PAUSED
        if self.get_status() == target:
            return True
        if target not in (ENABLED, PAUSED):
            logger.info("Ad %s: status %r cannot be applied", self._ad_id, target)
            return False
        try:
            if not self.ensure_live():
                return False
            if target == ENABLED:
                self._entity.enable()
            else:
                self._entity.pause()
        except Exception:
            logger.warning("Ad %s: failed to set status %s", self._ad_id, target, exc_info=True)
            return False
        return True

    def sync_labels(self, labels: Sequence[str]) -> bool:
        """Apply every label from ``labels`` that the ad does not carry yet.

        Labels present on the ad but absent from ``labels`` are left in
        place.  Returns ``False`` if any single label could not be applied;
        labels applied before the failure stay applied.
        """

        if not labels:
            return True
        diff = diff_labels(self.get_labels(), labels)
        if not diff.add:
            return True
        try:
            if not self.ensure_live():
                return False
        except Exception:
            logger.warning("Ad %s: lookup failed", self._ad_id, exc_info=True)
            return False

        all_applied = True
        for name in diff.add:
            try:
                created = self._platform.ensure_label_exists(name)
            except Exception:
                logger.warning("Failed to create label %s", name, exc_info=True)
                created = False
            if not created:
                logger.info("Failed to create %s and apply to ad %s", name, self.get_id())
                all_applied = False
                continue
            try:
                self._entity.apply_label(name)
            except Exception:
                logger.warning("Failed to apply %s to ad %s", name, self.get_id(), exc_info=True)
                all_applied = False
        return all_applied


__all__ = [
    "Ad",
    "AdPlatform",
    "CreationResult",
    "DISABLED",
    "ENABLED",
    "LabelDiff",
    "PAUSED",
    "RemoteEntity",
    "ReportSnapshot",
    "STATUSES",
    "diff_labels",
    "normalise_status",
]
