"""Keep rows that share a linked-column value in step with each other.

``link_matching_columns``
    Full rebuild: clear the bucket index, file every non-empty row under its
    linked values and re-highlight mismatches.
``refresh_index``
    Rebuild only when the stored snapshot has expired.
``handle_linked_edit``
    Propagate a single-cell edit to every row that shared the old value.
``handle_mismatch_edit``
    Re-highlight the edited row and the rows touched by propagation.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from adsync.buckets import MatchingColumnBuckets, cell_text
from adsync.cache import KeyValueCache
from adsync.mismatch import highlight_mismatch_fields
from adsync.rows import SheetRow, TabularStore, get_content_rows, is_blank
from settings import SheetConfig

logger = logging.getLogger(__name__)


def open_buckets(cache: KeyValueCache, config: SheetConfig) -> MatchingColumnBuckets:
    return MatchingColumnBuckets(
        cache,
        config.link_storage_key,
        expiration=config.cache_expiration,
    )


def link_matching_columns(
    store: TabularStore,
    cache: KeyValueCache,
    config: SheetConfig,
) -> MatchingColumnBuckets:
    """Rebuild the bucket index from scratch and highlight mismatches."""

    rows = get_content_rows(store, config)
    buckets = open_buckets(cache, config)
    buckets.clear()

    for row in rows:
        for column_name in config.linked_columns:
            value = row.get(column_name)
            if is_blank(value):
                continue
            buckets.add_value(config.column_index(column_name), value, row.row_index)
        if config.mismatch_columns:
            highlight_mismatch_fields(row, config.mismatch_columns, config.mismatch_color)

    buckets.save()
    logger.info("Linked %d rows across %d columns", len(rows), len(config.linked_columns))
    return buckets


def refresh_index(
    store: TabularStore,
    cache: KeyValueCache,
    config: SheetConfig,
) -> MatchingColumnBuckets:
    """Return the stored index, rebuilding it first when it has expired."""

    buckets = open_buckets(cache, config)
    if not buckets.load():
        logger.info("Bucket index %s missing; rebuilding", config.link_storage_key)
        return link_matching_columns(store, cache, config)
    return buckets


def _load_row(store: TabularStore, row_index: int, config: SheetConfig) -> SheetRow:
    return SheetRow(store, row_index, store.read_row(row_index), config, validate=False)


def handle_linked_edit(
    store: TabularStore,
    buckets: MatchingColumnBuckets,
    config: SheetConfig,
    row_index: int,
    column_index: int,
    old_value: Any,
    new_value: Any,
) -> List[SheetRow]:
    """Write ``new_value`` to every other row filed under ``old_value``.

    Returns the rows that were changed.  Nothing happens when the old value
    is blank or equals the new one.
    """

    if is_blank(old_value) or cell_text(new_value) == cell_text(old_value):
        return []

    linked_rows: List[SheetRow] = []
    for linked_index in buckets.get_value(column_index, old_value) or []:
        if linked_index == row_index:
            continue
        row = _load_row(store, linked_index, config)
        row.set_value_at(column_index, new_value)
        linked_rows.append(row)

    buckets.transfer_bucket(column_index, old_value, new_value)
    buckets.save()

    if linked_rows:
        logger.info(
            "Propagated edit in column %s from row %s to rows %s",
            column_index,
            row_index,
            [row.row_index for row in linked_rows],
        )
    return linked_rows


def handle_mismatch_edit(
    store: TabularStore,
    config: SheetConfig,
    row_index: int,
    linked_rows: Optional[Sequence[SheetRow]] = None,
) -> None:
    rows = list(linked_rows or [])
    rows.append(_load_row(store, row_index, config))
    for row in rows:
        highlight_mismatch_fields(row, config.mismatch_columns, config.mismatch_color)


__all__ = [
    "handle_linked_edit",
    "handle_mismatch_edit",
    "link_matching_columns",
    "open_buckets",
    "refresh_index",
]
