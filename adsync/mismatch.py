"""Highlight rows whose URL-bearing cells point at different domains."""
from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from adsync.errors import RowValidationError
from adsync.rows import SheetRow

logger = logging.getLogger(__name__)

_PREFIXES = ("http://", "https://", "www.")


def get_domain(url: Any) -> str:
    """Return the lower-cased host portion of ``url``.

    >>> get_domain("https://www.Example.com/path")
    'example.com'
    """

    if url is None:
        raise ValueError("A URL is required to extract a domain")
    text = str(url).strip()
    for prefix in _PREFIXES:
        if text.lower().startswith(prefix):
            text = text[len(prefix):]
    return text.split("/")[0].lower()


def _first_domain(row: SheetRow, column_name: str) -> Optional[str]:
    try:
        urls = row.get_array(column_name)
    except RowValidationError as exc:
        logger.debug("Row %s: %s", row.row_index, exc)
        return None
    if not urls or urls[0] is None:
        return None
    return get_domain(urls[0])


def fields_match(row: SheetRow, column_names: Sequence[str]) -> bool:
    """Return ``True`` when every column shares the same first-URL domain.

    An empty or unreadable column never matches.
    """

    previous: Optional[str] = None
    for position, column_name in enumerate(column_names):
        domain = _first_domain(row, column_name)
        if domain is None:
            return False
        if position and domain != previous:
            return False
        previous = domain
    return True


def highlight_mismatch_fields(
    row: SheetRow,
    column_names: Sequence[str],
    color: str,
) -> bool:
    """Colour the compared cells on mismatch, clear them on match.

    Returns ``True`` when the row matched.
    """

    matched = fields_match(row, column_names)
    highlight = None if matched else color
    for column_name in column_names:
        row.set_cell_background(column_name, highlight)
    return matched


__all__ = ["fields_match", "get_domain", "highlight_mismatch_fields"]
