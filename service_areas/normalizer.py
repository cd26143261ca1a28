"""
Utility functions for splitting service-area text into lookup entries
"""
import re
from typing import List

from .config import MAX_ENTRIES_PER_CLIENT

ZIP_RE = re.compile(r'^\d{5}$')


def is_zip(token: str) -> bool:
    return bool(ZIP_RE.match(token or ''))


def normalize_service_area_input(text: str) -> List[str]:
    """
    Split a free-text service-area field into distinct lookup entries.

    Each line is split on commas. ZIP codes become standalone entries and the
    remaining tokens on the line are rejoined as one place name, so
    "49501, Grand Rapids, MI" gives ["49501", "Grand Rapids, MI"].

    Args:
        text: Raw service-area field, possibly multi-line

    Returns:
        Ordered list of unique, non-empty entries
    """
    if not text or not text.strip():
        return []

    entries = []
    lines = [line.strip() for line in str(text).splitlines()]
    for line in filter(None, lines):
        tokens = [t.strip() for t in line.split(',')]
        tokens = [t for t in tokens if t]
        zips = [t for t in tokens if is_zip(t)]
        places = [t for t in tokens if not is_zip(t)]

        entries.extend(zips)
        if places:
            entries.append(', '.join(places))
        if not tokens:
            entries.append(line)

    # dict keeps first-seen order
    return list(dict.fromkeys(entries))


def service_area_entries(text: str, limit: int = MAX_ENTRIES_PER_CLIENT) -> List[str]:
    """Normalized entries for one client, capped to bound lookup cost."""
    return normalize_service_area_input(text)[:limit]


def append_entry(existing: str, entry: str) -> str:
    """Append an entry to a comma-separated service-area field if it is not already there."""
    existing = (existing or '').strip()
    entry = (entry or '').strip()
    if not entry or entry in normalize_service_area_input(existing):
        return existing
    return f"{existing}, {entry}" if existing else entry
