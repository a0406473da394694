"""Utility functions for PublishDB.

This module provides common helpers for timestamps, pagination arithmetic
and tag-name normalization.
"""

import math
from collections.abc import Iterable
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC timestamp as timezone-aware datetime.

    Example:
        >>> now = utc_now()
        >>> now.tzinfo == UTC
        True
    """
    return datetime.now(UTC)


def format_iso(dt: datetime | None) -> str | None:
    """Format datetime as ISO8601 string with 'Z' suffix.

    Naive datetimes (as returned by SQLite) are treated as UTC.

    Example:
        >>> dt = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        >>> format_iso(dt)
        '2024-01-15T10:30:00Z'
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat().replace("+00:00", "Z")


def total_pages(total: int, page_size: int) -> int:
    """Number of pages needed to show ``total`` rows.

    Example:
        >>> total_pages(5, 2)
        3
        >>> total_pages(0, 10)
        0
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return math.ceil(total / page_size)


def page_offset(page: int, page_size: int) -> int:
    """Row offset of the first item on a 1-based page.

    Example:
        >>> page_offset(2, 10)
        10
    """
    return (page - 1) * page_size


def unique_names(names: Iterable[str]) -> list[str]:
    """Strip names and drop blanks and repeats, keeping first-seen order.

    Example:
        >>> unique_names([" python ", "sql", "python", ""])
        ['python', 'sql']
    """
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        cleaned = name.strip()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            result.append(cleaned)
    return result
