"""Shared date helpers for filesystem timestamps and relative display."""
from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_RELATIVE_UNITS = (
    (7 * 86400, "w"),
    (86400, "d"),
    (3600, "h"),
    (60, "m"),
)


def parse_entry_timestamp(value: Any) -> datetime | None:
    """ISO-8601 entry timestamp as an aware UTC datetime, or None."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _file_created_datetime(stats: Any) -> datetime | None:
    for attr in ("st_birthtime",):
        value = getattr(stats, attr, None)
        if isinstance(value, (int, float)) and value > 0:
            return datetime.fromtimestamp(float(value), timezone.utc)
    ctime = getattr(stats, "st_ctime", None)
    if isinstance(ctime, (int, float)) and ctime > 0:
        return datetime.fromtimestamp(float(ctime), timezone.utc)
    return None


def file_metadata_dates(stats: os.stat_result) -> tuple[datetime, datetime]:
    """Return (created, modified) as UTC datetimes from a stat result.

    Creation falls back to the modification time when the platform reports
    neither a birth time nor a ctime.
    """
    modified = datetime.fromtimestamp(float(stats.st_mtime), timezone.utc)
    created = _file_created_datetime(stats) or modified
    return created, modified


def format_time_relative(value: datetime, now: datetime | None = None) -> str:
    """Compact age label: ``now``, ``5m``, ``3h``, ``2d``, ``3w``."""
    current = now or datetime.now(timezone.utc)
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    seconds = max(0, int((current - dt).total_seconds()))
    if seconds < 60:
        return "now"
    for size, suffix in _RELATIVE_UNITS:
        if seconds >= size:
            return f"{seconds // size}{suffix}"
    return "now"
