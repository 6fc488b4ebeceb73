"""Timestamp helpers.

All persisted timestamps are naive UTC (SQLite has no tz-aware DateTime);
aware values are converted at the boundary with ``to_naive_utc``.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

_COMMON_TIMESTAMP_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
    "%Y-%m-%d %H:%M",
]


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_timestamp_flexible(ts: Any) -> datetime | None:
    """Parse a provider timestamp into naive UTC.

    Supports ISO 8601 (with or without offset), Unix epoch seconds and a few
    common strftime formats. Returns None if parsing fails - callers decide
    the fallback, never this function.
    """
    if isinstance(ts, datetime):
        return to_naive_utc(ts)

    # Unix epoch (int or float)
    if isinstance(ts, (int, float)) and not isinstance(ts, bool) and ts > 1_000_000_000:
        try:
            return to_naive_utc(datetime.fromtimestamp(ts, tz=timezone.utc))
        except (OSError, ValueError, OverflowError):
            return None

    if isinstance(ts, str):
        ts_str = ts.strip()
        if not ts_str:
            return None

        try:
            return to_naive_utc(datetime.fromisoformat(ts_str.replace("Z", "+00:00")))
        except ValueError:
            pass

        for fmt in _COMMON_TIMESTAMP_FORMATS:
            try:
                return datetime.strptime(ts_str, fmt)
            except ValueError:
                continue

    return None
