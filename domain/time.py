"""
Domain time utilities (pure).

Centralized timestamp validation and calendar-date helpers.

Invariants:
- Every stored timestamp is timezone-aware UTC.
- Calendar dates (COG windows, listed/sold dates, day buckets) are interpreted in the
  business timezone and converted to UTC instants at the boundary.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces the contract requirement that timestamps are UTC.

    Invariants:
    - Timestamps must be timezone-aware.
    - Timestamps must have UTC offset 0.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a stored timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    Naive values are assumed to already be UTC.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def start_of_day(day: date, tz: ZoneInfo) -> datetime:
    """First instant of `day` in `tz`, as UTC."""

    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def end_of_day(day: date, tz: ZoneInfo) -> datetime:
    """
    Last instant of `day` in `tz`, as UTC.

    Used to make date-only upper bounds inclusive of the entire end date.
    """

    return datetime.combine(day, time.max, tzinfo=tz).astimezone(timezone.utc)


def local_date(value: datetime, tz: ZoneInfo) -> date:
    """Calendar date of a UTC instant as seen in `tz`."""

    require_utc_timestamp("value", value)
    return value.astimezone(tz).date()


__all__ = [
    "require_utc_timestamp",
    "utc_now",
    "to_iso_utc",
    "parse_utc_datetime",
    "start_of_day",
    "end_of_day",
    "local_date",
]
