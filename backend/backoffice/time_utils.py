from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 string to a UTC-naive datetime.

    "...Z" and "+HH:MM" offsets are converted to UTC; naive input is taken
    as UTC already. None / "" -> None. Raises ValueError on garbage.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_date_bound(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse a filter bound that may be a bare date ("2026-01-31") or a datetime.

    Bare dates expand to the first (or, with end_of_day, the last)
    microsecond of that day so that ranges are inclusive of whole days.
    """
    dt = parse_iso_datetime(value)
    if dt is None:
        return None
    if end_of_day and len(value.strip()) == 10:
        return datetime.combine(dt.date(), time.max)
    return dt


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
