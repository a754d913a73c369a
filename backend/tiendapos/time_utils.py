from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" is read as midnight of that day
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    return normalize_datetime(dt)


def normalize_datetime(dt: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are already UTC."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def day_bounds(day: Optional[date] = None) -> tuple[datetime, datetime]:
    """
    Half-open [start, end) window covering one calendar day.

    Used as the default period for cash screens and closings.
    """
    day = day or utcnow().date()
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


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


def to_ticket_date(dt: Optional[datetime]) -> str:
    """Ticket-style date: dd/mm/YYYY HH:MM."""
    if dt is None:
        return ""
    return dt.strftime("%d/%m/%Y %H:%M")
