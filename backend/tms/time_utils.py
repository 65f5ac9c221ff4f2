from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a UTC-naive datetime (the form every column stores)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    ISO-8601 text -> UTC-naive datetime.

    Trip dates and payroll bounds arrive as "2024-01-10", "2024-01-10T08:00",
    "2024-01-10T08:00:00Z" or with an explicit offset. Offsets are folded into
    UTC; naive input is already UTC. Blank input gives None.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_utc_naive(datetime.fromisoformat(text))


def to_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Render for JSON as "YYYY-MM-DDTHH:MM:SSZ" (seconds precision)."""
    if dt is None:
        return None
    dt = to_utc_naive(dt).replace(microsecond=0)
    return dt.isoformat() + "Z"


def start_of_day(value: datetime | date) -> datetime:
    if isinstance(value, datetime):
        value = value.date()
    return datetime.combine(value, time.min)


def end_of_day(value: datetime | date) -> datetime:
    if isinstance(value, datetime):
        value = value.date()
    return datetime.combine(value, time.max)
