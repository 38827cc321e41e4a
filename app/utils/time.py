"""Utility functions for time handling.

Comparisons between schedule windows happen on timezone-aware UTC
datetimes: aware values are converted to UTC and naive values are taken as
UTC. Wall-clock values produced by the recurrence expander stay naive until
they are compared.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, time, timezone
from typing import Any

from app.constants import Recurrence

_TIME_RE = re.compile(Recurrence.TIME_PATTERN)


def utc_now() -> datetime:
    """Return current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def coerce_datetime(value: Any) -> datetime | None:
    """
    Coerce value to datetime, returning None on failure.

    Args:
        value: String or datetime to coerce

    Returns:
        Datetime in timezone.utc or None if invalid
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    else:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed


def coerce_date(value: Any) -> date | None:
    """Coerce a date, datetime or ISO string to a calendar date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        raw = value.strip()
        try:
            return date.fromisoformat(raw[:10])
        except ValueError:
            return None
    return None


def parse_hhmm(value: Any) -> time | None:
    """Parse a strict ``HH:MM`` string (hour 0-23, minute 0-59).

    Returns None for anything else, including partially typed input.
    """
    if not isinstance(value, str):
        return None
    match = _TIME_RE.match(value.strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return time(hours, minutes)


def add_months(year: int, month: int, months: int) -> tuple[int, int]:
    """Return (year, month) shifted by ``months``."""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def day_in_month(year: int, month: int, day: int) -> date | None:
    """Return the date if ``day`` exists in that month, otherwise None."""
    if day > calendar.monthrange(year, month)[1]:
        return None
    return date(year, month, day)


def sunday_based_weekday(value: date) -> int:
    """Weekday with Sunday=0 .. Saturday=6 (recurrence rule numbering)."""
    return (value.weekday() + 1) % 7


def format_window(start: datetime, end: datetime) -> str:
    """Short human-facing window, e.g. ``10/01/2024 09:00-11:00``."""
    return f"{start:%d/%m/%Y} {start:%H:%M}-{end:%H:%M}"
