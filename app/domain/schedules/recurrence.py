"""
Recurrence Expansion
====================

A recurrence rule is never stored. At creation time it is expanded into a
concrete, ordered list of occurrences, each of which becomes its own
schedule entry.

Rules:
- daily:   every ``interval`` days from the anchor
- weekly:  day by day; a date is kept when its weekday is selected and its
           week (counted from the anchor's week) is a multiple of ``interval``
- monthly: the anchor's day-of-month every ``interval`` months; months
           without that day are skipped, never clamped

Expansion stops at the end date, at the requested count (365 when the rule
never ends), or after a hard cap of loop iterations, whichever comes first.
Invalid start times or durations yield no occurrences; they are a
validation boundary for the caller, not an error here.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable

from app.constants import Recurrence
from app.enums import RecurrenceEndType, RecurrenceType
from app.utils.time import add_months, coerce_date, day_in_month, parse_hhmm, sunday_based_weekday

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecurrenceEnd:
    """End condition: never, on a date (inclusive) or after a count."""

    type: RecurrenceEndType = RecurrenceEndType.NEVER
    value: date | int | None = None

    @staticmethod
    def from_dict(data: dict[str, Any] | None) -> "RecurrenceEnd":
        if not data:
            return RecurrenceEnd()
        end_type = RecurrenceEndType(data.get("type") or "never")
        raw = data.get("value")
        if end_type == RecurrenceEndType.DATE:
            return RecurrenceEnd(end_type, coerce_date(raw))
        if end_type == RecurrenceEndType.COUNT:
            return RecurrenceEnd(end_type, int(raw) if raw is not None else None)
        return RecurrenceEnd()


@dataclass(frozen=True)
class RecurrenceRule:
    """Generator specification for repeated bookings.

    Attributes:
        type: daily, weekly or monthly
        interval: Step in days, weeks or months (>= 1)
        weekdays: Selected days for weekly rules (Sunday=0 .. Saturday=6)
        end: End condition
    """

    type: RecurrenceType = RecurrenceType.DAILY
    interval: int = 1
    weekdays: frozenset[int] = field(default_factory=frozenset)
    end: RecurrenceEnd = field(default_factory=RecurrenceEnd)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "RecurrenceRule":
        return RecurrenceRule(
            type=RecurrenceType(data.get("type") or "daily"),
            interval=int(data.get("interval") or 1),
            weekdays=frozenset(int(d) for d in (data.get("weekdays") or ())),
            end=RecurrenceEnd.from_dict(data.get("end")),
        )


@dataclass(frozen=True)
class Occurrence:
    """One concrete booking window produced by expansion."""

    start: datetime
    end: datetime

    @property
    def date(self) -> date:
        return self.start.date()

    def to_iso(self) -> tuple[str, str]:
        return self.start.isoformat(), self.end.isoformat()


def _valid_duration(duration_hours: Any) -> float | None:
    try:
        hours = float(duration_hours)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(hours) or hours <= 0:
        return None
    return hours


def occurrence_for_date(day: Any, start_time: Any, duration_hours: Any) -> Occurrence | None:
    """Combine a date with ``HH:MM`` and a duration in (fractional) hours.

    Returns None when the date, time or duration is unusable. The end may
    roll into the next calendar day.
    """
    target = coerce_date(day)
    clock = start_time if isinstance(start_time, time) else parse_hhmm(start_time)
    hours = _valid_duration(duration_hours)
    if target is None or clock is None or hours is None:
        return None
    start = datetime.combine(target, clock)
    return Occurrence(start=start, end=start + timedelta(hours=hours))


class RecurrenceExpander:
    """Deterministic, side-effect-free expansion of recurrence rules."""

    def __init__(
        self,
        max_iterations: int = Recurrence.MAX_ITERATIONS,
        max_occurrences: int = Recurrence.MAX_OCCURRENCES,
    ):
        self.max_iterations = max_iterations
        self.max_occurrences = max_occurrences

    def expand(
        self,
        base_date: Any,
        start_time: Any,
        duration_hours: Any,
        rule: RecurrenceRule,
    ) -> list[Occurrence]:
        """
        Expand ``rule`` anchored on ``base_date`` into ordered occurrences.

        Args:
            base_date: Anchor date (date, datetime or ISO string); time of day is dropped
            start_time: ``HH:MM`` start applied to every occurrence
            duration_hours: Length of each occurrence, > 0
            rule: Recurrence rule

        Returns:
            Occurrences in chronological order, one per calendar date at most
        """
        anchor = coerce_date(base_date)
        clock = parse_hhmm(start_time) if not isinstance(start_time, time) else start_time
        hours = _valid_duration(duration_hours)
        if anchor is None or clock is None or hours is None:
            logger.debug(
                "Recurrence not expanded: base_date=%r start_time=%r duration=%r",
                base_date,
                start_time,
                duration_hours,
            )
            return []

        interval = max(1, int(rule.interval or 1))
        end_date = rule.end.value if rule.end.type == RecurrenceEndType.DATE else None
        if rule.end.type == RecurrenceEndType.COUNT:
            max_count = int(rule.end.value or 0)
        else:
            max_count = self.max_occurrences

        occurrences: list[Occurrence] = []
        seen: set[date] = set()
        anchor_week = anchor - timedelta(days=sunday_based_weekday(anchor))

        for step in range(self.max_iterations):
            if len(occurrences) >= max_count:
                break
            try:
                candidate, cursor = self._candidate(anchor, rule.type, interval, step)
            except (OverflowError, ValueError):
                break
            if end_date is not None and cursor > end_date:
                break
            if candidate is None or candidate in seen:
                continue
            if rule.type == RecurrenceType.WEEKLY:
                if sunday_based_weekday(candidate) not in rule.weekdays:
                    continue
                if ((candidate - anchor_week).days // 7) % interval:
                    continue
            seen.add(candidate)
            start = datetime.combine(candidate, clock)
            occurrences.append(Occurrence(start=start, end=start + timedelta(hours=hours)))
        else:
            if len(occurrences) < max_count:
                logger.debug("Recurrence expansion hit the %d iteration cap", self.max_iterations)

        return occurrences

    @staticmethod
    def _candidate(anchor: date, kind: RecurrenceType, interval: int, step: int) -> tuple[date | None, date]:
        """Return (candidate date or None when skipped, cursor for the end-date check)."""
        if kind == RecurrenceType.DAILY:
            day = anchor + timedelta(days=step * interval)
            return day, day
        if kind == RecurrenceType.WEEKLY:
            day = anchor + timedelta(days=step)
            return day, day
        year, month = add_months(anchor.year, anchor.month, step * interval)
        month_start = date(year, month, 1)
        day = day_in_month(year, month, anchor.day)
        return day, day or month_start

    def expand_dates(self, dates: Iterable[Any], start_time: Any, duration_hours: Any) -> list[Occurrence]:
        """One occurrence per distinct selected date, in selection order."""
        occurrences: list[Occurrence] = []
        seen: set[date] = set()
        for raw in dates:
            day = coerce_date(raw)
            if day is None or day in seen:
                continue
            seen.add(day)
            occurrence = occurrence_for_date(day, start_time, duration_hours)
            if occurrence is not None:
                occurrences.append(occurrence)
        return occurrences


_default_expander = RecurrenceExpander()


def expand(base_date: Any, start_time: Any, duration_hours: Any, rule: RecurrenceRule) -> list[Occurrence]:
    """Expand with the default iteration and occurrence caps."""
    return _default_expander.expand(base_date, start_time, duration_hours, rule)
