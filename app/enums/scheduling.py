"""
Scheduling Enumerations
=======================

Enums for schedule entries, recurrence rules and device availability.
"""

from __future__ import annotations

from enum import Enum


class ScheduleStatus(str, Enum):
    """Lifecycle status of a schedule entry.

    planned -> active -> ended, or -> cancelled from any non-terminal state.
    """

    PLANNED = "planned"
    ACTIVE = "active"
    ENDED = "ended"
    CANCELLED = "cancelled"

    def __str__(self):
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (ScheduleStatus.ENDED, ScheduleStatus.CANCELLED)

    @classmethod
    def coerce(cls, value: "ScheduleStatus | str | None") -> "ScheduleStatus":
        """Map enum values, names and the legacy Hebrew labels to a status."""
        if isinstance(value, ScheduleStatus):
            return value
        if value is None or value == "":
            return cls.PLANNED
        raw = str(value).strip()
        legacy = LEGACY_STATUS_LABELS.get(raw)
        if legacy is not None:
            return legacy
        try:
            return cls(raw.lower())
        except ValueError:
            raise ValueError(f"Unknown schedule status '{value}'") from None


# Labels written by the original Hebrew UI into existing records
LEGACY_STATUS_LABELS: dict[str, ScheduleStatus] = {
    "מתוכנן": ScheduleStatus.PLANNED,
    "פעיל": ScheduleStatus.ACTIVE,
    "הסתיים": ScheduleStatus.ENDED,
    "בוטל": ScheduleStatus.CANCELLED,
}

# Allowed forward transitions; terminal states have none
STATUS_TRANSITIONS: dict[ScheduleStatus, frozenset[ScheduleStatus]] = {
    ScheduleStatus.PLANNED: frozenset({ScheduleStatus.ACTIVE, ScheduleStatus.CANCELLED}),
    ScheduleStatus.ACTIVE: frozenset({ScheduleStatus.ENDED, ScheduleStatus.CANCELLED}),
    ScheduleStatus.ENDED: frozenset(),
    ScheduleStatus.CANCELLED: frozenset(),
}


class RecurrenceType(str, Enum):
    """Frequency of a recurrence rule."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    def __str__(self):
        return self.value


class RecurrenceEndType(str, Enum):
    """How a recurrence rule terminates."""

    NEVER = "never"
    DATE = "date"
    COUNT = "count"

    def __str__(self):
        return self.value


class DeviceAvailability(str, Enum):
    """Availability of a device for a requested time window.

    - CURRENT: already assigned to the program being edited
    - BUSY: booked by an overlapping, non-cancelled entry
    - DISABLED: out of service (disabled flag or maintenance status)
    - FREE: nothing prevents booking
    """

    CURRENT = "current"
    BUSY = "busy"
    DISABLED = "disabled"
    FREE = "free"

    def __str__(self):
        return self.value


class Weekday(int, Enum):
    """Day of week as used by recurrence rules (Sunday=0, Saturday=6)."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
