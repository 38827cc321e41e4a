"""
Enums Module
============

This module provides enumeration types for the fleet scheduler.
Enums ensure type safety and consistency across the codebase.
"""

from app.enums.scheduling import (
    LEGACY_STATUS_LABELS,
    STATUS_TRANSITIONS,
    DeviceAvailability,
    RecurrenceEndType,
    RecurrenceType,
    ScheduleStatus,
    Weekday,
)

__all__ = [
    "LEGACY_STATUS_LABELS",
    "STATUS_TRANSITIONS",
    "DeviceAvailability",
    "RecurrenceEndType",
    "RecurrenceType",
    "ScheduleStatus",
    "Weekday",
]
