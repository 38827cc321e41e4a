"""
Schedule Domain Module
======================

Schedule entries and the recurrence rules that generate them.

This module provides:
- ScheduleEntry: one booking of a set of headsets to a program
- RecurrenceRule / RecurrenceEnd: transient generator specification
- RecurrenceExpander: expansion of a rule into concrete occurrences
"""
from app.domain.schedules.recurrence import (
    Occurrence,
    RecurrenceEnd,
    RecurrenceExpander,
    RecurrenceRule,
    expand,
    occurrence_for_date,
)
from app.domain.schedules.schedule_entity import ScheduleEntry

__all__ = [
    "Occurrence",
    "RecurrenceEnd",
    "RecurrenceExpander",
    "RecurrenceRule",
    "ScheduleEntry",
    "expand",
    "occurrence_for_date",
]
