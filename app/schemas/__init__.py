"""
Schemas Module
==============

This module provides Pydantic models for request validation.
"""

from app.schemas.scheduling import RecurrenceRequest, ScheduleEntryPatch, ScheduleEntryRequest

__all__ = [
    "RecurrenceRequest",
    "ScheduleEntryPatch",
    "ScheduleEntryRequest",
]
