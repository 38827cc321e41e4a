"""
Schedule Entry Entity
=====================

One concrete, time-boxed booking of a set of headsets to a program.

Entries are independent records: a recurring booking is expanded into
separate entries at creation time and editing one never touches another.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from app.domain.exceptions import ValidationError
from app.enums import STATUS_TRANSITIONS, ScheduleStatus
from app.utils.time import coerce_datetime

logger = logging.getLogger(__name__)


@dataclass
class ScheduleEntry:
    """
    A single booking.

    Attributes:
        id: Store identifier (None before creation)
        program_id: Program being run
        device_ids: Headsets booked for the window
        start_datetime: ISO start, inclusive
        end_datetime: ISO end, exclusive; must be after start
        status: Lifecycle status
        institution_id: Hosting institution, optional
        location: Where the session takes place
        learning_space: Room or space inside the institution, optional
        notes: Free text
        assigned_teacher_id: Teacher running the session, optional
    """

    id: str | None = None
    program_id: str = ""
    device_ids: list[str] = field(default_factory=list)
    start_datetime: str = ""
    end_datetime: str = ""
    status: ScheduleStatus = ScheduleStatus.PLANNED
    institution_id: str | None = None
    location: str = ""
    learning_space: str | None = None
    notes: str = ""
    assigned_teacher_id: str | None = None

    @property
    def start(self) -> datetime | None:
        return coerce_datetime(self.start_datetime)

    @property
    def end(self) -> datetime | None:
        return coerce_datetime(self.end_datetime)

    @property
    def is_cancelled(self) -> bool:
        return self.status == ScheduleStatus.CANCELLED

    def has_valid_window(self) -> bool:
        start, end = self.start, self.end
        return start is not None and end is not None and end > start

    def can_transition_to(self, target: ScheduleStatus) -> bool:
        return target == self.status or target in STATUS_TRANSITIONS[self.status]

    def with_status(self, target: ScheduleStatus | str) -> "ScheduleEntry":
        """Return a copy moved to ``target``; raises on a forbidden transition."""
        status = ScheduleStatus.coerce(target)
        if not self.can_transition_to(status):
            raise ValidationError(
                f"Cannot move schedule entry from '{self.status}' to '{status}'",
                detail={"schedule_id": self.id},
            )
        return replace(self, status=status)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "program_id": self.program_id,
            "device_ids": list(self.device_ids),
            "start_datetime": self.start_datetime,
            "end_datetime": self.end_datetime,
            "status": self.status.value,
            "location": self.location,
            "notes": self.notes,
        }
        if self.id is not None:
            payload["id"] = self.id
        for name in ("institution_id", "learning_space", "assigned_teacher_id"):
            value = getattr(self, name)
            if value:
                payload[name] = value
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ScheduleEntry":
        raw_status = data.get("status")
        try:
            status = ScheduleStatus.coerce(raw_status)
        except ValueError:
            logger.warning("Unknown status %r on schedule entry %s; treating as planned", raw_status, data.get("id"))
            status = ScheduleStatus.PLANNED
        entry_id = data.get("id")
        return ScheduleEntry(
            id=str(entry_id) if entry_id is not None else None,
            program_id=str(data.get("program_id") or ""),
            device_ids=[str(i) for i in (data.get("device_ids") or [])],
            start_datetime=data.get("start_datetime") or "",
            end_datetime=data.get("end_datetime") or "",
            status=status,
            institution_id=data.get("institution_id"),
            location=data.get("location") or data.get("custom_location") or "",
            learning_space=data.get("learning_space"),
            notes=data.get("notes") or "",
            assigned_teacher_id=data.get("assigned_teacher_id"),
        )
