"""
Scheduling Schemas
==================

Pydantic models for schedule creation and update requests.

The models only check shape and types. Business validation (required
devices, HH:MM times, positive durations and recurrence steps) is done by
ScheduleEntryService so every problem is reported together.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.domain.schedules import RecurrenceEnd, RecurrenceRule
from app.enums import RecurrenceEndType, RecurrenceType, ScheduleStatus, Weekday
from app.utils.time import coerce_date

WEEKDAY_VALUES = frozenset(d.value for d in Weekday)


def _coerce_status(v):
    if v is None or isinstance(v, ScheduleStatus):
        return v
    try:
        return ScheduleStatus.coerce(v)
    except ValueError as e:
        raise ValueError(str(e)) from None


def _to_date(v):
    # Unparseable values pass through so pydantic reports them
    if isinstance(v, (str, date)):
        return coerce_date(v) or v
    return v


class RecurrenceRequest(BaseModel):
    """Recurrence part of a creation request."""
    model_config = ConfigDict(extra="ignore")

    type: RecurrenceType = Field(default=RecurrenceType.DAILY, description="daily, weekly or monthly")
    interval: int = Field(default=1, description="Step in days, weeks or months")
    weekdays: List[int] = Field(default_factory=list, description="Weekly only: 0=Sunday .. 6=Saturday")
    end_type: RecurrenceEndType = Field(default=RecurrenceEndType.NEVER, description="never, date or count")
    end_date: Optional[date] = Field(default=None, description="Last allowed date when end_type is date")
    end_count: Optional[int] = Field(default=None, description="Occurrences when end_type is count")

    @field_validator("type", "end_type", mode="before")
    @classmethod
    def normalize_enum(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("end_date", mode="before")
    @classmethod
    def accept_datetime(cls, v):
        return _to_date(v)

    @field_validator("weekdays")
    @classmethod
    def validate_weekdays(cls, v: List[int]) -> List[int]:
        for day in v:
            if day not in WEEKDAY_VALUES:
                raise ValueError(f"Weekday {day} is out of range 0-6")
        return sorted(set(v))

    def to_rule(self) -> RecurrenceRule:
        if self.end_type == RecurrenceEndType.DATE:
            end = RecurrenceEnd(RecurrenceEndType.DATE, self.end_date)
        elif self.end_type == RecurrenceEndType.COUNT:
            end = RecurrenceEnd(RecurrenceEndType.COUNT, self.end_count)
        else:
            end = RecurrenceEnd()
        return RecurrenceRule(
            type=self.type,
            interval=self.interval,
            weekdays=frozenset(self.weekdays),
            end=end,
        )


class ScheduleEntryRequest(BaseModel):
    """Request to book devices for a program on one or more dates."""
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    program_id: str = Field(default="", description="Program to schedule")
    device_ids: Optional[List[str]] = Field(
        default=None,
        description="Devices to book; resolved from the program when omitted",
    )
    selected_dates: List[date] = Field(default_factory=list, description="Dates picked by the user")
    start_time: str = Field(default="", description="Start time HH:MM")
    duration_hours: Optional[float] = Field(default=None, description="Length of each session in hours")
    location: str = Field(default="", description="Where the session takes place")
    notes: str = Field(default="")
    status: ScheduleStatus = Field(default=ScheduleStatus.PLANNED)
    institution_id: Optional[str] = None
    assigned_teacher_id: Optional[str] = None
    learning_space: Optional[str] = None
    recurrence: Optional[RecurrenceRequest] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return _coerce_status(v) or ScheduleStatus.PLANNED

    @field_validator("selected_dates", mode="before")
    @classmethod
    def accept_datetimes(cls, v):
        if isinstance(v, (str, date)):
            v = [v]
        return [_to_date(d) for d in (v or [])]


class ScheduleEntryPatch(BaseModel):
    """Partial update of a single schedule entry."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    program_id: Optional[str] = None
    device_ids: Optional[List[str]] = None
    start_datetime: Optional[datetime] = None
    end_datetime: Optional[datetime] = None
    status: Optional[ScheduleStatus] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    institution_id: Optional[str] = None
    learning_space: Optional[str] = None
    assigned_teacher_id: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return _coerce_status(v)

    def changes(self) -> Dict[str, Any]:
        """Fields the caller set, serialized the way entries are stored."""
        data = self.model_dump(exclude_unset=True)
        for key in ("start_datetime", "end_datetime"):
            if data.get(key) is not None:
                data[key] = data[key].isoformat()
        if data.get("status") is not None:
            data["status"] = data["status"].value
        elif "status" in data:
            del data["status"]
        return data
