"""
Device Conflict Detection
=========================

Flags headsets that would be double-booked by a candidate time window.

Windows are half-open ``[start, end)``: two windows overlap only when
``a_start < b_end and a_end > b_start``. Back-to-back bookings (one ends
exactly when the next starts) are not conflicts.

Conflicts are advisory. The detector only reports; the caller decides
whether to proceed after explicit confirmation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping

from app.domain.devices import Device
from app.domain.programs import Program, display_title
from app.domain.schedules import ScheduleEntry
from app.enums import DeviceAvailability
from app.utils.time import coerce_datetime, format_window

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceConflict:
    """One device booked by an overlapping entry."""

    device_id: str
    schedule_id: str | None
    conflicting_program_id: str
    conflict_start: str
    conflict_end: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "device_id": self.device_id,
            "schedule_id": self.schedule_id,
            "conflicting_program_id": self.conflicting_program_id,
            "conflict_start": self.conflict_start,
            "conflict_end": self.conflict_end,
        }

    def describe(self) -> str:
        start, end = coerce_datetime(self.conflict_start), coerce_datetime(self.conflict_end)
        window = format_window(start, end) if start and end else f"{self.conflict_start}-{self.conflict_end}"
        return f"Device {self.device_id} is booked by program {self.conflicting_program_id} on {window}"


@dataclass
class DeviceStatusInfo:
    """Availability of one device for a requested window."""

    device_id: str
    binocular_number: int
    availability: DeviceAvailability
    schedule_id: str | None = None
    program_id: str | None = None
    program_title: str | None = None
    start: str | None = None
    end: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "device_id": self.device_id,
            "binocular_number": self.binocular_number,
            "availability": self.availability.value,
            "schedule_id": self.schedule_id,
            "program_id": self.program_id,
            "program_title": self.program_title,
            "start": self.start,
            "end": self.end,
        }


def intervals_overlap(a_start: Any, a_end: Any, b_start: Any, b_end: Any) -> bool:
    """Strict half-open overlap test; False when any bound is unparseable."""
    bounds = [coerce_datetime(v) for v in (a_start, a_end, b_start, b_end)]
    if any(b is None for b in bounds):
        return False
    s1, e1, s2, e2 = bounds
    return s1 < e2 and e1 > s2


def _as_entry(item: ScheduleEntry | dict[str, Any]) -> ScheduleEntry:
    return item if isinstance(item, ScheduleEntry) else ScheduleEntry.from_dict(item)


def _window(start: Any, end: Any) -> tuple[datetime, datetime] | None:
    s, e = coerce_datetime(start), coerce_datetime(end)
    if s is None or e is None or e <= s:
        return None
    return s, e


def _overlapping_entries(
    start: datetime,
    end: datetime,
    entries: Iterable[ScheduleEntry | dict[str, Any]],
    exclude_schedule_id: str | None,
) -> Iterable[ScheduleEntry]:
    """Non-cancelled entries overlapping ``[start, end)``, in input order."""
    for item in entries:
        entry = _as_entry(item)
        if entry.is_cancelled:
            continue
        if exclude_schedule_id is not None and entry.id == exclude_schedule_id:
            continue
        entry_start, entry_end = entry.start, entry.end
        if entry_start is None or entry_end is None:
            logger.warning(
                "Skipping schedule entry %s with malformed window %r - %r",
                entry.id,
                entry.start_datetime,
                entry.end_datetime,
            )
            continue
        if start < entry_end and end > entry_start:
            yield entry


def find_conflicts(
    candidate_device_ids: Iterable[str],
    start: Any,
    end: Any,
    entries: Iterable[ScheduleEntry | dict[str, Any]],
    exclude_schedule_id: str | None = None,
    allowed_device_ids: Iterable[str] | None = None,
) -> list[DeviceConflict]:
    """
    Report every (entry, device) double-booking for a candidate window.

    Args:
        candidate_device_ids: Devices the caller wants to book
        start: Window start (datetime or ISO string), inclusive
        end: Window end (datetime or ISO string), exclusive
        entries: Snapshot of existing schedule entries (entities or dicts)
        exclude_schedule_id: Entry being edited; never conflicts with itself
        allowed_device_ids: Devices already assigned to this program; never reported

    Returns:
        Conflicts in entry order, then candidate order. A device booked by
        several overlapping entries appears once per entry.
    """
    window = _window(start, end)
    if window is None:
        logger.warning("Conflict check skipped for invalid window %r - %r", start, end)
        return []

    allowed = set(allowed_device_ids or ())
    candidates = [d for d in dict.fromkeys(candidate_device_ids) if d not in allowed]
    if not candidates:
        return []

    conflicts: list[DeviceConflict] = []
    for entry in _overlapping_entries(window[0], window[1], entries, exclude_schedule_id):
        booked = set(entry.device_ids)
        for device_id in candidates:
            if device_id in booked:
                conflicts.append(
                    DeviceConflict(
                        device_id=device_id,
                        schedule_id=entry.id,
                        conflicting_program_id=entry.program_id,
                        conflict_start=entry.start_datetime,
                        conflict_end=entry.end_datetime,
                    )
                )

    if conflicts:
        logger.info(
            "Found %d device conflict(s) for window %s - %s",
            len(conflicts),
            window[0].isoformat(),
            window[1].isoformat(),
        )
    return conflicts


def availability_map(
    devices: Iterable[Device],
    start: Any,
    end: Any,
    entries: Iterable[ScheduleEntry | dict[str, Any]],
    current_device_ids: Iterable[str] = (),
    programs: Mapping[str, Program | dict[str, Any]] | None = None,
    exclude_schedule_id: str | None = None,
) -> dict[str, DeviceStatusInfo]:
    """
    Classify each device for a window as current, disabled, busy or free.

    Precedence: devices already assigned to the program are ``current``;
    out-of-service devices are ``disabled``; a device booked by an
    overlapping entry is ``busy`` with that entry's program and window (the
    first such entry wins); everything else is ``free``.
    """
    current = set(current_device_ids)
    programs = programs or {}
    window = _window(start, end)
    overlapping = (
        list(_overlapping_entries(window[0], window[1], entries, exclude_schedule_id)) if window else []
    )

    statuses: dict[str, DeviceStatusInfo] = {}
    for device in devices:
        info = DeviceStatusInfo(
            device_id=device.id,
            binocular_number=device.binocular_number,
            availability=DeviceAvailability.FREE,
        )
        if device.id in current:
            info.availability = DeviceAvailability.CURRENT
        elif device.is_unavailable:
            info.availability = DeviceAvailability.DISABLED
        else:
            for entry in overlapping:
                if device.id in entry.device_ids:
                    info.availability = DeviceAvailability.BUSY
                    info.schedule_id = entry.id
                    info.program_id = entry.program_id
                    info.program_title = display_title(programs.get(entry.program_id), default=entry.program_id)
                    info.start = entry.start_datetime
                    info.end = entry.end_datetime
                    break
        statuses[device.id] = info
    return statuses
