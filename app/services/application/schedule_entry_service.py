"""
Schedule Entry Service
======================

Creates and edits schedule entries: validates the request, resolves the
devices, expands recurrence into concrete occurrences, checks every
occurrence for device double-booking and writes one independent entry per
occurrence.

Conflict policy:
- Double-booking is advisory. Without confirmation the service returns a
  ``conflicts`` result and writes nothing.
- With confirmation it re-checks against a fresh snapshot right before
  writing and reports whatever it finds alongside the created entries.
- The store has no transactions. Two users confirming at the same moment
  both succeed; the later write is not prevented, only reported.

Each occurrence is created on its own through the batch runner, so a
partial failure leaves the successful entries in place and the result
lists exactly which occurrences failed.
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Iterable

from pydantic import ValidationError as PydanticValidationError

from app.domain.devices import DeviceAppIndex, DeviceCatalog
from app.domain.exceptions import ValidationError
from app.domain.programs import Program
from app.domain.schedules import Occurrence, RecurrenceExpander, ScheduleEntry
from app.enums import RecurrenceEndType, RecurrenceType, ScheduleStatus
from app.schemas.scheduling import ScheduleEntryPatch, ScheduleEntryRequest
from app.services.utilities.conflict_detector import DeviceConflict, find_conflicts
from app.services.utilities.program_device_resolver import resolve_devices
from app.utils.batch import BatchResult, BatchRunner, ProgressCallback
from app.utils.concurrency import gather_reads
from app.utils.time import coerce_datetime, parse_hhmm
from infrastructure.logging.audit import AuditAction, AuditLogger

if TYPE_CHECKING:
    from app.services.protocols import DeviceAppStore, DeviceStore, ProgramStore, ScheduleEntryStore

logger = logging.getLogger(__name__)


@dataclass
class CreationFailure:
    """One occurrence whose entry could not be written."""

    index: int
    start: str
    end: str
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "start": self.start, "end": self.end, "error": self.error}


@dataclass
class ScheduleCreationResult:
    """
    Outcome of a creation request.

    ``status`` is one of:
    - ``conflicts``: double-booking found and not confirmed; nothing written
    - ``created``: every occurrence was written
    - ``partial``: some occurrences failed or the run was cancelled
    """

    status: str
    occurrences: list[Occurrence] = field(default_factory=list)
    device_ids: list[str] = field(default_factory=list)
    conflicts: list[DeviceConflict] = field(default_factory=list)
    created: list[ScheduleEntry] = field(default_factory=list)
    failures: list[CreationFailure] = field(default_factory=list)
    cancelled: bool = False
    not_attempted: int = 0

    @property
    def requires_confirmation(self) -> bool:
        return self.status == "conflicts"

    @property
    def success_count(self) -> int:
        return len(self.created)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    def summary(self) -> str:
        if self.requires_confirmation:
            return f"{len(self.conflicts)} conflict(s) need confirmation"
        text = f"{self.success_count} succeeded, {self.failure_count} failed"
        if self.cancelled:
            text += f", {self.not_attempted} not attempted (cancelled)"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "device_ids": list(self.device_ids),
            "occurrences": [list(o.to_iso()) for o in self.occurrences],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "created": [e.to_dict() for e in self.created],
            "failures": [f.to_dict() for f in self.failures],
            "cancelled": self.cancelled,
            "not_attempted": self.not_attempted,
            "summary": self.summary(),
        }


@dataclass
class ScheduleUpdateResult:
    """Outcome of an update: ``updated`` or ``conflicts`` (nothing written)."""

    status: str
    entry: ScheduleEntry
    conflicts: list[DeviceConflict] = field(default_factory=list)

    @property
    def requires_confirmation(self) -> bool:
        return self.status == "conflicts"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "entry": self.entry.to_dict(),
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


def _pydantic_messages(error: PydanticValidationError) -> list[str]:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        messages.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return messages


def _location_sort_key(loc: tuple) -> tuple:
    # List indices sort numerically so higher ones are dropped first
    return tuple((0, part, "") if isinstance(part, int) else (1, 0, str(part)) for part in loc)


def _drop_location(data: dict[str, Any], loc: tuple) -> None:
    """Remove the value at a pydantic error location, or its top-level field."""
    if not loc:
        return
    container: Any = data
    try:
        for part in loc[:-1]:
            container = container[part]
        del container[loc[-1]]
    except (KeyError, IndexError, TypeError):
        data.pop(loc[0], None)


class ScheduleEntryService:
    """
    Schedule entry orchestration.

    Every public call re-reads what it needs from the stores: devices,
    relations and entries are edited out-of-band, so nothing is cached
    between calls.
    """

    def __init__(
        self,
        schedule_store: "ScheduleEntryStore",
        program_store: "ProgramStore",
        device_store: "DeviceStore",
        device_app_store: "DeviceAppStore",
        *,
        expander: RecurrenceExpander | None = None,
        batch_runner: BatchRunner | None = None,
        audit_logger: AuditLogger | None = None,
    ):
        """
        Initialize the service.

        Args:
            schedule_store: Schedule entry records
            program_store: Program records
            device_store: Headset records
            device_app_store: Device/app relation records
            expander: Recurrence expander (configured caps)
            batch_runner: Bounded runner for per-entry writes
            audit_logger: Audit trail of writes
        """
        self._schedules = schedule_store
        self._programs = program_store
        self._devices = device_store
        self._relations = device_app_store
        self._expander = expander or RecurrenceExpander()
        self._batch = batch_runner or BatchRunner(name="schedule")
        self._audit = audit_logger

    # ==================== Creation ====================

    def create_entries(
        self,
        request: ScheduleEntryRequest | dict[str, Any],
        confirm_conflicts: bool = False,
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> ScheduleCreationResult:
        """
        Create one schedule entry per occurrence of the request.

        Args:
            request: Creation request (model or raw dict)
            confirm_conflicts: Proceed even when devices are double-booked
            cancel_event: Set to stop creating further entries
            progress: ``progress(current, total)`` after each written entry

        Returns:
            ScheduleCreationResult

        Raises:
            ValidationError: Request is incomplete; nothing was written
            NotFoundError: The program does not exist
        """
        request, errors = self._parse_request(request)

        program = Program.from_dict(self._programs.get(request.program_id)) if request.program_id else None

        snapshot = gather_reads(
            devices=self._devices.list,
            relations=self._relations.list,
            entries=self._schedules.list,
        )
        device_ids = self._request_device_ids(request, program, snapshot)
        errors.extend(self.validate_request(request, resolved_device_ids=device_ids))
        if errors:
            raise ValidationError(errors=errors, detail={"program_id": request.program_id})

        occurrences = self.expand_occurrences(request)
        if not occurrences:
            raise ValidationError(
                "No dates were generated for this schedule", detail={"program_id": request.program_id}
            )

        conflicts = self._conflicts_for(device_ids, occurrences, snapshot["entries"])
        if conflicts and not confirm_conflicts:
            logger.info(
                "Schedule for program %s has %d conflict(s); awaiting confirmation",
                request.program_id,
                len(conflicts),
            )
            for conflict in conflicts:
                logger.debug(conflict.describe())
            return ScheduleCreationResult(
                status="conflicts", occurrences=occurrences, device_ids=device_ids, conflicts=conflicts
            )

        # Fresh read right before writing; someone may have booked in between
        conflicts = self._conflicts_for(device_ids, occurrences, self._schedules.list())
        if conflicts and not confirm_conflicts:
            return ScheduleCreationResult(
                status="conflicts", occurrences=occurrences, device_ids=device_ids, conflicts=conflicts
            )
        if conflicts and self._audit:
            self._audit.log_event(
                AuditAction.CONFLICTS_CONFIRMED,
                f"program:{request.program_id}",
                conflicts=[c.to_dict() for c in conflicts],
            )

        entries = [self._entry_for(request, device_ids, occurrence) for occurrence in occurrences]
        batch = self._batch.run(entries, self._create_one, cancel_event=cancel_event, progress=progress)

        result = ScheduleCreationResult(
            status="created" if batch.ok else "partial",
            occurrences=occurrences,
            device_ids=device_ids,
            conflicts=conflicts,
            created=batch.values,
            failures=[
                CreationFailure(
                    index=f.index,
                    start=f.item.start_datetime,
                    end=f.item.end_datetime,
                    error=f.error,
                )
                for f in batch.failed
            ],
            cancelled=batch.cancelled,
            not_attempted=batch.not_attempted,
        )
        logger.info("Scheduled program %s: %s", request.program_id, result.summary())
        return result

    def validate_request(
        self,
        request: ScheduleEntryRequest,
        resolved_device_ids: list[str] | None = None,
    ) -> list[str]:
        """
        Every problem with the request, in form order; empty when valid.

        ``resolved_device_ids`` are the devices the request ends up booking.
        When given, an empty list is reported even if the request left the
        device choice to the program.
        """
        errors: list[str] = []
        if not request.program_id:
            errors.append("A program must be selected")
        no_devices = request.device_ids == [] or (resolved_device_ids is not None and not resolved_device_ids)
        if no_devices:
            errors.append("At least one device must be selected")
        if not request.selected_dates:
            errors.append("At least one date must be selected")
        if parse_hhmm(request.start_time) is None:
            errors.append("Start time must be in HH:MM format")
        if request.duration_hours is None or not request.duration_hours > 0:
            errors.append("Duration must be greater than zero")
        if not request.location:
            errors.append("A location must be given")

        recurrence = request.recurrence
        if recurrence is not None:
            if recurrence.interval < 1:
                errors.append("Recurrence interval must be at least 1")
            if recurrence.type == RecurrenceType.WEEKLY and not recurrence.weekdays:
                errors.append("Weekly recurrence needs at least one weekday")
            if recurrence.end_type == RecurrenceEndType.DATE and recurrence.end_date is None:
                errors.append("An end date must be given for recurrence ending on a date")
            if recurrence.end_type == RecurrenceEndType.COUNT:
                if recurrence.end_count is None:
                    errors.append("An occurrence count must be given for recurrence ending after a count")
                elif recurrence.end_count < 1:
                    errors.append("Occurrence count must be at least 1")
        return errors

    def expand_occurrences(self, request: ScheduleEntryRequest) -> list[Occurrence]:
        """Concrete windows for a request; no store access."""
        if request.recurrence is not None and request.selected_dates:
            return self._expander.expand(
                request.selected_dates[0],
                request.start_time,
                request.duration_hours,
                request.recurrence.to_rule(),
            )
        return self._expander.expand_dates(request.selected_dates, request.start_time, request.duration_hours)

    def _request_device_ids(
        self,
        request: ScheduleEntryRequest,
        program: Program | None,
        snapshot: dict[str, Any],
    ) -> list[str]:
        catalog = DeviceCatalog(snapshot["devices"])
        if request.device_ids is not None:
            return [d.id for d in catalog.resolve(request.device_ids)]
        if program is None:
            return []
        index = DeviceAppIndex.from_relations(snapshot["relations"])
        eligible = resolve_devices(program, index, catalog)
        skipped = [d.binocular_number for d in eligible if d.is_unavailable]
        if skipped:
            logger.info("Leaving out-of-service devices %s out of program %s", skipped, program.id)
        return [d.id for d in eligible if not d.is_unavailable]

    @staticmethod
    def _conflicts_for(
        device_ids: list[str],
        occurrences: Iterable[Occurrence],
        entries: list[dict[str, Any]],
    ) -> list[DeviceConflict]:
        parsed = [ScheduleEntry.from_dict(e) for e in entries]
        conflicts: list[DeviceConflict] = []
        for occurrence in occurrences:
            conflicts.extend(find_conflicts(device_ids, occurrence.start, occurrence.end, parsed))
        return conflicts

    @staticmethod
    def _entry_for(request: ScheduleEntryRequest, device_ids: list[str], occurrence: Occurrence) -> ScheduleEntry:
        start, end = occurrence.to_iso()
        return ScheduleEntry(
            program_id=request.program_id,
            device_ids=list(device_ids),
            start_datetime=start,
            end_datetime=end,
            status=request.status,
            institution_id=request.institution_id,
            location=request.location,
            learning_space=request.learning_space,
            notes=request.notes,
            assigned_teacher_id=request.assigned_teacher_id,
        )

    def _create_one(self, entry: ScheduleEntry) -> ScheduleEntry:
        created = ScheduleEntry.from_dict(self._schedules.create(entry.to_dict()))
        if self._audit:
            self._audit.log_event(
                AuditAction.SCHEDULE_CREATED,
                f"schedule:{created.id}",
                program_id=created.program_id,
                start=created.start_datetime,
                end=created.end_datetime,
                devices=len(created.device_ids),
            )
        return created

    # ==================== Editing ====================

    def update_entry(
        self,
        entry_id: str,
        patch: ScheduleEntryPatch | dict[str, Any],
        confirm_conflicts: bool = False,
    ) -> ScheduleUpdateResult:
        """
        Patch one entry. Sibling entries from the same recurrence are never touched.

        Raises:
            NotFoundError: Entry does not exist
            ValidationError: Unknown field, forbidden status transition or invalid window
        """
        patch = self._parse(ScheduleEntryPatch, patch)
        changes = patch.changes()
        current = ScheduleEntry.from_dict(self._schedules.get(entry_id))
        if not changes:
            return ScheduleUpdateResult(status="updated", entry=current)

        merged = current
        if "status" in changes:
            merged = current.with_status(changes["status"])
        merged = replace(
            merged,
            **{k: v for k, v in changes.items() if k != "status"},
        )

        errors: list[str] = []
        if not merged.has_valid_window():
            errors.append("End time must be after start time")
        if not merged.device_ids:
            errors.append("At least one device must be selected")
        if errors:
            raise ValidationError(errors=errors, detail={"schedule_id": entry_id})

        conflicts: list[DeviceConflict] = []
        window_changed = bool({"start_datetime", "end_datetime", "device_ids"} & changes.keys())
        if window_changed and not merged.is_cancelled:
            conflicts = find_conflicts(
                merged.device_ids,
                merged.start_datetime,
                merged.end_datetime,
                [ScheduleEntry.from_dict(e) for e in self._schedules.list()],
                exclude_schedule_id=entry_id,
            )
            if conflicts and not confirm_conflicts:
                return ScheduleUpdateResult(status="conflicts", entry=current, conflicts=conflicts)

        updated = ScheduleEntry.from_dict(self._schedules.update(entry_id, changes))
        if self._audit:
            action = AuditAction.SCHEDULE_UPDATED
            if updated.is_cancelled and not current.is_cancelled:
                action = AuditAction.SCHEDULE_CANCELLED
            self._audit.log_event(action, f"schedule:{entry_id}", fields=sorted(changes))
        return ScheduleUpdateResult(status="updated", entry=updated, conflicts=conflicts)

    def cancel_entry(self, entry_id: str) -> ScheduleEntry:
        """Move an entry to cancelled; it stops taking part in conflict checks."""
        return self.update_entry(entry_id, {"status": ScheduleStatus.CANCELLED.value}).entry

    def delete_entry(self, entry_id: str) -> None:
        self._schedules.delete(entry_id)
        if self._audit:
            self._audit.log_event(AuditAction.SCHEDULE_DELETED, f"schedule:{entry_id}")

    def delete_entries(
        self,
        entry_ids: Iterable[str],
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Delete many entries with progress reporting; failures do not stop the rest."""
        result = self._batch.run(
            list(dict.fromkeys(entry_ids)), self.delete_entry, cancel_event=cancel_event, progress=progress
        )
        logger.info("Bulk delete: %s", result.summary())
        return result

    # ==================== Queries ====================

    def entries_for_device(
        self,
        device_id: str,
        entries: Iterable[ScheduleEntry | dict[str, Any]] | None = None,
        include_cancelled: bool = False,
    ) -> list[ScheduleEntry]:
        """Entries booking ``device_id``, ordered by start."""
        source = self._schedules.list() if entries is None else entries
        matched = []
        for item in source:
            entry = item if isinstance(item, ScheduleEntry) else ScheduleEntry.from_dict(item)
            if device_id not in entry.device_ids:
                continue
            if entry.is_cancelled and not include_cancelled:
                continue
            matched.append(entry)
        return sorted(matched, key=lambda e: (coerce_datetime(e.start_datetime) is None, e.start_datetime))

    @staticmethod
    def _parse_request(
        payload: ScheduleEntryRequest | dict[str, Any] | None,
    ) -> tuple[ScheduleEntryRequest, list[str]]:
        """
        Parse a creation request without stopping at the first bad field.

        Fields pydantic rejects are reported and then dropped, so the
        business checks still run on the rest of the payload.
        """
        if isinstance(payload, ScheduleEntryRequest):
            return payload, []
        data = copy.deepcopy(dict(payload or {}))
        try:
            return ScheduleEntryRequest.model_validate(data), []
        except PydanticValidationError as e:
            errors = _pydantic_messages(e)
            locations = [tuple(item.get("loc", ())) for item in e.errors()]
        for loc in sorted(locations, key=_location_sort_key, reverse=True):
            _drop_location(data, loc)
        try:
            return ScheduleEntryRequest.model_validate(data), errors
        except PydanticValidationError as e:
            raise ValidationError(errors=errors + _pydantic_messages(e)) from e

    @staticmethod
    def _parse(model: type, payload: Any) -> Any:
        if isinstance(payload, model):
            return payload
        try:
            return model.model_validate(payload or {})
        except PydanticValidationError as e:
            raise ValidationError(errors=_pydantic_messages(e)) from e
