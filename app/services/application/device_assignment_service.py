"""
Device Assignment Service
=========================

Fleet-side write operations around headsets:

- installing a program's applications onto devices (idempotent)
- removing an application from devices, one outcome per relation
- disabling / re-enabling a device
- deleting a device, blocked while planned or active entries still book it
- explicit device assignment for a program
- per-device availability for a window

Installing onto devices booked elsewhere in the requested window follows
the same advisory policy as scheduling: a ``conflicts`` result unless the
caller confirms.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable

from app.domain.devices import Device, DeviceAppIndex, DeviceAppRelation, DeviceCatalog, sort_by_number
from app.domain.exceptions import ConflictError, ValidationError
from app.domain.programs import Program, resolve_app_ids
from app.domain.schedules import ScheduleEntry
from app.services.utilities.conflict_detector import DeviceConflict, DeviceStatusInfo, availability_map, find_conflicts
from app.utils.batch import BatchResult, BatchRunner, ProgressCallback
from app.utils.concurrency import gather_reads
from infrastructure.logging.audit import AuditAction, AuditLogger

if TYPE_CHECKING:
    from app.services.protocols import DeviceAppStore, DeviceStore, ProgramStore, ScheduleEntryStore

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Outcome of installing program apps: ``installed`` or ``conflicts``."""

    status: str
    device_ids: list[str] = field(default_factory=list)
    created: list[DeviceAppRelation] = field(default_factory=list)
    already_installed: int = 0
    conflicts: list[DeviceConflict] = field(default_factory=list)

    @property
    def requires_confirmation(self) -> bool:
        return self.status == "conflicts"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "device_ids": list(self.device_ids),
            "created": [r.to_dict() for r in self.created],
            "already_installed": self.already_installed,
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


@dataclass
class DeviceDeletionResult:
    """Outcome of deleting a device; ``deleted`` is False when relations failed."""

    device_id: str
    deleted: bool
    relations: BatchResult

    def to_dict(self) -> dict[str, Any]:
        return {"device_id": self.device_id, "deleted": self.deleted, "relations": self.relations.to_dict()}


class DeviceAssignmentService:
    """Device and device/app relation management."""

    def __init__(
        self,
        device_store: "DeviceStore",
        device_app_store: "DeviceAppStore",
        program_store: "ProgramStore",
        schedule_store: "ScheduleEntryStore",
        *,
        batch_runner: BatchRunner | None = None,
        audit_logger: AuditLogger | None = None,
    ):
        self._devices = device_store
        self._relations = device_app_store
        self._programs = program_store
        self._schedules = schedule_store
        self._batch = batch_runner or BatchRunner(name="devices")
        self._audit = audit_logger

    def _log(self, action: AuditAction, resource: str, **metadata: Any) -> None:
        if self._audit:
            self._audit.log_event(action, resource, **metadata)

    def install_program_apps(
        self,
        program_id: str,
        device_ids: Iterable[str],
        *,
        start: Any = None,
        end: Any = None,
        confirm_busy: bool = False,
    ) -> InstallResult:
        """
        Install every application of a program onto the given devices.

        Existing (device, app) pairs are left alone, so repeating the call
        creates nothing new. When ``start``/``end`` are given, devices booked
        by another program in that window are reported as conflicts and
        nothing is written unless ``confirm_busy`` is set.

        Raises:
            NotFoundError: Program does not exist
            ValidationError: Program has no applications or no device was selected
        """
        program = Program.from_dict(self._programs.get(program_id))
        app_ids = sorted(resolve_app_ids(program))
        errors = []
        if not app_ids:
            errors.append("The program has no applications to install")

        snapshot = gather_reads(
            devices=self._devices.list,
            relations=self._relations.list,
            entries=self._schedules.list,
        )
        catalog = DeviceCatalog(snapshot["devices"])
        targets = [d.id for d in sort_by_number(catalog.resolve(device_ids))]
        if not targets:
            errors.append("At least one device must be selected")
        if errors:
            raise ValidationError(errors=errors, detail={"program_id": program_id})

        conflicts: list[DeviceConflict] = []
        if start is not None and end is not None:
            conflicts = find_conflicts(
                targets,
                start,
                end,
                snapshot["entries"],
                allowed_device_ids=program.assigned_device_ids,
            )
            if conflicts and not confirm_busy:
                return InstallResult(status="conflicts", device_ids=targets, conflicts=conflicts)

        index = DeviceAppIndex.from_relations(snapshot["relations"])
        missing = index.missing_relations(targets, app_ids)
        created: list[DeviceAppRelation] = []
        if missing:
            rows = self._relations.bulk_create([m.to_dict() for m in missing])
            created = [DeviceAppRelation.from_dict(r) for r in rows]

        already = len(targets) * len(app_ids) - len(missing)
        logger.info(
            "Installed %d app relation(s) for program %s on %d device(s); %d already present",
            len(created),
            program_id,
            len(targets),
            already,
        )
        self._log(
            AuditAction.APPS_INSTALLED,
            f"program:{program_id}",
            devices=targets,
            created=len(created),
            confirmed_conflicts=len(conflicts),
        )
        return InstallResult(
            status="installed",
            device_ids=targets,
            created=created,
            already_installed=already,
            conflicts=conflicts,
        )

    def uninstall_app(
        self,
        app_id: str,
        device_ids: Iterable[str],
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Remove one application from the given devices; one outcome per relation."""
        targets = list(dict.fromkeys(device_ids))
        if not targets:
            return BatchResult()
        result = self._relations.bulk_delete(app_id, targets, cancel_event=cancel_event, progress=progress)
        self._log(
            AuditAction.APP_UNINSTALLED,
            f"app:{app_id}",
            outcome="success" if result.ok else "partial",
            devices=targets,
            removed=result.success_count,
            failed=result.failure_count,
        )
        return result

    def set_device_disabled(self, device_id: str, disabled: bool, reason: str | None = None) -> Device:
        """Disable a headset (with a reason) or bring it back into service."""
        patch = {
            "is_disabled": disabled,
            "disable_reason": (reason or "").strip() if disabled else "",
            "current_status": "disabled" if disabled else "available",
        }
        device = Device.from_dict(self._devices.update(device_id, patch))
        action = AuditAction.DEVICE_DISABLED if disabled else AuditAction.DEVICE_ENABLED
        self._log(action, f"device:{device_id}", reason=patch["disable_reason"])
        return device

    def delete_device(self, device_id: str) -> DeviceDeletionResult:
        """
        Delete a headset and its app relations.

        Only planned or active entries block the deletion; ended and
        cancelled ones stay as history. Relations are removed first. When
        any of them cannot be removed the device is kept and the result
        lists the failures, so the call can simply be repeated.

        Raises:
            NotFoundError: Device does not exist
            ConflictError: A planned or active schedule entry still books the device
        """
        device = Device.from_dict(self._devices.get(device_id))
        blocking = [
            entry.id
            for entry in (ScheduleEntry.from_dict(e) for e in self._schedules.list())
            if device_id in entry.device_ids and not entry.status.is_terminal
        ]
        if blocking:
            raise ConflictError(
                f"Device #{device.binocular_number} is booked by {len(blocking)} schedule entr"
                f"{'y' if len(blocking) == 1 else 'ies'}",
                detail={"device_id": device_id, "schedule_ids": blocking},
            )

        relations = self._batch.run(
            self._relations.filter(device_id=device_id),
            lambda relation: self._relations.delete(relation["id"]),
        )
        if relations.failed:
            logger.warning(
                "Keeping device #%s: %d app relation(s) could not be removed",
                device.binocular_number,
                relations.failure_count,
            )
            self._log(
                AuditAction.DEVICE_DELETED,
                f"device:{device_id}",
                outcome="failure",
                removed_relations=relations.success_count,
                failed_relations=relations.failure_count,
            )
            return DeviceDeletionResult(device_id=device_id, deleted=False, relations=relations)

        self._devices.delete(device_id)
        self._log(
            AuditAction.DEVICE_DELETED,
            f"device:{device_id}",
            binocular_number=device.binocular_number,
            removed_relations=relations.success_count,
        )
        return DeviceDeletionResult(device_id=device_id, deleted=True, relations=relations)

    def assign_devices_to_program(self, program_id: str, device_ids: Iterable[str]) -> Program:
        """Replace the program's explicit device assignment; an empty list clears it."""
        requested = list(dict.fromkeys(device_ids))
        catalog = DeviceCatalog(self._devices.list())
        unknown = catalog.missing(requested)
        if unknown:
            raise ValidationError(
                errors=[f"Unknown device {device_id}" for device_id in unknown],
                detail={"program_id": program_id},
            )
        ordered = [d.id for d in sort_by_number(catalog.resolve(requested))]
        program = Program.from_dict(self._programs.update(program_id, {"assigned_device_ids": ordered}))
        self._log(AuditAction.DEVICES_ASSIGNED, f"program:{program_id}", devices=ordered)
        return program

    def device_availability(
        self,
        program_id: str,
        start: Any,
        end: Any,
        exclude_schedule_id: str | None = None,
    ) -> list[DeviceStatusInfo]:
        """Every device classified for the window, ordered by binocular number."""
        snapshot = gather_reads(
            program=lambda: self._programs.get(program_id),
            programs=self._programs.list,
            devices=self._devices.list,
            entries=self._schedules.list,
        )
        program = Program.from_dict(snapshot["program"])
        catalog = DeviceCatalog(snapshot["devices"])
        statuses = availability_map(
            catalog.all(),
            start,
            end,
            snapshot["entries"],
            current_device_ids=program.assigned_device_ids,
            programs={p["id"]: p for p in snapshot["programs"]},
            exclude_schedule_id=exclude_schedule_id,
        )
        return list(statuses.values())
