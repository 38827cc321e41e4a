"""
Shared test fixtures for the fleet scheduler test suite.

Provides:
- In-memory stores seeded with a small headset fleet
- A retry policy that records its sleeps instead of sleeping
- Service instances wired to the seeded stores
- Helper utilities for seeding schedule entries

Fleet used throughout::

    dev-1  #1  apps: app-ocean
    dev-2  #2  apps: app-ocean, app-space
    dev-3  #3  apps: app-space
    dev-4  #4  apps: app-anatomy
    dev-5  #5  apps: app-ocean      (disabled)

Usage:
    def test_example(schedule_service, seed):
        seed.entry(["dev-2"], "2024-01-10T09:00:00", "2024-01-10T11:00:00")
"""

from __future__ import annotations

import copy
import logging
from typing import Any

import pytest

from app.services.application.device_assignment_service import DeviceAssignmentService
from app.services.application.schedule_entry_service import ScheduleEntryService
from app.services.container import StoreSet
from app.utils.batch import BatchRunner
from app.utils.retry import RetryPolicy
from infrastructure.logging.audit import AuditLogger

# ---------------------------------------------------------------------------
# Logging: keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)
logging.getLogger("app").setLevel(logging.WARNING)


DEVICES: list[dict[str, Any]] = [
    {"id": "dev-1", "binocular_number": 1},
    {"id": "dev-2", "binocular_number": 2},
    {"id": "dev-3", "binocular_number": 3},
    {"id": "dev-4", "binocular_number": 4},
    {"id": "dev-5", "binocular_number": 5, "is_disabled": True, "disable_reason": "Cracked lens"},
]

APPLICATIONS: list[dict[str, Any]] = [
    {"id": "app-ocean", "name": "Ocean Explorer"},
    {"id": "app-space", "name": "Space Walk"},
    {"id": "app-anatomy", "name": "Anatomy 3D"},
]

RELATIONS: list[dict[str, Any]] = [
    {"id": "rel-1", "device_id": "dev-1", "app_id": "app-ocean"},
    {"id": "rel-2", "device_id": "dev-2", "app_id": "app-ocean"},
    {"id": "rel-3", "device_id": "dev-2", "app_id": "app-space"},
    {"id": "rel-4", "device_id": "dev-3", "app_id": "app-space"},
    {"id": "rel-5", "device_id": "dev-4", "app_id": "app-anatomy"},
    {"id": "rel-6", "device_id": "dev-5", "app_id": "app-ocean"},
]

PROGRAMS: list[dict[str, Any]] = [
    {
        "id": "prog-ocean",
        "title": "Marine Biology",
        "teaching_materials": [{"app_ids": ["app-ocean"], "experiences": []}],
    },
    {
        "id": "prog-explicit",
        "course_topic": "Astronomy",
        "assigned_device_ids": ["dev-1", "dev-2"],
        "sessions": [{"app_ids": ["app-anatomy"], "experience_ids": ["app-space"]}],
    },
    {
        "id": "prog-empty",
        "subject": "Empty program",
        "teaching_materials": [],
        "enrichment_materials": [],
        "sessions": [],
    },
]


# ========================== Store Fixtures =================================


@pytest.fixture()
def stores() -> StoreSet:
    """Fresh seeded in-memory stores per test."""
    return StoreSet.in_memory(
        devices=copy.deepcopy(DEVICES),
        applications=copy.deepcopy(APPLICATIONS),
        device_apps=copy.deepcopy(RELATIONS),
        programs=copy.deepcopy(PROGRAMS),
        schedules=[],
    )


class SeedData:
    """Helper for inserting schedule entries into the in-memory store.

    Usage:
        def test_something(seed):
    """

    def __init__(self, stores: StoreSet):
        self.stores = stores

    def entry(
        self,
        device_ids: list[str],
        start: str,
        end: str,
        *,
        program_id: str = "prog-other",
        status: str = "planned",
        entry_id: str | None = None,
        **extra: Any,
    ) -> str:
        record = {
            "program_id": program_id,
            "device_ids": list(device_ids),
            "start_datetime": start,
            "end_datetime": end,
            "status": status,
            "location": extra.pop("location", "Room 1"),
            **extra,
        }
        if entry_id is not None:
            record["id"] = entry_id
        return self.stores.schedules.create(record)["id"]


@pytest.fixture()
def seed(stores) -> SeedData:
    return SeedData(stores)


# ========================== Policy Fixtures ================================


@pytest.fixture()
def sleeps() -> list[float]:
    """Delays requested by the retry policy under test."""
    return []


@pytest.fixture()
def retry_policy(sleeps) -> RetryPolicy:
    """Rate-limit policy that records delays instead of sleeping."""
    return RetryPolicy(max_retries=3, base_delay_ms=1000, factor=2.0, sleep=sleeps.append)


@pytest.fixture()
def batch_runner() -> BatchRunner:
    return BatchRunner(max_workers=2, chunk_size=10, chunk_pause_ms=0, sleep=lambda _s: None, name="test")


@pytest.fixture()
def audit_logger() -> AuditLogger:
    """Audit logger without a file; records reach caplog via ``fleet.audit``."""
    return AuditLogger()


# ========================== Service Fixtures ===============================


@pytest.fixture()
def schedule_service(stores, batch_runner, audit_logger) -> ScheduleEntryService:
    return ScheduleEntryService(
        stores.schedules,
        stores.programs,
        stores.devices,
        stores.device_apps,
        batch_runner=batch_runner,
        audit_logger=audit_logger,
    )


@pytest.fixture()
def assignment_service(stores, batch_runner, audit_logger) -> DeviceAssignmentService:
    return DeviceAssignmentService(
        stores.devices,
        stores.device_apps,
        stores.programs,
        stores.schedules,
        batch_runner=batch_runner,
        audit_logger=audit_logger,
    )


@pytest.fixture()
def base_request() -> dict[str, Any]:
    """A valid single-date creation request for prog-ocean."""
    return {
        "program_id": "prog-ocean",
        "selected_dates": ["2024-01-10"],
        "start_time": "09:00",
        "duration_hours": 2,
        "location": "Room 1",
    }
