"""
Tests for program device resolution.
"""

from __future__ import annotations

import pytest

from app.domain.devices import DeviceAppIndex, DeviceCatalog
from app.domain.programs import Program
from app.services.utilities.program_device_resolver import find_shared_devices, resolve_devices


@pytest.fixture()
def fleet(stores):
    """(index, devices) snapshot of the seeded fleet."""
    return DeviceAppIndex.from_relations(stores.device_apps.list()), stores.devices.list()


class TestResolveDevices:
    def test_derived_from_apps_sorted_by_number(self, fleet):
        index, devices = fleet
        program = {"id": "p", "teaching_materials": [{"app_ids": ["app-space", "app-ocean"]}]}
        devices = resolve_devices(program, index, devices)
        assert [d.binocular_number for d in devices] == [1, 2, 3, 5]

    def test_explicit_assignment_ignores_apps(self, fleet):
        index, devices = fleet
        program = Program(
            id="p",
            assigned_device_ids=["dev-4", "dev-1"],
            teaching_materials=[{"app_ids": ["app-space"]}],
        )
        devices = resolve_devices(program, index, DeviceCatalog(devices))
        assert [d.id for d in devices] == ["dev-1", "dev-4"]

    def test_explicit_assignment_wins_even_without_apps(self, fleet):
        index, devices = fleet
        program = {"id": "p", "assigned_device_ids": ["dev-3"]}
        assert [d.id for d in resolve_devices(program, index, devices)] == ["dev-3"]

    def test_stale_explicit_ids_are_skipped(self, fleet):
        index, devices = fleet
        program = {"id": "p", "assigned_device_ids": ["ghost", "dev-2"]}
        assert [d.id for d in resolve_devices(program, index, devices)] == ["dev-2"]

    def test_empty_program_resolves_to_nothing(self, fleet):
        index, devices = fleet
        program = {"id": "p", "teaching_materials": [], "enrichment_materials": [], "sessions": []}
        assert resolve_devices(program, index, devices) == []

    def test_apps_not_installed_anywhere(self, fleet):
        index, devices = fleet
        program = {"id": "p", "sessions": [{"app_ids": ["app-unknown"]}]}
        assert resolve_devices(program, index, devices) == []


class TestFindSharedDevices:
    def test_reports_devices_in_several_assignments(self, fleet):
        _, devices = fleet
        programs = [
            {"id": "p1", "assigned_device_ids": ["dev-3", "dev-1", "ghost"]},
            {"id": "p2", "assigned_device_ids": ["dev-1", "dev-3", "ghost"]},
            {"id": "p3", "assigned_device_ids": ["dev-2"]},
            {"id": "p4", "teaching_materials": [{"app_ids": ["app-ocean"]}]},
        ]
        assert [d.id for d in find_shared_devices(programs, devices)] == ["dev-1", "dev-3"]

    def test_nothing_shared(self, fleet):
        _, devices = fleet
        programs = [{"id": "p1", "assigned_device_ids": ["dev-1"]}, {"id": "p2", "assigned_device_ids": ["dev-2"]}]
        assert find_shared_devices(programs, devices) == []
