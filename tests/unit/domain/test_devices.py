"""
Tests for devices, the device catalog and the device/app index.
"""

from __future__ import annotations

import logging

from app.domain.devices import (
    Application,
    Device,
    DeviceAppIndex,
    DeviceAppRelation,
    DeviceCatalog,
    build_app_to_devices,
    build_device_to_apps,
)

RELATIONS = [
    {"device_id": "d1", "app_id": "a1"},
    {"device_id": "d2", "app_id": "a1"},
    {"device_id": "d2", "app_id": "a2"},
    DeviceAppRelation(device_id="d3", app_id="a2"),
]


class TestDevice:
    def test_disabled_flag_makes_unavailable(self):
        assert Device(id="d1", is_disabled=True).is_unavailable

    def test_maintenance_status_makes_unavailable(self):
        assert Device(id="d1", current_status="in_repair").is_unavailable
        assert Device.from_dict({"id": "d1", "status": "בתחזוקה"}).is_unavailable

    def test_available_by_default(self):
        assert not Device.from_dict({"id": "d1", "binocular_number": "7"}).is_unavailable
        assert Device.from_dict({"id": "d1", "binocular_number": "7"}).binocular_number == 7

    def test_application_name_key_is_case_insensitive(self):
        assert Application(id="a", name=" Ocean Explorer ").name_key == Application(id="b", name="ocean explorer").name_key


class TestDeviceAppIndex:
    def test_builds_both_directions(self):
        assert build_app_to_devices(RELATIONS) == {"a1": {"d1", "d2"}, "a2": {"d2", "d3"}}
        assert build_device_to_apps(RELATIONS) == {"d1": {"a1"}, "d2": {"a1", "a2"}, "d3": {"a2"}}

    def test_queries(self):
        index = DeviceAppIndex.from_relations(RELATIONS)
        assert index.devices_for_app("a1") == {"d1", "d2"}
        assert index.devices_for_app("missing") == set()
        assert index.apps_for_device("d2") == {"a1", "a2"}
        assert index.devices_for_any(["a1", "a2"]) == {"d1", "d2", "d3"}
        assert index.has_app("d3", "a2")
        assert not index.has_app("d3", "a1")

    def test_query_results_are_copies(self):
        index = DeviceAppIndex.from_relations(RELATIONS)
        index.devices_for_app("a1").add("intruder")
        assert index.devices_for_app("a1") == {"d1", "d2"}

    def test_missing_relations_skips_installed_pairs(self):
        index = DeviceAppIndex.from_relations(RELATIONS)
        missing = index.missing_relations(["d1", "d3"], ["a1", "a2"])
        assert missing == [
            DeviceAppRelation(device_id="d1", app_id="a2"),
            DeviceAppRelation(device_id="d3", app_id="a1"),
        ]


class TestDeviceCatalog:
    def make_catalog(self) -> DeviceCatalog:
        return DeviceCatalog(
            [
                {"id": "d3", "binocular_number": 3},
                {"id": "d1", "binocular_number": 1},
                {"id": "d2", "binocular_number": 2, "is_disabled": True},
            ]
        )

    def test_all_is_sorted_by_number(self):
        assert [d.id for d in self.make_catalog().all()] == ["d1", "d2", "d3"]

    def test_enabled_and_disabled(self):
        catalog = self.make_catalog()
        assert [d.id for d in catalog.enabled()] == ["d1", "d3"]
        assert [d.id for d in catalog.disabled()] == ["d2"]
        assert catalog.is_available("d1")
        assert not catalog.is_available("d2")
        assert not catalog.is_available("ghost")

    def test_lookup(self):
        catalog = self.make_catalog()
        assert catalog.by_number(3).id == "d3"
        assert catalog.get("ghost") is None
        assert "d1" in catalog
        assert len(catalog) == 3

    def test_resolve_skips_stale_ids(self, caplog):
        catalog = self.make_catalog()
        with caplog.at_level(logging.WARNING, logger="app.domain.devices"):
            resolved = catalog.resolve(["d3", "ghost", "d1", "d3"])
        assert [d.id for d in resolved] == ["d3", "d1"]
        assert "ghost" in caplog.text
        assert catalog.missing(["d1", "ghost"]) == ["ghost"]
