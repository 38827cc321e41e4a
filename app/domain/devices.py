"""
Device Domain
=============

Headsets ("binoculars"), applications, the relations saying which
application is installed on which headset, and read-only views over them:

- Device / Application / DeviceAppRelation: records as stored
- DeviceCatalog: lookups over a device snapshot
- DeviceAppIndex: many-to-many index between devices and applications
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable

from app.constants import UNAVAILABLE_DEVICE_STATUSES

logger = logging.getLogger(__name__)


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class Device:
    """A physical VR headset.

    Attributes:
        id: Store identifier
        binocular_number: Unique human-facing sequential number
        is_disabled: Taken out of service by a disable action
        disable_reason: Free text given when disabling
        current_status: Operational status label (e.g. maintenance)
    """

    id: str
    binocular_number: int = 0
    is_disabled: bool = False
    disable_reason: str | None = None
    current_status: str | None = None

    @property
    def is_unavailable(self) -> bool:
        """True when the headset cannot be booked."""
        return self.is_disabled or (self.current_status or "") in UNAVAILABLE_DEVICE_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "binocular_number": self.binocular_number,
            "is_disabled": self.is_disabled,
            "disable_reason": self.disable_reason,
            "current_status": self.current_status,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Device":
        return Device(
            id=str(data["id"]),
            binocular_number=_as_int(data.get("binocular_number")),
            is_disabled=bool(data.get("is_disabled", False)),
            disable_reason=data.get("disable_reason"),
            current_status=data.get("current_status") or data.get("status"),
        )


@dataclass
class Application:
    """An installable VR application."""

    id: str
    name: str = ""

    @property
    def name_key(self) -> str:
        """Case-folded name; application names are unique case-insensitively."""
        return self.name.strip().casefold()

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Application":
        return Application(id=str(data["id"]), name=data.get("name") or "")


@dataclass(frozen=True)
class DeviceAppRelation:
    """App ``app_id`` is installed on device ``device_id``."""

    device_id: str
    app_id: str
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = {"device_id": self.device_id, "app_id": self.app_id}
        if self.id is not None:
            payload["id"] = self.id
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "DeviceAppRelation":
        rel_id = data.get("id")
        return DeviceAppRelation(
            device_id=str(data["device_id"]),
            app_id=str(data["app_id"]),
            id=str(rel_id) if rel_id is not None else None,
        )


def sort_by_number(devices: Iterable[Device]) -> list[Device]:
    """Stable ascending sort on binocular_number."""
    return sorted(devices, key=lambda d: d.binocular_number)


class DeviceCatalog:
    """Read-only view over a snapshot of all devices.

    The catalog is built per operation from a fresh store read and must not
    be kept around: devices are edited out-of-band.
    """

    def __init__(self, devices: Iterable[Device | dict[str, Any]]):
        self._devices: dict[str, Device] = {}
        for item in devices:
            device = item if isinstance(item, Device) else Device.from_dict(item)
            self._devices[device.id] = device
        self._by_number = {d.binocular_number: d for d in self._devices.values()}

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._devices

    def get(self, device_id: str) -> Device | None:
        return self._devices.get(device_id)

    def by_number(self, binocular_number: int) -> Device | None:
        return self._by_number.get(binocular_number)

    def all(self) -> list[Device]:
        return sort_by_number(self._devices.values())

    def enabled(self) -> list[Device]:
        return [d for d in self.all() if not d.is_unavailable]

    def disabled(self) -> list[Device]:
        return [d for d in self.all() if d.is_unavailable]

    def is_available(self, device_id: str) -> bool:
        device = self._devices.get(device_id)
        return device is not None and not device.is_unavailable

    def resolve(self, device_ids: Iterable[str]) -> list[Device]:
        """Map ids to devices, skipping ids that no longer exist.

        Stale references are logged and dropped rather than raised; the
        result keeps the order of ``device_ids`` without duplicates.
        """
        resolved: list[Device] = []
        seen: set[str] = set()
        for device_id in device_ids:
            if device_id in seen:
                continue
            seen.add(device_id)
            device = self._devices.get(device_id)
            if device is None:
                logger.warning("Skipping stale device reference %s", device_id)
                continue
            resolved.append(device)
        return resolved

    def missing(self, device_ids: Iterable[str]) -> list[str]:
        """Ids that do not exist in the catalog."""
        return [device_id for device_id in device_ids if device_id not in self._devices]


def build_app_to_devices(relations: Iterable[DeviceAppRelation | dict[str, Any]]) -> dict[str, set[str]]:
    """Map each app id to the set of devices carrying it."""
    return DeviceAppIndex.from_relations(relations).app_to_devices


def build_device_to_apps(relations: Iterable[DeviceAppRelation | dict[str, Any]]) -> dict[str, set[str]]:
    """Map each device id to the set of apps installed on it."""
    return DeviceAppIndex.from_relations(relations).device_to_apps


@dataclass
class DeviceAppIndex:
    """Two-way index over the flat device/app relation list."""

    app_to_devices: dict[str, set[str]] = field(default_factory=dict)
    device_to_apps: dict[str, set[str]] = field(default_factory=dict)

    @classmethod
    def from_relations(cls, relations: Iterable[DeviceAppRelation | dict[str, Any]]) -> "DeviceAppIndex":
        app_to_devices: dict[str, set[str]] = defaultdict(set)
        device_to_apps: dict[str, set[str]] = defaultdict(set)
        for item in relations:
            relation = item if isinstance(item, DeviceAppRelation) else DeviceAppRelation.from_dict(item)
            app_to_devices[relation.app_id].add(relation.device_id)
            device_to_apps[relation.device_id].add(relation.app_id)
        return cls(app_to_devices=dict(app_to_devices), device_to_apps=dict(device_to_apps))

    def devices_for_app(self, app_id: str) -> set[str]:
        return set(self.app_to_devices.get(app_id, ()))

    def apps_for_device(self, device_id: str) -> set[str]:
        return set(self.device_to_apps.get(device_id, ()))

    def devices_for_any(self, app_ids: Iterable[str]) -> set[str]:
        """Devices carrying at least one of ``app_ids``."""
        result: set[str] = set()
        for app_id in app_ids:
            result |= self.app_to_devices.get(app_id, set())
        return result

    def has_app(self, device_id: str, app_id: str) -> bool:
        return app_id in self.device_to_apps.get(device_id, ())

    def missing_relations(self, device_ids: Iterable[str], app_ids: Iterable[str]) -> list[DeviceAppRelation]:
        """(device, app) pairs not installed yet, in input order."""
        apps = list(dict.fromkeys(app_ids))
        missing: list[DeviceAppRelation] = []
        for device_id in dict.fromkeys(device_ids):
            installed = self.device_to_apps.get(device_id, set())
            for app_id in apps:
                if app_id not in installed:
                    missing.append(DeviceAppRelation(device_id=device_id, app_id=app_id))
        return missing
