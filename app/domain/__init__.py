"""
Domain Package
==============
Entities and pure rules of the headset fleet: devices and their installed
applications, programs and the devices they need, schedule entries and
recurrence expansion.
"""

from .devices import (
    Application,
    Device,
    DeviceAppIndex,
    DeviceAppRelation,
    DeviceCatalog,
    build_app_to_devices,
    build_device_to_apps,
)
from .programs import (
    DerivedSelection,
    DeviceSelection,
    ExplicitSelection,
    Program,
    display_title,
    resolve_app_ids,
    selection_for,
)
from .schedules import Occurrence, RecurrenceEnd, RecurrenceExpander, RecurrenceRule, ScheduleEntry

__all__ = [
    "Application",
    "DerivedSelection",
    "Device",
    "DeviceAppIndex",
    "DeviceAppRelation",
    "DeviceCatalog",
    "DeviceSelection",
    "ExplicitSelection",
    "Occurrence",
    "Program",
    "RecurrenceEnd",
    "RecurrenceExpander",
    "RecurrenceRule",
    "ScheduleEntry",
    "build_app_to_devices",
    "build_device_to_apps",
    "display_title",
    "resolve_app_ids",
    "selection_for",
]
