from app.services.utilities.conflict_detector import (
    DeviceConflict,
    DeviceStatusInfo,
    availability_map,
    find_conflicts,
    intervals_overlap,
)
from app.services.utilities.program_device_resolver import find_shared_devices, resolve_devices

__all__ = [
    "DeviceConflict",
    "DeviceStatusInfo",
    "availability_map",
    "find_conflicts",
    "find_shared_devices",
    "intervals_overlap",
    "resolve_devices",
]
