"""
Program device resolution.

Decides which headsets are eligible for a program:

1. An explicit ``assigned_device_ids`` list wins outright.
2. Otherwise a device qualifies when it carries at least one of the
   program's resolved applications.

Results are always ordered by ``binocular_number``; conflict reports and
every listing depend on that order being reproducible.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Iterable

from app.domain.devices import Device, DeviceAppIndex, DeviceCatalog, sort_by_number
from app.domain.programs import ExplicitSelection, Program, selection_for

logger = logging.getLogger(__name__)


def _catalog(devices: DeviceCatalog | Iterable[Device | dict[str, Any]]) -> DeviceCatalog:
    return devices if isinstance(devices, DeviceCatalog) else DeviceCatalog(devices)


def resolve_devices(
    program: Program | dict[str, Any],
    index: DeviceAppIndex,
    devices: DeviceCatalog | Iterable[Device | dict[str, Any]],
) -> list[Device]:
    """
    Eligible devices for ``program``, sorted by binocular number.

    Args:
        program: Program entity or raw record
        index: Device/app index built from the current relations
        devices: Catalog or snapshot of every device

    Returns:
        Devices in ascending binocular number; empty when the program has
        neither an explicit assignment nor any resolvable application
    """
    catalog = _catalog(devices)
    selection = selection_for(program)

    if isinstance(selection, ExplicitSelection):
        return sort_by_number(catalog.resolve(selection.device_ids))

    if not selection.app_ids:
        return []
    carrying = index.devices_for_any(selection.app_ids)
    return [d for d in catalog.all() if d.id in carrying]


def find_shared_devices(
    programs: Iterable[Program | dict[str, Any]],
    devices: DeviceCatalog | Iterable[Device | dict[str, Any]],
) -> list[Device]:
    """Devices explicitly assigned to more than one of ``programs``.

    Stale ids are ignored. Sorted by binocular number.
    """
    catalog = _catalog(devices)
    counts: Counter[str] = Counter()
    for program in programs:
        selection = selection_for(program)
        if isinstance(selection, ExplicitSelection):
            counts.update(d for d in selection.device_ids if d in catalog)
    shared = [catalog.get(device_id) for device_id, n in counts.items() if n > 1]
    return sort_by_number(d for d in shared if d is not None)
