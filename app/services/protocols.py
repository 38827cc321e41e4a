"""
Store protocols (structural typing interfaces).

The scheduling core never talks to the hosted entity API directly. It
depends on these minimal store surfaces, which the HTTP-backed stores in
``infrastructure/entity_api`` and the in-memory stores used by tests both
satisfy via structural subtyping without explicit inheritance.

Records cross this boundary as plain dicts, the way the entity API returns
them; services convert them to domain entities.

Usage
-----
In a consumer service::

    from __future__ import annotations
    from typing import TYPE_CHECKING
    if TYPE_CHECKING:
        from app.services.protocols import ScheduleEntryStore

    class ScheduleEntryService:
        def __init__(self, schedule_store: "ScheduleEntryStore", ...): ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Protocol, runtime_checkable

if TYPE_CHECKING:
    import threading

    from app.utils.batch import BatchResult, ProgressCallback

Record = dict[str, Any]


@runtime_checkable
class EntityStore(Protocol):
    """CRUD surface shared by every entity store."""

    def list(self) -> list[Record]:
        """Return every record of the entity."""
        ...

    def get(self, record_id: str) -> Record:
        """Return one record; raises NotFoundError when it does not exist."""
        ...

    def create(self, data: Record) -> Record:
        """Persist a new record and return it with its assigned id."""
        ...

    def update(self, record_id: str, patch: Record) -> Record:
        """Apply a partial update and return the updated record."""
        ...

    def delete(self, record_id: str) -> None:
        """Delete a record; raises NotFoundError when it does not exist."""
        ...


@runtime_checkable
class DeviceStore(EntityStore, Protocol):
    """Headset records."""

    def bulk_create(self, records: Iterable[Record]) -> list[Record]:
        ...


@runtime_checkable
class ApplicationStore(Protocol):
    """Application records."""

    def list(self) -> list[Record]:
        ...

    def update(self, record_id: str, patch: Record) -> Record:
        ...


@runtime_checkable
class DeviceAppStore(Protocol):
    """Flat device/app relation records."""

    def list(self) -> list[Record]:
        ...

    def filter(self, device_id: str | None = None, app_id: str | None = None) -> list[Record]:
        """Relations matching every given key."""
        ...

    def create(self, data: Record) -> Record:
        ...

    def bulk_create(self, records: Iterable[Record]) -> list[Record]:
        ...

    def delete(self, record_id: str) -> None:
        ...

    def bulk_delete(
        self,
        app_id: str,
        device_ids: Iterable[str],
        *,
        cancel_event: "threading.Event | None" = None,
        progress: "ProgressCallback | None" = None,
    ) -> "BatchResult":
        """Remove ``app_id`` from every device in ``device_ids``; one outcome per relation."""
        ...


@runtime_checkable
class ProgramStore(Protocol):
    """Program / syllabus records."""

    def list(self) -> list[Record]:
        ...

    def get(self, record_id: str) -> Record:
        ...

    def update(self, record_id: str, patch: Record) -> Record:
        ...


@runtime_checkable
class ScheduleEntryStore(EntityStore, Protocol):
    """Schedule entry records."""
