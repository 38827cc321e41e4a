"""
In-Memory Stores
================

Thread-safe stores with the same contracts as the entity API stores. Used
by the test suite and for offline runs: ``ServiceContainer.build`` picks
them when ``AppConfig.offline`` is true. Records are copied in and out so
callers can never mutate stored state by accident.
"""

from __future__ import annotations

import copy
import itertools
import threading
from typing import Any, Iterable

from app.domain.exceptions import FleetSchedulerError, NotFoundError
from app.utils.batch import BatchFailure, BatchResult, BatchSuccess, ProgressCallback
from app.utils.concurrency import synchronized


class InMemoryEntityStore:
    """Dict-backed entity store keyed by record id."""

    def __init__(self, entity: str, records: Iterable[dict[str, Any]] | None = None) -> None:
        self.entity = entity
        self._lock = threading.RLock()
        self._records: dict[str, dict[str, Any]] = {}
        self._ids = itertools.count(1)
        for record in records or ():
            self._insert(record)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.entity!r}, {len(self._records)} records)"

    def _next_id(self) -> str:
        while True:
            candidate = f"{self.entity.lower()}-{next(self._ids)}"
            if candidate not in self._records:
                return candidate

    def _insert(self, data: dict[str, Any]) -> dict[str, Any]:
        record = copy.deepcopy(data)
        record_id = record.get("id")
        record["id"] = str(record_id) if record_id is not None else self._next_id()
        self._records[record["id"]] = record
        return copy.deepcopy(record)

    def _require(self, record_id: str) -> dict[str, Any]:
        record = self._records.get(record_id)
        if record is None:
            raise NotFoundError(entity=self.entity, entity_id=record_id)
        return record

    @synchronized
    def list(self) -> list[dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._records.values()]

    @synchronized
    def filter(self, **criteria: Any) -> list[dict[str, Any]]:
        wanted = {k: v for k, v in criteria.items() if v is not None}
        return [
            copy.deepcopy(r)
            for r in self._records.values()
            if all(r.get(key) == value for key, value in wanted.items())
        ]

    @synchronized
    def get(self, record_id: str) -> dict[str, Any]:
        return copy.deepcopy(self._require(record_id))

    @synchronized
    def create(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._insert(data)

    @synchronized
    def update(self, record_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        record = self._require(record_id)
        record.update(copy.deepcopy({k: v for k, v in patch.items() if k != "id"}))
        return copy.deepcopy(record)

    @synchronized
    def delete(self, record_id: str) -> None:
        self._require(record_id)
        del self._records[record_id]

    @synchronized
    def bulk_create(self, records: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        return [self._insert(r) for r in records]


class InMemoryDeviceAppStore(InMemoryEntityStore):
    """Relation store with the device/app-specific queries."""

    def filter(self, device_id: str | None = None, app_id: str | None = None) -> list[dict[str, Any]]:
        return super().filter(device_id=device_id, app_id=app_id)

    @synchronized
    def bulk_delete(
        self,
        app_id: str,
        device_ids: Iterable[str],
        *,
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> BatchResult:
        targets = set(device_ids)
        doomed = [
            copy.deepcopy(record)
            for record in self._records.values()
            if record.get("app_id") == app_id and record.get("device_id") in targets
        ]
        result: BatchResult = BatchResult(total=len(doomed))
        for index, relation in enumerate(doomed):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                result.not_attempted = len(doomed) - index
                break
            try:
                self.delete(relation["id"])
            except FleetSchedulerError as e:
                result.failed.append(BatchFailure(index=index, item=relation, error=str(e), exception=e))
            else:
                result.succeeded.append(BatchSuccess(index=index, item=relation, value=None))
            if progress is not None:
                progress(index + 1, len(doomed))
        return result
