"""
Entity API Stores
=================

Concrete implementations of the store protocols in
``app/services/protocols.py`` backed by :class:`EntityApiClient`.

Every remote call is routed through the shared RetryPolicy so rate-limit
handling is one cross-cutting policy instead of per-call boilerplate.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable

from app.utils.batch import BatchResult, BatchRunner, ProgressCallback
from app.utils.retry import RetryPolicy
from infrastructure.entity_api.client import EntityApiClient

logger = logging.getLogger(__name__)


class HttpEntityStore:
    """
    Generic entity store.

    Satisfies EntityStore, DeviceStore, ApplicationStore, ProgramStore and
    ScheduleEntryStore.
    """

    def __init__(self, client: EntityApiClient, entity: str, retry_policy: RetryPolicy) -> None:
        """
        Initialize the store.

        Args:
            client: HTTP client for the entity API
            entity: Entity collection name (e.g. ``ScheduleEntry``)
            retry_policy: Shared rate-limit retry policy
        """
        self._client = client
        self.entity = entity
        self._retry = retry_policy

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.entity!r})"

    def list(self) -> list[dict[str, Any]]:
        return self._retry.call(self._client.list, self.entity)

    def filter(self, **criteria: Any) -> list[dict[str, Any]]:
        return self._retry.call(self._client.list, self.entity, **criteria)

    def get(self, record_id: str) -> dict[str, Any]:
        return self._retry.call(self._client.get, self.entity, record_id)

    def create(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._retry.call(self._client.create, self.entity, data)

    def update(self, record_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        return self._retry.call(self._client.update, self.entity, record_id, patch)

    def delete(self, record_id: str) -> None:
        self._retry.call(self._client.delete, self.entity, record_id)

    def bulk_create(self, records: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        payload = list(records)
        if not payload:
            return []
        return self._retry.call(self._client.bulk_create, self.entity, payload)


class HttpDeviceAppStore(HttpEntityStore):
    """Device/app relation store with relation-specific queries."""

    def __init__(
        self,
        client: EntityApiClient,
        entity: str,
        retry_policy: RetryPolicy,
        batch_runner: BatchRunner | None = None,
    ) -> None:
        super().__init__(client, entity, retry_policy)
        self._batch = batch_runner or BatchRunner(name="device-apps")

    def filter(self, device_id: str | None = None, app_id: str | None = None) -> list[dict[str, Any]]:
        return super().filter(device_id=device_id, app_id=app_id)

    def bulk_delete(
        self,
        app_id: str,
        device_ids: Iterable[str],
        *,
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """
        Remove ``app_id`` from the given devices.

        The API has no bulk delete, so each relation is deleted on its own
        through the batch runner. Rows removed before a failure stay removed;
        the result lists the relations that could not be deleted.
        """
        targets = set(device_ids)
        relations = [r for r in self.filter(app_id=app_id) if r.get("device_id") in targets]
        result = self._batch.run(
            relations,
            lambda relation: self.delete(relation["id"]),
            cancel_event=cancel_event,
            progress=progress,
        )
        logger.info("Removed app %s from devices: %s", app_id, result.summary())
        return result
