from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from app.config import AppConfig
from app.constants import Entities
from app.domain.schedules import RecurrenceExpander
from app.services.application.device_assignment_service import DeviceAssignmentService
from app.services.application.schedule_entry_service import ScheduleEntryService
from app.utils.batch import BatchRunner
from app.utils.retry import RetryPolicy
from infrastructure.entity_api.client import EntityApiClient
from infrastructure.entity_api.memory import InMemoryDeviceAppStore, InMemoryEntityStore
from infrastructure.entity_api.stores import HttpDeviceAppStore, HttpEntityStore
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)


@dataclass
class StoreSet:
    """The five entity stores the services depend on."""

    devices: Any
    applications: Any
    device_apps: Any
    programs: Any
    schedules: Any

    @classmethod
    def http(
        cls,
        client: EntityApiClient,
        retry_policy: RetryPolicy,
        batch_runner: BatchRunner | None = None,
    ) -> "StoreSet":
        return cls(
            devices=HttpEntityStore(client, Entities.DEVICE, retry_policy),
            applications=HttpEntityStore(client, Entities.APPLICATION, retry_policy),
            device_apps=HttpDeviceAppStore(client, Entities.DEVICE_APP, retry_policy, batch_runner),
            programs=HttpEntityStore(client, Entities.PROGRAM, retry_policy),
            schedules=HttpEntityStore(client, Entities.SCHEDULE_ENTRY, retry_policy),
        )

    @classmethod
    def in_memory(cls, **seed: list[dict[str, Any]]) -> "StoreSet":
        """Empty or seeded in-memory stores; keyword names match the fields."""
        return cls(
            devices=InMemoryEntityStore(Entities.DEVICE, seed.get("devices")),
            applications=InMemoryEntityStore(Entities.APPLICATION, seed.get("applications")),
            device_apps=InMemoryDeviceAppStore(Entities.DEVICE_APP, seed.get("device_apps")),
            programs=InMemoryEntityStore(Entities.PROGRAM, seed.get("programs")),
            schedules=InMemoryEntityStore(Entities.SCHEDULE_ENTRY, seed.get("schedules")),
        )


@dataclass
class ServiceContainer:
    """Aggregate and manage the scheduling services."""

    config: AppConfig
    stores: StoreSet
    retry_policy: RetryPolicy
    batch_runner: BatchRunner
    expander: RecurrenceExpander
    audit_logger: AuditLogger
    schedule_service: ScheduleEntryService
    device_assignment_service: DeviceAssignmentService
    api_client: Optional[EntityApiClient] = None

    @classmethod
    def build(
        cls,
        config: AppConfig,
        stores: StoreSet | None = None,
        *,
        audit_logger: AuditLogger | None = None,
    ) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            stores: Pre-built stores; defaults to the entity API, or to
                in-memory stores when no API URL is configured
            audit_logger: Audit logger; defaults to one writing to
                ``config.audit_log_path``
        """
        logger.info("Building ServiceContainer (environment=%s)", config.environment)

        retry_policy = RetryPolicy(
            max_retries=config.retry_max,
            base_delay_ms=config.retry_base_delay_ms,
            factor=config.retry_factor,
        )

        batch_runner = BatchRunner(
            max_workers=config.batch_max_workers,
            chunk_size=config.batch_chunk_size,
            chunk_pause_ms=config.batch_chunk_pause_ms,
            name="fleet-batch",
        )

        api_client = None
        if stores is None:
            if config.offline:
                logger.warning("No entity API configured; using in-memory stores")
                stores = StoreSet.in_memory()
            else:
                api_client = EntityApiClient(
                    config.api_base_url,
                    api_key=config.api_key or None,
                    app_id=config.app_id or None,
                    timeout=config.api_timeout_seconds,
                )
                stores = StoreSet.http(api_client, retry_policy, batch_runner)

        expander = RecurrenceExpander(
            max_iterations=config.recurrence_max_iterations,
            max_occurrences=config.recurrence_max_occurrences,
        )
        audit_logger = audit_logger or AuditLogger(config.audit_log_path or None)

        container = cls(
            config=config,
            stores=stores,
            retry_policy=retry_policy,
            batch_runner=batch_runner,
            expander=expander,
            audit_logger=audit_logger,
            schedule_service=ScheduleEntryService(
                stores.schedules,
                stores.programs,
                stores.devices,
                stores.device_apps,
                expander=expander,
                batch_runner=batch_runner,
                audit_logger=audit_logger,
            ),
            device_assignment_service=DeviceAssignmentService(
                stores.devices,
                stores.device_apps,
                stores.programs,
                stores.schedules,
                batch_runner=batch_runner,
                audit_logger=audit_logger,
            ),
            api_client=api_client,
        )
        logger.info("ServiceContainer built successfully.")
        return container

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        if self.api_client is not None:
            self.api_client.session.close()
        logger.info("ServiceContainer shutdown complete.")
