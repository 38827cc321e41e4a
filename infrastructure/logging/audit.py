import json
import logging
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional


class AuditAction(str, Enum):
    """Write actions recorded in the fleet audit trail."""

    SCHEDULE_CREATED = "schedule.created"
    SCHEDULE_UPDATED = "schedule.updated"
    SCHEDULE_CANCELLED = "schedule.cancelled"
    SCHEDULE_DELETED = "schedule.deleted"
    CONFLICTS_CONFIRMED = "schedule.conflicts_confirmed"
    APPS_INSTALLED = "device.apps_installed"
    APP_UNINSTALLED = "device.app_uninstalled"
    DEVICE_DISABLED = "device.disabled"
    DEVICE_ENABLED = "device.enabled"
    DEVICE_DELETED = "device.deleted"
    DEVICES_ASSIGNED = "program.devices_assigned"

    def __str__(self):
        return self.value


class AuditLogger:
    """Structured audit logger that writes append-only JSON records.

    Without a ``log_path`` the records still go to the ``fleet.audit``
    logger, so tests and offline runs can capture them with ``caplog``.
    """

    def __init__(self, log_path: Optional[str] = None, level: str = "INFO", actor: str = "system") -> None:
        self.actor = actor
        self.logger = logging.getLogger("fleet.audit")
        self.logger.setLevel(getattr(logging, level.upper(), logging.INFO))

        if log_path is None:
            return

        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger.propagate = False

        # Avoid duplicate handlers when several containers share the logger
        if not any(isinstance(handler, RotatingFileHandler) for handler in self.logger.handlers):
            handler = RotatingFileHandler(
                filename=str(self.log_path),
                maxBytes=10 * 1024 * 1024,  # 10 MB
                backupCount=30,
                encoding="utf-8",
                delay=True,
            )
            formatter = logging.Formatter(
                fmt="%(asctime)sZ | %(levelname)s | %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S",
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_event(
        self,
        action: str,
        resource: str,
        outcome: str = "success",
        actor: Optional[str] = None,
        **metadata: Any,
    ) -> None:
        payload: Dict[str, Any] = {
            "actor": actor or self.actor,
            "action": str(action),
            "resource": resource,
            "outcome": outcome,
        }
        if metadata:
            payload["meta"] = metadata

        self.logger.info(json.dumps(payload, ensure_ascii=False, default=str))
