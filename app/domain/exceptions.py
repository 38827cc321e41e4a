"""Centralized exception hierarchy for the fleet scheduler.

All domain and service exceptions inherit from :class:`FleetSchedulerError`
so that callers can catch a single base class when they need a broad safety
net, yet still match on specific subclasses where narrower handling is
appropriate.

Device double-booking is not in this hierarchy: it is
advisory and travels as a result variant (see
``app/services/utilities/conflict_detector.DeviceConflict``), never as an
exception.

Hierarchy
---------
::

    FleetSchedulerError (base, maps to 500)
    ├── ValidationError          (400, incomplete or malformed input)
    ├── NotFoundError            (404, entity does not exist)
    ├── ConflictError            (409, hard state conflict)
    ├── RateLimitError           (429, store throttled the call)
    ├── ServiceError             (500, business-logic failure)
    │   └── ExternalServiceError (502, entity API or network)
    └── ConfigurationError       (500, missing or invalid config)
"""

from __future__ import annotations


class FleetSchedulerError(Exception):
    """Base exception for all fleet scheduler errors.

    Parameters
    ----------
    message:
        Human-readable description.
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Client errors (4xx) ──────────────────────────────────────────────


class ValidationError(FleetSchedulerError):
    """Caller supplied invalid or incomplete input (HTTP 400).

    ``errors`` carries every violation found, in the order they were
    checked, so a form can show an itemized list instead of the first
    failure only.
    """

    http_status: int = 400

    def __init__(
        self,
        message: str = "",
        *,
        errors: list[str] | None = None,
        detail: dict | None = None,
    ) -> None:
        self.errors = list(errors or ([message] if message else []))
        super().__init__(message or "; ".join(self.errors), detail=detail)


class NotFoundError(FleetSchedulerError):
    """Requested entity does not exist (HTTP 404)."""

    http_status: int = 404

    def __init__(
        self,
        message: str = "",
        *,
        entity: str | None = None,
        entity_id: str | None = None,
        detail: dict | None = None,
    ) -> None:
        self.entity = entity
        self.entity_id = entity_id
        if not message and entity:
            message = f"{entity} {entity_id} not found"
        super().__init__(message, detail=detail)


class ConflictError(FleetSchedulerError):
    """Operation conflicts with existing state (HTTP 409)."""

    http_status: int = 409


class RateLimitError(FleetSchedulerError):
    """The entity API throttled the call (HTTP 429).

    Retried transparently by :class:`app.utils.retry.RetryPolicy`; only
    reaches callers once retries are exhausted.
    """

    http_status: int = 429


# ── Server errors (5xx) ──────────────────────────────────────────────


class ServiceError(FleetSchedulerError):
    """Business-logic failure in a service method (HTTP 500)."""

    http_status: int = 500


class ExternalServiceError(ServiceError):
    """Entity API or network failure (HTTP 502)."""

    http_status: int = 502

    def __init__(self, message: str = "", *, status_code: int | None = None, detail: dict | None = None) -> None:
        super().__init__(message, detail=detail)
        self.status_code = status_code


class ConfigurationError(FleetSchedulerError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500
