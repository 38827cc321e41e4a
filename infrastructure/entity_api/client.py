"""
Entity API Client
=================

Thin HTTP client for the hosted entity storage API the fleet front-end
uses. Each entity is exposed as a REST collection::

    GET    {base_url}/entities/{Entity}            list (query params filter)
    GET    {base_url}/entities/{Entity}/{id}       get
    POST   {base_url}/entities/{Entity}            create
    PUT    {base_url}/entities/{Entity}/{id}       update (partial)
    DELETE {base_url}/entities/{Entity}/{id}       delete
    POST   {base_url}/entities/{Entity}/bulk       bulk create

HTTP failures are mapped onto the domain exception hierarchy:

- 429, or an error body mentioning a rate limit -> RateLimitError
- 404 -> NotFoundError
- anything else >= 400, and transport errors -> ExternalServiceError

The client does not retry; the shared RetryPolicy wraps every call in the
stores built on top of it.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from app.constants import Retry, Timeouts
from app.domain.exceptions import ExternalServiceError, NotFoundError, RateLimitError

logger = logging.getLogger(__name__)


class EntityApiClient:
    """HTTP access to the hosted entity collections."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        app_id: str | None = None,
        timeout: float = Timeouts.HTTP_REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root, e.g. ``https://api.example.com/api/apps/<app>``
            api_key: Sent as a bearer token when given
            app_id: Sent as ``X-App-Id`` when given
            timeout: Per-request timeout in seconds
            session: Pre-configured session (tests inject a mock)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if api_key:
            self.session.headers.update({"Authorization": f"Bearer {api_key}"})
        if app_id:
            self.session.headers.update({"X-App-Id": app_id})

    def _url(self, entity: str, *parts: str) -> str:
        path = "/".join([self.base_url, "entities", entity, *[str(p) for p in parts]])
        return path

    def request(
        self,
        method: str,
        entity: str,
        *parts: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Issue one request and return the decoded JSON body (None when empty)."""
        url = self._url(entity, *parts)
        try:
            response = self.session.request(method, url, params=params, json=json, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Entity API %s %s failed: %s", method, url, e)
            raise ExternalServiceError(f"{method} {entity} failed: {e}") from e

        self._raise_for_status(response, method, entity, parts[0] if parts else None)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(
                f"{method} {entity} returned a non-JSON body", status_code=response.status_code
            ) from e

    @staticmethod
    def _error_text(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or ""
        if isinstance(body, dict):
            detail = body.get("detail") or body.get("message") or body.get("error") or ""
            return detail if isinstance(detail, str) else str(detail)
        return str(body)

    def _raise_for_status(self, response: requests.Response, method: str, entity: str, record_id: str | None) -> None:
        status = response.status_code
        if status < 400:
            return
        text = self._error_text(response)
        if status == Retry.RATE_LIMIT_STATUS or "rate limit" in text.lower():
            raise RateLimitError(f"{method} {entity} rate limited", detail={"status": status, "message": text})
        if status == 404:
            raise NotFoundError(entity=entity, entity_id=record_id, detail={"message": text})
        logger.error("Entity API %s %s returned %s: %s", method, entity, status, text)
        raise ExternalServiceError(f"{method} {entity} returned {status}: {text}", status_code=status)

    # ==================== Collection Operations ====================

    def list(self, entity: str, **filters: Any) -> list[dict[str, Any]]:
        params = {k: v for k, v in filters.items() if v is not None} or None
        return self.request("GET", entity, params=params) or []

    def get(self, entity: str, record_id: str) -> dict[str, Any]:
        return self.request("GET", entity, record_id)

    def create(self, entity: str, data: dict[str, Any]) -> dict[str, Any]:
        return self.request("POST", entity, json=data)

    def update(self, entity: str, record_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        return self.request("PUT", entity, record_id, json=patch)

    def delete(self, entity: str, record_id: str) -> None:
        self.request("DELETE", entity, record_id)

    def bulk_create(self, entity: str, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return self.request("POST", entity, "bulk", json=records) or []
