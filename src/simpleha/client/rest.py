"""Synchronous Home Assistant REST API client.

:class:`HomeAssistantClient` wraps :class:`httpx.Client` and layers on:

- **Endpoint and token resolution** -- the service's effective endpoint is
  the base URL and its effective token is sent as
  ``Authorization: Bearer ...``. A service without a usable token fails with
  :class:`~simpleha.exceptions.MissingCredentialsError` before any traffic.
- **Retry with backoff** -- retries on 5xx and network errors with
  exponential delay (1 s, 2 s, 4 s, ...).
- **Error mapping** -- 401/403, 404, and other failures become typed
  :mod:`simpleha.exceptions`.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Optional, Sequence

import httpx
from pydantic import JsonValue, TypeAdapter, ValidationError

from simpleha.entities import Entity, LogbookEntry
from simpleha.exceptions import (
    ConnectionError_,
    NotFoundError,
    ServerError,
    UnauthorizedError,
)
from simpleha.models import RequestConfig, ServiceConfiguration

logger = logging.getLogger(__name__)

CONNECTION_TEST_TIMEOUT = 10.0

_entities = TypeAdapter(list[Entity])
_history = TypeAdapter(list[list[Entity]])
_logbook = TypeAdapter(list[LogbookEntry])


class HomeAssistantClient:
    """Blocking client for one Home Assistant service.

    Must be used as a context manager so the underlying transport is opened
    and closed.

    Args:
        config: The service to talk to. Its effective endpoint and token are
            resolved on entry.
        request: Timeout, TLS verification and retry settings.
        transport: Optional :mod:`httpx` transport (tests pass a
            :class:`httpx.MockTransport`).

    Example::

        with HomeAssistantClient(service) as client:
            for entity in client.fetch_states():
                print(entity.entity_id, entity.state)
    """

    def __init__(
        self,
        config: ServiceConfiguration,
        request: Optional[RequestConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._request = request or RequestConfig()
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @property
    def base_url(self) -> str:
        return self._config.effective_url

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> HomeAssistantClient:
        token = self._config.require_token()
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
            timeout=self._request.timeout,
            verify=self._request.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # API
    # ------------------------------------------------------------------ #

    def test_connection(self) -> str:
        """Call ``GET /api/`` and return Home Assistant's status message."""
        response = self.request("GET", "/api/", timeout=CONNECTION_TEST_TIMEOUT)
        payload = _json(response)
        if isinstance(payload, dict) and isinstance(payload.get("message"), str):
            return payload["message"]
        return "API running."

    def fetch_states(self) -> list[Entity]:
        """Return every entity state (``GET /api/states``)."""
        return _parse(_entities, _json(self.request("GET", "/api/states")))

    def get_state(self, entity_id: str) -> Entity:
        """Return one entity state (``GET /api/states/<entity_id>``)."""
        payload = _json(self.request("GET", f"/api/states/{entity_id}"))
        return _parse(TypeAdapter(Entity), payload)

    def call_service(
        self,
        domain: str,
        service: str,
        data: Optional[dict[str, JsonValue]] = None,
    ) -> list[Entity]:
        """Call ``POST /api/services/<domain>/<service>``.

        Returns:
            The states Home Assistant reports as changed by the call.
        """
        response = self.request("POST", f"/api/services/{domain}/{service}", json_body=data or {})
        payload = _json(response)
        if not isinstance(payload, list):
            return []
        return _parse(_entities, payload)

    def toggle(self, entity_id: str) -> list[Entity]:
        return self.call_service(_domain(entity_id), "toggle", {"entity_id": entity_id})

    def turn_on(self, entity_id: str, brightness: Optional[int] = None) -> list[Entity]:
        """Turn an entity on; *brightness* is Home Assistant's 0-255 scale."""
        data: dict[str, JsonValue] = {"entity_id": entity_id}
        if brightness is not None:
            data["brightness"] = max(0, min(255, brightness))
        return self.call_service(_domain(entity_id), "turn_on", data)

    def turn_off(self, entity_id: str) -> list[Entity]:
        return self.call_service(_domain(entity_id), "turn_off", {"entity_id": entity_id})

    def set_brightness(self, entity_id: str, percent: int) -> list[Entity]:
        """Set a light's brightness from 0-100; zero turns it off."""
        percent = max(0, min(100, percent))
        if percent == 0:
            return self.turn_off(entity_id)
        return self.turn_on(entity_id, brightness=round(percent * 255 / 100))

    def set_temperature(self, entity_id: str, temperature: float) -> list[Entity]:
        return self.call_service(
            "climate", "set_temperature", {"entity_id": entity_id, "temperature": temperature}
        )

    def set_hvac_mode(self, entity_id: str, mode: str) -> list[Entity]:
        return self.call_service(
            "climate", "set_hvac_mode", {"entity_id": entity_id, "hvac_mode": mode}
        )

    def history(
        self,
        start: datetime,
        end: Optional[datetime] = None,
        entity_ids: Optional[Sequence[str]] = None,
    ) -> list[list[Entity]]:
        """Return state history grouped per entity (``GET /api/history/period/<start>``)."""
        params: dict[str, Any] = {}
        if end is not None:
            params["end_time"] = end.isoformat()
        if entity_ids:
            params["filter_entity_id"] = ",".join(entity_ids)
        response = self.request("GET", f"/api/history/period/{start.isoformat()}", params=params)
        return _parse(_history, _json(response))

    def logbook(
        self,
        start: datetime,
        end: Optional[datetime] = None,
        entity_id: Optional[str] = None,
    ) -> list[LogbookEntry]:
        """Return logbook entries (``GET /api/logbook/<start>``)."""
        params: dict[str, Any] = {}
        if end is not None:
            params["end_time"] = end.isoformat()
        if entity_id:
            params["entity"] = entity_id
        response = self.request("GET", f"/api/logbook/{start.isoformat()}", params=params)
        return _parse(_logbook, _json(response))

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """Send a request with retry and error mapping.

        Raises:
            UnauthorizedError: On 401 / 403.
            NotFoundError: On 404.
            ServerError: On 5xx after all retries, or any other 4xx.
            ConnectionError_: On network / timeout errors after all retries.
        """
        assert self._client is not None, "Client not initialised -- use as context manager"

        kwargs: dict[str, Any] = {"params": params}
        if json_body is not None:
            kwargs["json"] = json_body
        if timeout is not None:
            kwargs["timeout"] = timeout

        max_retries = self._request.max_retries
        for attempt in range(max_retries + 1):
            try:
                response = self._client.request(method, path, **kwargs)
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = 2**attempt
                    logger.debug(
                        "Connection error: %s, retrying in %ss (attempt %d/%d)",
                        exc, delay, attempt + 1, max_retries,
                    )
                    time.sleep(delay)
                    continue
                raise ConnectionError_(
                    f"Cannot reach {self.base_url} after {max_retries + 1} attempts: {exc}"
                ) from exc

            if response.status_code >= 500 and attempt < max_retries:
                delay = 2**attempt
                logger.debug(
                    "Server error %s, retrying in %ss (attempt %d/%d)",
                    response.status_code, delay, attempt + 1, max_retries,
                )
                time.sleep(delay)
                continue

            _raise_for_status(response)
            return response

        raise ServerError("Request failed after all retries")  # pragma: no cover


def _domain(entity_id: str) -> str:
    return entity_id.split(".", 1)[0]


def _json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise ServerError(f"Home Assistant returned invalid JSON: {exc}") from exc


def _parse(adapter: TypeAdapter[Any], payload: Any) -> Any:
    try:
        return adapter.validate_python(payload)
    except ValidationError as exc:
        raise ServerError(f"Unexpected response shape from Home Assistant: {exc}") from exc


def _raise_for_status(response: httpx.Response) -> None:
    """Raise a typed exception for error HTTP status codes."""
    status = response.status_code
    if status < 400:
        return

    try:
        detail = response.json()
        if isinstance(detail, dict):
            msg = detail.get("message") or detail.get("error") or ""
        else:
            msg = str(detail)
    except ValueError:
        msg = response.text[:200] if response.text else ""

    full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"
    if status in (401, 403):
        raise UnauthorizedError(f"{full_msg} (access token rejected)")
    if status == 404:
        raise NotFoundError(full_msg)
    raise ServerError(full_msg)
