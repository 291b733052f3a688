"""Tests for the Home Assistant REST client."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any
from unittest.mock import patch

import httpx
import pytest

from simpleha.client import HomeAssistantClient
from simpleha.exceptions import (
    ConnectionError_,
    MissingCredentialsError,
    NotFoundError,
    ServerError,
    UnauthorizedError,
)
from simpleha.models import RequestConfig, ServiceConfiguration

LIGHT = {
    "entity_id": "light.kitchen",
    "state": "on",
    "attributes": {"friendly_name": "Kitchen", "brightness": 128},
    "last_changed": "2026-01-31T09:00:00+00:00",
    "last_updated": "2026-01-31T09:00:00+00:00",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Recorder:
    """MockTransport handler that records requests and replays responses."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)
        return httpx.Response(200, json=reply)

    @property
    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


def _client(
    config: ServiceConfiguration, recorder: Recorder, max_retries: int = 0
) -> HomeAssistantClient:
    return HomeAssistantClient(
        config,
        RequestConfig(timeout=5, max_retries=max_retries),
        transport=httpx.MockTransport(recorder),
    )


# ---------------------------------------------------------------------------
# Endpoint and token resolution
# ---------------------------------------------------------------------------


class TestResolution:
    def test_uses_effective_endpoint_and_bearer(self, token_service: ServiceConfiguration) -> None:
        recorder = Recorder({"message": "API running."})
        with _client(token_service, recorder) as client:
            assert client.test_connection() == "API running."

        request = recorder.requests[0]
        assert str(request.url) == "http://ha.local:8123/api/"
        assert request.headers["authorization"] == "Bearer llat-secret-token"

    def test_external_endpoint(self, token_service: ServiceConfiguration) -> None:
        token_service.active_endpoint_id = token_service.endpoint("External").id
        recorder = Recorder({"message": "ok"})
        with _client(token_service, recorder) as client:
            client.test_connection()
        assert recorder.requests[0].url.host == "ha.example.com"

    def test_oauth_endpoint_token(self, oauth_service: ServiceConfiguration) -> None:
        config = oauth_service.with_endpoint_token(oauth_service.endpoints[0].id, "per-endpoint")
        recorder = Recorder({"message": "ok"})
        with _client(config, recorder) as client:
            client.test_connection()
        assert recorder.requests[0].headers["authorization"] == "Bearer per-endpoint"

    def test_missing_token_fails_before_traffic(
        self, oauth_service: ServiceConfiguration
    ) -> None:
        recorder = Recorder({})
        with pytest.raises(MissingCredentialsError, match="auth login"):
            with _client(oauth_service, recorder):
                pass
        assert recorder.requests == []


# ---------------------------------------------------------------------------
# API methods
# ---------------------------------------------------------------------------


class TestStates:
    def test_fetch_states(self, token_service: ServiceConfiguration) -> None:
        recorder = Recorder([LIGHT, {"entity_id": "sun.sun", "state": "above_horizon"}])
        with _client(token_service, recorder) as client:
            entities = client.fetch_states()
        assert [e.entity_id for e in entities] == ["light.kitchen", "sun.sun"]
        assert entities[0].brightness == 128
        assert recorder.requests[0].url.path == "/api/states"

    def test_get_state(self, token_service: ServiceConfiguration) -> None:
        recorder = Recorder(LIGHT)
        with _client(token_service, recorder) as client:
            entity = client.get_state("light.kitchen")
        assert entity.friendly_name == "Kitchen"
        assert recorder.requests[0].url.path == "/api/states/light.kitchen"

    def test_unexpected_shape(self, token_service: ServiceConfiguration) -> None:
        with _client(token_service, Recorder({"not": "a list"})) as client:
            with pytest.raises(ServerError, match="Unexpected response"):
                client.fetch_states()

    def test_invalid_json(self, token_service: ServiceConfiguration) -> None:
        with _client(token_service, Recorder(httpx.Response(200, text="nope"))) as client:
            with pytest.raises(ServerError, match="invalid JSON"):
                client.fetch_states()


class TestServices:
    def test_toggle(self, token_service: ServiceConfiguration) -> None:
        recorder = Recorder([LIGHT])
        with _client(token_service, recorder) as client:
            changed = client.toggle("light.kitchen")
        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/services/light/toggle"
        assert recorder.last_json == {"entity_id": "light.kitchen"}
        assert changed[0].entity_id == "light.kitchen"

    def test_turn_on_clamps_brightness(self, token_service: ServiceConfiguration) -> None:
        recorder = Recorder([])
        with _client(token_service, recorder) as client:
            client.turn_on("light.kitchen", brightness=400)
        assert recorder.last_json == {"entity_id": "light.kitchen", "brightness": 255}

    @pytest.mark.parametrize("percent, brightness", [(100, 255), (50, 128), (1, 3)])
    def test_set_brightness_scales(
        self, token_service: ServiceConfiguration, percent: int, brightness: int
    ) -> None:
        recorder = Recorder([])
        with _client(token_service, recorder) as client:
            client.set_brightness("light.kitchen", percent)
        assert recorder.requests[0].url.path == "/api/services/light/turn_on"
        assert recorder.last_json["brightness"] == brightness

    def test_zero_brightness_turns_off(self, token_service: ServiceConfiguration) -> None:
        recorder = Recorder([])
        with _client(token_service, recorder) as client:
            client.set_brightness("light.kitchen", 0)
        assert recorder.requests[0].url.path == "/api/services/light/turn_off"

    def test_switch_domain(self, token_service: ServiceConfiguration) -> None:
        recorder = Recorder([])
        with _client(token_service, recorder) as client:
            client.turn_off("switch.fan")
        assert recorder.requests[0].url.path == "/api/services/switch/turn_off"

    def test_climate(self, token_service: ServiceConfiguration) -> None:
        recorder = Recorder([], [])
        with _client(token_service, recorder) as client:
            client.set_temperature("climate.living", 21.5)
            assert recorder.last_json == {"entity_id": "climate.living", "temperature": 21.5}
            client.set_hvac_mode("climate.living", "heat")
            assert recorder.last_json == {"entity_id": "climate.living", "hvac_mode": "heat"}
        assert recorder.requests[1].url.path == "/api/services/climate/set_hvac_mode"

    def test_non_list_response(self, token_service: ServiceConfiguration) -> None:
        with _client(token_service, Recorder({"ok": True})) as client:
            assert client.call_service("script", "run") == []


class TestHistoryAndLogbook:
    def test_history_params(self, token_service: ServiceConfiguration) -> None:
        recorder = Recorder([[LIGHT, dict(LIGHT, state="off")]])
        start = datetime(2026, 1, 31, 8, 0, tzinfo=timezone.utc)
        end = datetime(2026, 1, 31, 9, 0, tzinfo=timezone.utc)
        with _client(token_service, recorder) as client:
            series = client.history(start, end, ["light.kitchen", "switch.fan"])
        request = recorder.requests[0]
        assert request.url.path == "/api/history/period/2026-01-31T08:00:00+00:00"
        assert request.url.params["end_time"] == "2026-01-31T09:00:00+00:00"
        assert request.url.params["filter_entity_id"] == "light.kitchen,switch.fan"
        assert [s.state for s in series[0]] == ["on", "off"]

    def test_logbook(self, token_service: ServiceConfiguration) -> None:
        recorder = Recorder(
            [{"when": "2026-01-31T09:00:00+00:00", "name": "Kitchen", "message": "turned on"}]
        )
        start = datetime(2026, 1, 31, 8, 0, tzinfo=timezone.utc)
        with _client(token_service, recorder) as client:
            entries = client.logbook(start, entity_id="light.kitchen")
        assert recorder.requests[0].url.params["entity"] == "light.kitchen"
        assert entries[0].message == "turned on"


# ---------------------------------------------------------------------------
# Error mapping and retries
# ---------------------------------------------------------------------------


class TestErrors:
    @pytest.mark.parametrize("status", [401, 403])
    def test_unauthorized(self, token_service: ServiceConfiguration, status: int) -> None:
        reply = httpx.Response(status, json={"message": "Invalid token"})
        with _client(token_service, Recorder(reply)) as client:
            with pytest.raises(UnauthorizedError, match="Invalid token"):
                client.fetch_states()

    def test_not_found(self, token_service: ServiceConfiguration) -> None:
        reply = httpx.Response(404, json={"message": "Entity not found."})
        with _client(token_service, Recorder(reply)) as client:
            with pytest.raises(NotFoundError):
                client.get_state("light.nope")

    def test_bad_request(self, token_service: ServiceConfiguration) -> None:
        with _client(token_service, Recorder(httpx.Response(400, text="bad"))) as client:
            with pytest.raises(ServerError, match="HTTP 400: bad"):
                client.call_service("light", "turn_on")

    def test_retries_server_error(self, token_service: ServiceConfiguration) -> None:
        recorder = Recorder(httpx.Response(502), {"message": "API running."})
        with patch("simpleha.client.rest.time.sleep") as sleep:
            with _client(token_service, recorder, max_retries=2) as client:
                assert client.test_connection() == "API running."
        assert len(recorder.requests) == 2
        sleep.assert_called_once_with(1)

    def test_server_error_after_retries(self, token_service: ServiceConfiguration) -> None:
        recorder = Recorder(httpx.Response(500))
        with patch("simpleha.client.rest.time.sleep") as sleep:
            with _client(token_service, recorder, max_retries=2) as client:
                with pytest.raises(ServerError):
                    client.fetch_states()
        assert len(recorder.requests) == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1, 2]

    def test_connection_error(self, token_service: ServiceConfiguration) -> None:
        request = httpx.Request("GET", "http://ha.local:8123/api/states")
        recorder = Recorder(httpx.ConnectError("refused", request=request))
        with patch("simpleha.client.rest.time.sleep"):
            with _client(token_service, recorder, max_retries=1) as client:
                with pytest.raises(ConnectionError_, match="ha.local"):
                    client.fetch_states()
        assert len(recorder.requests) == 2
