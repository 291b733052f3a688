"""Tests for authorization URL construction."""

from __future__ import annotations

from urllib.parse import parse_qsl, urlsplit

import pytest

from simpleha.auth.authorize import (
    CLIENT_ID,
    REDIRECT_SCHEME,
    REDIRECT_URI,
    build_authorization_url,
    token_endpoint,
)
from simpleha.exceptions import InvalidEndpointError


class TestBuildAuthorizationURL:
    def test_exact_url(self) -> None:
        url = build_authorization_url(
            "https://ha.example.com", "app-client", "appscheme://auth-callback", "S1", "C1"
        )
        assert url == (
            "https://ha.example.com/auth/authorize?client_id=app-client"
            "&redirect_uri=appscheme%3A%2F%2Fauth-callback&state=S1"
            "&code_challenge=C1&code_challenge_method=S256"
        )

    def test_parameter_order(self) -> None:
        url = build_authorization_url("http://ha.local:8123", CLIENT_ID, REDIRECT_URI, "s", "c")
        keys = [key for key, _ in parse_qsl(urlsplit(url).query)]
        assert keys == [
            "client_id",
            "redirect_uri",
            "state",
            "code_challenge",
            "code_challenge_method",
        ]

    def test_values_round_trip(self) -> None:
        url = build_authorization_url("http://ha.local:8123", CLIENT_ID, REDIRECT_URI, "st", "ch")
        params = dict(parse_qsl(urlsplit(url).query))
        assert params["client_id"] == "https://home-assistant.io/ios"
        assert params["redirect_uri"] == "homeassistant://auth-callback"
        assert params["code_challenge_method"] == "S256"

    def test_keeps_port_and_path(self) -> None:
        url = build_authorization_url("http://ha.local:8123/ha/", "c", "r://x", "s", "c")
        assert url.startswith("http://ha.local:8123/ha/auth/authorize?")

    @pytest.mark.parametrize("base", ["ha.local:8123", "ftp://ha.local", "", "https://"])
    def test_rejects_non_http_base(self, base: str) -> None:
        with pytest.raises(InvalidEndpointError):
            build_authorization_url(base, "c", "r://x", "s", "c")


class TestConstants:
    def test_redirect_scheme_matches_uri(self) -> None:
        assert REDIRECT_URI.startswith(f"{REDIRECT_SCHEME}://")


class TestTokenEndpoint:
    def test_appends_path(self) -> None:
        assert token_endpoint("https://ha.example.com/") == "https://ha.example.com/auth/token"

    def test_rejects_relative(self) -> None:
        with pytest.raises(InvalidEndpointError):
            token_endpoint("/auth")
