"""Shared test fixtures for simpleha.

Provides isolated config directories, sample services, a scripted login
presenter, a mock token endpoint, and a CLI runner. These fixtures are
automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional, Union
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from simpleha.models import AuthMethod, ConnectionEndpoint, ServiceConfiguration
from simpleha.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use. The
    ``simpleha`` logger is restored too so ``caplog`` sees its records.
    """
    yield
    reset_output()
    logger = logging.getLogger("simpleha")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points SIMPLEHA_CONFIG_DIR and the XDG variables at subdirectories of
    tmp_path, clears SIMPLEHA_SERVICE, disables colour so stderr lines are
    printed verbatim, and changes the working directory to tmp_path.

    Returns:
        The config directory.
    """
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("SIMPLEHA_CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.delenv("SIMPLEHA_SERVICE", raising=False)
    monkeypatch.chdir(tmp_path)
    return config_dir


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def token_service() -> ServiceConfiguration:
    """A long-lived-token service with Internal and External endpoints."""
    return ServiceConfiguration.with_token(
        "Home",
        "llat-secret-token",
        "http://ha.local:8123",
        "https://ha.example.com",
    )


@pytest.fixture
def oauth_service() -> ServiceConfiguration:
    """An OAuth service with two endpoints on different hosts, no tokens yet."""
    return ServiceConfiguration(
        name="Cabin",
        auth_method=AuthMethod.OAUTH,
        endpoints=[
            ConnectionEndpoint(name="Internal", url="http://cabin.local:8123"),
            ConnectionEndpoint(name="External", url="https://cabin.example.com"),
        ],
    )


# ---------------------------------------------------------------------------
# Login doubles
# ---------------------------------------------------------------------------

Reply = Union[str, None, Exception, Callable[[str], Optional[str]]]


class ScriptedPresenter:
    """ExternalAuthPresenter that replays scripted replies in order.

    A reply may be:

    * ``"code:<value>"`` -- redirect with that code and the URL's own state.
    * any other string -- returned verbatim as the redirect URL.
    * ``None`` -- the user cancelled.
    * an exception -- raised from :meth:`present`.
    * a callable -- called with the authorization URL.
    """

    def __init__(self, *replies: Reply) -> None:
        self.replies = list(replies)
        self.urls: list[str] = []

    def present(self, url: str, callback_scheme: str) -> Optional[str]:
        self.urls.append(url)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(url)
        if isinstance(reply, str) and reply.startswith("code:"):
            state = query_param(url, "state")
            return f"{callback_scheme}://auth-callback?code={reply[5:]}&state={state}"
        return reply


def query_param(url: str, name: str) -> str:
    """Return the first value of query parameter *name* in *url*."""
    return parse_qs(urlsplit(url).query)[name][0]


@pytest.fixture
def token_server() -> dict[str, Any]:
    """A mock ``/auth/token`` endpoint.

    Returns a dict with ``client`` (an :class:`httpx.Client` on a
    MockTransport) and ``requests`` (the decoded form bodies received).
    Each code ``X`` is exchanged for the access token ``token-for-X``.
    """
    received: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        form["_url"] = str(request.url)
        received.append(form)
        return httpx.Response(
            200,
            json={
                "access_token": f"token-for-{form['code']}",
                "token_type": "Bearer",
                "expires_in": 1800,
                "refresh_token": "refresh-me",
            },
        )

    client = httpx.Client(transport=httpx.MockTransport(handler))
    yield {"client": client, "requests": received}
    client.close()


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


def write_services(config_dir: Path, *configs: ServiceConfiguration) -> None:
    """Store *configs* as the services file in *config_dir*."""
    config_dir.mkdir(parents=True, exist_ok=True)
    payload = {"configurations": [c.model_dump(mode="json") for c in configs]}
    (config_dir / "services.json").write_text(json.dumps(payload), encoding="utf-8")
