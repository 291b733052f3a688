"""Canonical Pydantic configuration models shared across simpleha modules.

**Service models** -- persisted as JSON in the user's config directory:
    :class:`AuthMethod`, :class:`ConnectionEndpoint`, and
    :class:`ServiceConfiguration`. A service is one Home Assistant
    installation reachable through an ordered list of endpoints.

**Settings models** -- the user-wide :class:`GlobalConfig` with its
:class:`RequestConfig` and :class:`OutputConfig` sections.

Entity-state models returned by the REST API live in
:mod:`simpleha.entities`.
"""

from __future__ import annotations

import enum
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from simpleha.exceptions import ConfigError, MissingCredentialsError


def _new_id() -> str:
    return str(uuid.uuid4()).upper()


def _clean_token(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


# --- Service Config ---


class AuthMethod(str, enum.Enum):
    """How a service proves its identity to Home Assistant."""

    TOKEN = "token"
    """A long-lived access token shared by every endpoint of the service."""
    OAUTH = "oauth"
    """Per-endpoint tokens obtained through the authorization-code flow."""


class ConnectionEndpoint(BaseModel):
    """One reachable address of a Home Assistant service.

    ``name`` is a display label such as ``Internal`` or ``External`` and is
    not required to be unique. ``oauth_token`` is only populated for OAuth
    services once a login round against this endpoint has succeeded.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=_new_id, description="Stable unique identifier")
    name: str = Field(default="Default", description="Display label")
    url: str = Field(description="Absolute HTTP(S) base URL of the instance")
    oauth_token: Optional[str] = Field(
        default=None, description="Access token from the last successful login"
    )

    @field_validator("url")
    @classmethod
    def _strip_url(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("oauth_token")
    @classmethod
    def _strip_token(cls, value: Optional[str]) -> Optional[str]:
        return _clean_token(value)


class ServiceConfiguration(BaseModel):
    """A Home Assistant service the user has configured.

    Resolution rules:

    * **Effective endpoint** -- the endpoint whose id equals
      ``active_endpoint_id``, otherwise the first endpoint.
    * **Effective token** -- for :attr:`AuthMethod.TOKEN` the shared
      ``token`` (trimmed); for :attr:`AuthMethod.OAUTH` the ``oauth_token``
      of the effective endpoint. Either may be absent.

    Construction fails validation when ``endpoints`` is empty, when two
    endpoints share an id, or when ``active_endpoint_id`` references no
    endpoint.

    Example::

        config = ServiceConfiguration(
            name="Home",
            auth_method=AuthMethod.OAUTH,
            endpoints=[
                ConnectionEndpoint(name="Internal", url="http://ha.local:8123"),
                ConnectionEndpoint(name="External", url="https://ha.example.com"),
            ],
        )
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=_new_id)
    name: str
    auth_method: AuthMethod = AuthMethod.TOKEN
    token: Optional[str] = Field(
        default=None, description="Shared long-lived access token (token method only)"
    )
    endpoints: list[ConnectionEndpoint] = Field(min_length=1)
    active_endpoint_id: Optional[str] = None
    is_active: bool = False

    @field_validator("token")
    @classmethod
    def _strip_token(cls, value: Optional[str]) -> Optional[str]:
        return _clean_token(value)

    @model_validator(mode="after")
    def _check_endpoints(self) -> ServiceConfiguration:
        ids = [endpoint.id for endpoint in self.endpoints]
        if len(ids) != len(set(ids)):
            raise ValueError("endpoint ids must be unique within a service")
        if self.active_endpoint_id is not None and self.active_endpoint_id not in ids:
            raise ValueError(
                f"active_endpoint_id {self.active_endpoint_id!r} does not match any endpoint"
            )
        return self

    # -- convenience constructors ---------------------------------------------

    @classmethod
    def with_token(
        cls,
        name: str,
        token: str,
        internal_url: str,
        external_url: Optional[str] = None,
        use_internal: bool = True,
    ) -> ServiceConfiguration:
        """Build a token-authenticated service with Internal/External endpoints."""
        endpoints = _endpoint_pair(internal_url, external_url)
        return cls(
            name=name,
            auth_method=AuthMethod.TOKEN,
            token=token,
            endpoints=endpoints,
            active_endpoint_id=_pick(endpoints, use_internal),
        )

    @classmethod
    def with_oauth(
        cls,
        name: str,
        internal_url: str,
        external_url: Optional[str] = None,
        use_internal: bool = True,
    ) -> ServiceConfiguration:
        """Build an OAuth service with Internal/External endpoints and no tokens yet."""
        endpoints = _endpoint_pair(internal_url, external_url)
        return cls(
            name=name,
            auth_method=AuthMethod.OAUTH,
            endpoints=endpoints,
            active_endpoint_id=_pick(endpoints, use_internal),
        )

    # -- resolution -------------------------------------------------------------

    @property
    def effective_endpoint(self) -> ConnectionEndpoint:
        if self.active_endpoint_id is not None:
            for endpoint in self.endpoints:
                if endpoint.id == self.active_endpoint_id:
                    return endpoint
        return self.endpoints[0]

    @property
    def effective_url(self) -> str:
        return self.effective_endpoint.url

    @property
    def effective_token(self) -> Optional[str]:
        if self.auth_method is AuthMethod.TOKEN:
            return self.token
        return self.effective_endpoint.oauth_token

    def require_token(self) -> str:
        """Return the effective token or raise when none is usable.

        Raises:
            MissingCredentialsError: If the static token is unset, or the
                effective endpoint of an OAuth service has not completed a
                login round.
        """
        token = self.effective_token
        if token is None:
            endpoint = self.effective_endpoint
            if self.auth_method is AuthMethod.OAUTH:
                raise MissingCredentialsError(
                    f"Service '{self.name}' has no access token for endpoint "
                    f"'{endpoint.name}' ({endpoint.url}); run 'simpleha auth login'"
                )
            raise MissingCredentialsError(
                f"Service '{self.name}' has no access token configured"
            )
        return token

    def endpoint(self, key: str) -> ConnectionEndpoint:
        """Look up an endpoint by id, or by case-insensitive label.

        Raises:
            ConfigError: If no endpoint matches.
        """
        for endpoint in self.endpoints:
            if endpoint.id == key:
                return endpoint
        for endpoint in self.endpoints:
            if endpoint.name.lower() == key.lower():
                return endpoint
        raise ConfigError(f"Service '{self.name}' has no endpoint '{key}'")

    def with_endpoint_token(self, endpoint_id: str, token: str) -> ServiceConfiguration:
        """Return a deep copy with *token* stored on the given endpoint."""
        updated = self.model_copy(deep=True)
        updated.endpoint(endpoint_id).oauth_token = _clean_token(token)
        return updated


def _endpoint_pair(
    internal_url: str, external_url: Optional[str]
) -> list[ConnectionEndpoint]:
    endpoints = [ConnectionEndpoint(name="Internal", url=internal_url)]
    if external_url:
        endpoints.append(ConnectionEndpoint(name="External", url=external_url))
    return endpoints


def _pick(endpoints: list[ConnectionEndpoint], use_internal: bool) -> str:
    return endpoints[0].id if use_internal else endpoints[-1].id


# --- Settings ---


class RequestConfig(BaseModel):
    """Default HTTP request settings applied to every REST API call."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(default=3, description="Max retry attempts")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide settings persisted at ``~/.config/simpleha/settings.json``.

    Loaded and saved by :func:`~simpleha.config.load_global_config` and
    :func:`~simpleha.config.save_global_config`. ``default_service`` has the
    lowest precedence when choosing which service a command talks to; see
    :func:`~simpleha.config.resolve_service`.
    """

    default_service: Optional[str] = None
    request: RequestConfig = Field(default_factory=RequestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
