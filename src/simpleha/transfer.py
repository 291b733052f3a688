"""Import and export of service configurations.

Exports are versioned JSON envelopes::

    {"version": "1.0", "exportDate": "2026-01-31T09:00:00Z", "configuration": {...}}
    {"version": "1.0", "exportDate": "2026-01-31T09:00:00Z", "configurations": [...]}

Services inside an envelope use the mobile app's wire shape (camelCase,
``authentication`` and ``urls``) so files can move between the app and this
tool. On import, this package's own snake_case shape is accepted too, as is
the flat single-service ``default_config.json`` of early app releases (see
:func:`legacy_configuration`).
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from typing import Annotated, Any, Optional, Sequence, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from simpleha.exceptions import ImportFormatError, UnsupportedVersionError
from simpleha.models import AuthMethod, ConnectionEndpoint, ServiceConfiguration

EXPORT_VERSION = "1.0"
SUPPORTED_VERSIONS = frozenset({EXPORT_VERSION})


# --- Wire shape ---


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class WireAuthentication(_WireModel):
    method: AuthMethod
    token: Optional[str] = None


class WireURL(_WireModel):
    id: str
    name: str
    url: str
    oauth_token: Optional[str] = Field(default=None, alias="oauthToken")


class WireConfiguration(_WireModel):
    """A service as the mobile app encodes it."""

    id: str
    name: str
    authentication: WireAuthentication
    urls: list[WireURL] = Field(min_length=1)
    active_url_id: Optional[str] = Field(default=None, alias="activeUrlId")
    is_active: bool = Field(default=False, alias="isActive")

    @classmethod
    def from_service(cls, config: ServiceConfiguration) -> WireConfiguration:
        return cls(
            id=config.id,
            name=config.name,
            authentication=WireAuthentication(method=config.auth_method, token=config.token),
            urls=[
                WireURL(id=e.id, name=e.name, url=e.url, oauth_token=e.oauth_token)
                for e in config.endpoints
            ],
            active_url_id=config.effective_endpoint.id,
            is_active=config.is_active,
        )

    def to_service(self) -> ServiceConfiguration:
        ids = {url.id for url in self.urls}
        return ServiceConfiguration(
            id=self.id,
            name=self.name,
            auth_method=self.authentication.method,
            token=self.authentication.token,
            endpoints=[
                ConnectionEndpoint(id=u.id, name=u.name, url=u.url, oauth_token=u.oauth_token)
                for u in self.urls
            ],
            active_endpoint_id=self.active_url_id if self.active_url_id in ids else None,
            is_active=self.is_active,
        )


def _coerce_service(item: Any) -> Any:
    if isinstance(item, dict) and ("authentication" in item or "urls" in item):
        return WireConfiguration.model_validate(item).to_service()
    return item


ImportedService = Annotated[ServiceConfiguration, BeforeValidator(_coerce_service)]


class ExportEnvelope(BaseModel):
    version: str
    export_date: datetime = Field(alias="exportDate")
    configuration: ImportedService


class BatchExportEnvelope(BaseModel):
    version: str
    export_date: datetime = Field(alias="exportDate")
    configurations: list[ImportedService]


# --- Export ---


def _timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _wire(config: ServiceConfiguration) -> dict[str, Any]:
    return WireConfiguration.from_service(config).model_dump(mode="json", by_alias=True)


def _encode(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def export_configuration(config: ServiceConfiguration, now: Optional[datetime] = None) -> str:
    """Serialise one service into a single-configuration envelope."""
    return _encode(
        {"version": EXPORT_VERSION, "exportDate": _timestamp(now), "configuration": _wire(config)}
    )


def export_configurations(
    configs: Sequence[ServiceConfiguration], now: Optional[datetime] = None
) -> str:
    """Serialise several services into a batch envelope."""
    return _encode(
        {
            "version": EXPORT_VERSION,
            "exportDate": _timestamp(now),
            "configurations": [_wire(config) for config in configs],
        }
    )


def export_file_name(config_name: str) -> str:
    """``My Home`` -> ``My_Home_config.json``."""
    return f"{config_name.replace(' ', '_')}_config.json"


def batch_export_file_name(day: Optional[date] = None) -> str:
    """``ha_configs_YYYY-MM-DD.json`` for *day* (default today)."""
    day = day or date.today()
    return f"ha_configs_{day.isoformat()}.json"


# --- Import ---


def _check_version(version: str) -> None:
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersionError(version)


def _decode(data: Union[str, bytes, dict[str, Any]]) -> Any:
    if isinstance(data, dict):
        return data
    try:
        return json.loads(data)
    except ValueError as exc:
        raise ImportFormatError(f"Invalid configuration file format: {exc}") from exc


def _imported(config: ServiceConfiguration) -> ServiceConfiguration:
    if config.is_active:
        config = config.model_copy(update={"is_active": False})
    return config


def import_configuration(data: Union[str, bytes, dict[str, Any]]) -> ServiceConfiguration:
    """Read a single-configuration envelope.

    The imported service is never marked active.

    Raises:
        ImportFormatError: Not JSON, or not a valid single envelope.
        UnsupportedVersionError: The envelope version is not ``1.0``.
    """
    payload = _decode(data)
    try:
        envelope = ExportEnvelope.model_validate(payload)
    except ValidationError as exc:
        raise ImportFormatError(f"Invalid configuration file format: {exc}") from exc
    _check_version(envelope.version)
    return _imported(envelope.configuration)


def import_configurations(
    data: Union[str, bytes, dict[str, Any]],
) -> list[ServiceConfiguration]:
    """Read a batch envelope, falling back to a single envelope.

    Raises:
        ImportFormatError: Neither envelope shape matches.
        UnsupportedVersionError: The envelope version is not ``1.0``.
    """
    payload = _decode(data)
    try:
        envelope = BatchExportEnvelope.model_validate(payload)
    except ValidationError:
        return [import_configuration(payload)]
    _check_version(envelope.version)
    return [_imported(config) for config in envelope.configurations]


def legacy_configuration(data: dict[str, Any]) -> ServiceConfiguration:
    """Convert the flat ``default_config.json`` shape.

    Expected keys: ``name``, ``internalUrl``, ``externalUrl``, ``apiToken``
    and ``isActive``.

    Raises:
        ImportFormatError: A key is missing or has the wrong type.
    """
    try:
        name = data["name"]
        internal_url = data["internalUrl"]
        external_url = data["externalUrl"]
        token = data["apiToken"]
        is_active = data["isActive"]
    except KeyError as exc:
        raise ImportFormatError(f"Legacy configuration is missing {exc}") from exc
    if not all(isinstance(v, str) for v in (name, internal_url, external_url, token)):
        raise ImportFormatError("Legacy configuration values must be strings")
    if not isinstance(is_active, bool):
        raise ImportFormatError("Legacy configuration 'isActive' must be a boolean")
    config = ServiceConfiguration.with_token(name, token, internal_url, external_url)
    config.is_active = is_active
    return config
