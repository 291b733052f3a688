"""Pydantic models for data returned by the Home Assistant REST API.

:class:`Entity` wraps one item of ``GET /api/states``. Attributes are kept as
an untyped JSON object (``dict[str, JsonValue]``) and read through typed
accessors, so unknown attributes survive a round trip untouched.

:class:`CustomTab` and :class:`LogbookEntry` are the user-defined dashboard
grouping and one row of ``GET /api/logbook`` respectively.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, JsonValue

T = TypeVar("T")

CONTROLLABLE_DOMAINS = frozenset({"light", "switch", "climate", "cover", "fan", "lock"})
"""Domains whose entities accept on/off style service calls."""


class Entity(BaseModel):
    """The state object of a single Home Assistant entity."""

    model_config = ConfigDict(extra="allow")

    entity_id: str
    state: str
    attributes: dict[str, JsonValue] = Field(default_factory=dict)
    last_changed: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    def attribute(self, name: str, kind: type[T]) -> Optional[T]:
        """Return attribute *name* if it is present and an instance of *kind*.

        ``int`` values are accepted where ``float`` is requested, mirroring
        how JSON numbers decode.
        """
        value = self.attributes.get(name)
        if kind is float and isinstance(value, int) and not isinstance(value, bool):
            return float(value)  # type: ignore[return-value]
        if isinstance(value, kind) and not (kind is int and isinstance(value, bool)):
            return value
        return None

    @property
    def domain(self) -> str:
        return self.entity_id.split(".", 1)[0]

    @property
    def friendly_name(self) -> str:
        return self.attribute("friendly_name", str) or self.entity_id

    @property
    def is_controllable(self) -> bool:
        return self.domain in CONTROLLABLE_DOMAINS

    @property
    def is_on(self) -> bool:
        if self.domain == "climate":
            return self.state not in ("off", "unavailable")
        return self.state == "on"

    @property
    def brightness(self) -> Optional[int]:
        value = self.attribute("brightness", float)
        return int(value) if value is not None else None

    @property
    def brightness_percent(self) -> Optional[int]:
        """Brightness on a 0-100 scale (Home Assistant reports 0-255)."""
        value = self.brightness
        if value is None:
            return None
        return round(value * 100 / 255)

    @property
    def temperature(self) -> Optional[float]:
        """Target temperature, falling back to the measured one."""
        target = self.attribute("temperature", float)
        if target is not None:
            return target
        return self.attribute("current_temperature", float)

    @property
    def current_temperature(self) -> Optional[float]:
        return self.attribute("current_temperature", float)

    @property
    def hvac_mode(self) -> Optional[str]:
        return self.attribute("hvac_mode", str)

    @property
    def hvac_modes(self) -> list[str]:
        modes = self.attribute("hvac_modes", list) or []
        return [mode for mode in modes if isinstance(mode, str)]

    @property
    def unit_of_measurement(self) -> Optional[str]:
        return self.attribute("unit_of_measurement", str)


class CustomTab(BaseModel):
    """A user-defined dashboard tab grouping entities of one service."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()).upper())
    name: str
    entity_ids: list[str] = Field(default_factory=list)
    display_order: int = 0
    configuration_id: str


class LogbookEntry(BaseModel):
    """One row of the Home Assistant logbook."""

    model_config = ConfigDict(extra="allow")

    when: datetime
    name: Optional[str] = None
    message: Optional[str] = None
    entity_id: Optional[str] = None
    state: Optional[str] = None
    domain: Optional[str] = None
