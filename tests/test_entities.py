"""Tests for entity state models and dashboard filtering."""

from __future__ import annotations

from typing import Any

import pytest

from simpleha.dashboard import filter_entities, find_tab
from simpleha.entities import CustomTab, Entity
from simpleha.exceptions import ConfigError


def _entity(entity_id: str, state: str = "on", **attributes: Any) -> Entity:
    return Entity(entity_id=entity_id, state=state, attributes=attributes)


# ---------------------------------------------------------------------------
# Entity accessors
# ---------------------------------------------------------------------------


class TestEntity:
    def test_domain_and_name(self) -> None:
        entity = _entity("light.kitchen", friendly_name="Kitchen")
        assert entity.domain == "light"
        assert entity.friendly_name == "Kitchen"

    def test_name_falls_back_to_id(self) -> None:
        assert _entity("switch.fan").friendly_name == "switch.fan"

    def test_controllable_domains(self) -> None:
        assert _entity("cover.garage").is_controllable
        assert not _entity("sensor.outdoor").is_controllable

    def test_brightness_percent(self) -> None:
        entity = _entity("light.kitchen", brightness=128)
        assert entity.brightness == 128
        assert entity.brightness_percent == 50

    def test_no_brightness(self) -> None:
        assert _entity("light.kitchen", state="off").brightness_percent is None

    def test_climate_is_on_unless_off(self) -> None:
        assert _entity("climate.living", state="heat").is_on
        assert not _entity("climate.living", state="off").is_on
        assert not _entity("climate.living", state="unavailable").is_on

    def test_temperature_prefers_target(self) -> None:
        entity = _entity("climate.living", "heat", temperature=21, current_temperature=19.5)
        assert entity.temperature == 21.0
        assert entity.current_temperature == 19.5

    def test_temperature_falls_back_to_current(self) -> None:
        assert _entity("climate.living", "heat", current_temperature=19.5).temperature == 19.5

    def test_hvac_modes_skip_non_strings(self) -> None:
        entity = _entity("climate.living", hvac_modes=["heat", 3, "off"])
        assert entity.hvac_modes == ["heat", "off"]

    def test_attribute_type_mismatch(self) -> None:
        entity = _entity("sensor.x", friendly_name=5, flag=True)
        assert entity.attribute("friendly_name", str) is None
        assert entity.attribute("flag", int) is None

    def test_unknown_fields_survive(self) -> None:
        entity = Entity.model_validate(
            {"entity_id": "sun.sun", "state": "below_horizon", "context": {"id": "abc"}}
        )
        assert entity.model_dump()["context"] == {"id": "abc"}


# ---------------------------------------------------------------------------
# Dashboard filtering
# ---------------------------------------------------------------------------


@pytest.fixture
def entities() -> list[Entity]:
    return [
        _entity("light.kitchen", friendly_name="kitchen"),
        _entity("switch.fan", friendly_name="Attic Fan"),
        _entity("sensor.outdoor", friendly_name="Outdoor"),
        _entity("climate.living", "heat", friendly_name="Living Room"),
    ]


class TestFilterEntities:
    def test_all_tab_keeps_controllable_sorted(self, entities: list[Entity]) -> None:
        result = filter_entities(entities)
        assert [e.entity_id for e in result] == ["switch.fan", "light.kitchen", "climate.living"]

    def test_all_tab_by_name(self, entities: list[Entity]) -> None:
        assert filter_entities(entities, tab_name="all") == filter_entities(entities)

    def test_selection_narrows_pool(self, entities: list[Entity]) -> None:
        result = filter_entities(entities, selected_ids=["light.kitchen", "sensor.outdoor"])
        assert [e.entity_id for e in result] == ["light.kitchen"]

    def test_custom_tab_keeps_members(self, entities: list[Entity]) -> None:
        tab = CustomTab(name="Climate", entity_ids=["sensor.outdoor", "climate.living"],
                        configuration_id="C")
        result = filter_entities(entities, tabs=[tab], tab_name="climate")
        assert [e.entity_id for e in result] == ["climate.living", "sensor.outdoor"]

    def test_unknown_tab(self, entities: list[Entity]) -> None:
        with pytest.raises(ConfigError):
            filter_entities(entities, tab_name="Garage")

    def test_find_tab_is_case_insensitive(self) -> None:
        tab = CustomTab(name="Upstairs", configuration_id="C")
        assert find_tab([tab], "UPSTAIRS") is tab
