"""Entity commands -- read states and control devices.

These commands act on the current service (see
:func:`~simpleha.config.resolve_service`) through its effective endpoint.

Typical workflow::

    simpleha states
    simpleha toggle light.kitchen
    simpleha brightness light.kitchen 40
    simpleha climate temperature climate.living_room 21.5
    simpleha history --hours 6 --entity sensor.outdoor
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Iterator, Optional

import typer

from simpleha.commands.common import fail, open_registry, select_service
from simpleha.entities import Entity
from simpleha.exceptions import InvalidUsageError, SimpleHAError
from simpleha.output import OutputFormat, format_response, get_output, info, print_table, success

if TYPE_CHECKING:
    from simpleha.client import HomeAssistantClient
    from simpleha.models import ServiceConfiguration

climate_app = typer.Typer(no_args_is_help=True)


@contextmanager
def _client(
    ctx: typer.Context, config: Optional[ServiceConfiguration] = None
) -> Iterator[HomeAssistantClient]:
    from simpleha.client import HomeAssistantClient
    from simpleha.config import load_global_config

    if config is None:
        config = select_service(ctx, open_registry())
    with HomeAssistantClient(config, load_global_config().request) as client:
        yield client


def _describe(entity: Entity) -> str:
    if entity.domain == "light" and entity.is_on and entity.brightness_percent is not None:
        return f"on ({entity.brightness_percent}%)"
    if entity.domain == "climate":
        temp = entity.temperature
        unit = entity.unit_of_measurement or "°"
        mode = entity.hvac_mode or entity.state
        return f"{mode} {temp:g}{unit}" if temp is not None else mode
    if entity.unit_of_measurement:
        return f"{entity.state} {entity.unit_of_measurement}"
    return entity.state


def _print_entities(entities: list[Entity], title: str) -> None:
    if get_output().format == OutputFormat.JSON:
        format_response([e.model_dump(mode="json") for e in entities])
        return
    rows = [[e.friendly_name, e.entity_id, _describe(e)] for e in entities]
    print_table(["Name", "Entity", "State"], rows, title=title)


def _report(changed: list[Entity], entity_id: str, verb: str) -> None:
    for entity in changed:
        if entity.entity_id == entity_id:
            success(f"{entity.friendly_name}: {_describe(entity)}")
            return
    success(f"{verb} {entity_id}")


def states_command(
    ctx: typer.Context,
    all_entities: bool = typer.Option(
        False, "--all", "-a", help="Show every entity, not only the dashboard view."
    ),
    tab: Optional[str] = typer.Option(None, "--tab", "-t", help="Only show this custom tab."),
) -> None:
    """List entity states.

    By default this mirrors the dashboard: the selected entities (if any
    were selected) of controllable domains. ``--tab`` shows a custom tab.
    """
    from simpleha.config import DashboardStore
    from simpleha.dashboard import filter_entities

    try:
        config = select_service(ctx, open_registry())
        with _client(ctx, config) as client:
            entities = client.fetch_states()
        if not all_entities:
            dashboard = DashboardStore()
            entities = filter_entities(
                entities,
                dashboard.selected_entities(config.id),
                dashboard.tabs(config.id),
                tab,
            )
        else:
            entities = sorted(entities, key=lambda e: e.entity_id)
    except SimpleHAError as exc:
        fail(exc)

    if not entities:
        info("No entities to show.")
        return
    _print_entities(entities, title=tab or config.name)


def state_command(
    ctx: typer.Context,
    entity_id: str = typer.Argument(help="Entity id, e.g. light.kitchen."),
) -> None:
    """Show the full state object of one entity."""
    try:
        with _client(ctx) as client:
            entity = client.get_state(entity_id)
    except SimpleHAError as exc:
        fail(exc)
    format_response(entity.model_dump(mode="json"))


def toggle_command(
    ctx: typer.Context,
    entity_id: str = typer.Argument(help="Entity to toggle."),
) -> None:
    """Toggle an entity."""
    try:
        with _client(ctx) as client:
            changed = client.toggle(entity_id)
    except SimpleHAError as exc:
        fail(exc)
    _report(changed, entity_id, "Toggled")


def on_command(
    ctx: typer.Context,
    entity_id: str = typer.Argument(help="Entity to turn on."),
) -> None:
    """Turn an entity on."""
    try:
        with _client(ctx) as client:
            changed = client.turn_on(entity_id)
    except SimpleHAError as exc:
        fail(exc)
    _report(changed, entity_id, "Turned on")


def off_command(
    ctx: typer.Context,
    entity_id: str = typer.Argument(help="Entity to turn off."),
) -> None:
    """Turn an entity off."""
    try:
        with _client(ctx) as client:
            changed = client.turn_off(entity_id)
    except SimpleHAError as exc:
        fail(exc)
    _report(changed, entity_id, "Turned off")


def brightness_command(
    ctx: typer.Context,
    entity_id: str = typer.Argument(help="Light entity."),
    percent: int = typer.Argument(help="Brightness 0-100; 0 turns the light off.", min=0, max=100),
) -> None:
    """Set a light's brightness."""
    try:
        with _client(ctx) as client:
            changed = client.set_brightness(entity_id, percent)
    except SimpleHAError as exc:
        fail(exc)
    _report(changed, entity_id, f"Set {percent}% on")


@climate_app.command("temperature")
def climate_temperature(
    ctx: typer.Context,
    entity_id: str = typer.Argument(help="Climate entity."),
    temperature: float = typer.Argument(help="Target temperature."),
) -> None:
    """Set a thermostat's target temperature."""
    try:
        with _client(ctx) as client:
            changed = client.set_temperature(entity_id, temperature)
    except SimpleHAError as exc:
        fail(exc)
    _report(changed, entity_id, f"Set {temperature:g} on")


@climate_app.command("mode")
def climate_mode(
    ctx: typer.Context,
    entity_id: str = typer.Argument(help="Climate entity."),
    mode: str = typer.Argument(help="HVAC mode, e.g. heat, cool, auto, off."),
) -> None:
    """Set a thermostat's HVAC mode."""
    try:
        with _client(ctx) as client:
            entity = client.get_state(entity_id)
            if entity.hvac_modes and mode not in entity.hvac_modes:
                raise InvalidUsageError(
                    f"{entity.friendly_name} supports: {', '.join(entity.hvac_modes)}"
                )
            changed = client.set_hvac_mode(entity_id, mode)
    except SimpleHAError as exc:
        fail(exc)
    _report(changed, entity_id, f"Set {mode} on")


def call_command(
    ctx: typer.Context,
    domain: str = typer.Argument(help="Service domain, e.g. light."),
    service: str = typer.Argument(help="Service name, e.g. turn_on."),
    data: Optional[str] = typer.Option(
        None, "--data", "-d", help='Service data as a JSON object, e.g. \'{"entity_id": "light.x"}\'.'
    ),
) -> None:
    """Call any Home Assistant service."""
    try:
        payload = json.loads(data) if data else {}
    except json.JSONDecodeError as exc:
        fail(InvalidUsageError(f"--data is not valid JSON: {exc}"))
    if not isinstance(payload, dict):
        fail(InvalidUsageError("--data must be a JSON object"))

    try:
        with _client(ctx) as client:
            changed = client.call_service(domain, service, payload)
    except SimpleHAError as exc:
        fail(exc)
    format_response([e.model_dump(mode="json") for e in changed])


def _since(hours: float) -> datetime:
    return datetime.now(timezone.utc) - timedelta(hours=hours)


def history_command(
    ctx: typer.Context,
    hours: float = typer.Option(24, "--hours", "-H", help="How far back to look."),
    entity: Optional[list[str]] = typer.Option(
        None, "--entity", "-e", help="Limit to these entities (repeatable)."
    ),
) -> None:
    """Show state changes over the last hours."""
    try:
        with _client(ctx) as client:
            series = client.history(_since(hours), entity_ids=entity)
    except SimpleHAError as exc:
        fail(exc)

    changes = [state for group in series for state in group]
    changes.sort(key=lambda s: s.last_changed or datetime.min.replace(tzinfo=timezone.utc))
    if get_output().format == OutputFormat.JSON:
        format_response([s.model_dump(mode="json") for s in changes])
        return
    rows = [
        [
            s.last_changed.astimezone().strftime("%Y-%m-%d %H:%M:%S") if s.last_changed else "",
            s.entity_id,
            _describe(s),
        ]
        for s in changes
    ]
    print_table(["When", "Entity", "State"], rows, title=f"History ({hours:g}h)")


def logbook_command(
    ctx: typer.Context,
    hours: float = typer.Option(24, "--hours", "-H", help="How far back to look."),
    entity: Optional[str] = typer.Option(None, "--entity", "-e", help="Limit to one entity."),
) -> None:
    """Show logbook events over the last hours."""
    try:
        with _client(ctx) as client:
            entries = client.logbook(_since(hours), entity_id=entity)
    except SimpleHAError as exc:
        fail(exc)

    if get_output().format == OutputFormat.JSON:
        format_response([e.model_dump(mode="json") for e in entries])
        return
    rows = [
        [
            e.when.astimezone().strftime("%Y-%m-%d %H:%M:%S"),
            e.name or e.entity_id or "",
            e.message or e.state or "",
        ]
        for e in entries
    ]
    print_table(["When", "Name", "Event"], rows, title=f"Logbook ({hours:g}h)")
