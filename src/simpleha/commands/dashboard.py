"""Dashboard commands -- custom tabs and the selected-entity filter.

``simpleha tabs`` manages named groups of entities per service;
``simpleha select`` marks entities for the default ``simpleha states``
view. Both are stored locally and never sent to Home Assistant.
"""

from __future__ import annotations

from typing import Optional

import typer

from simpleha.commands.common import fail, open_registry, select_service
from simpleha.exceptions import SimpleHAError
from simpleha.output import info, print_table, success, suggest

tabs_app = typer.Typer(no_args_is_help=True)


@tabs_app.command("list")
def tabs_list(ctx: typer.Context) -> None:
    """List the current service's custom tabs."""
    from simpleha.config import DashboardStore

    try:
        config = select_service(ctx, open_registry())
        tabs = DashboardStore().tabs(config.id)
    except SimpleHAError as exc:
        fail(exc)

    if not tabs:
        info(f'No tabs for "{config.name}".')
        suggest("Create one: simpleha tabs add NAME ENTITY...")
        return
    rows = [[tab.name, str(len(tab.entity_ids)), ", ".join(tab.entity_ids)] for tab in tabs]
    print_table(["Tab", "Count", "Entities"], rows, title=config.name)


@tabs_app.command("add")
def tabs_add(
    ctx: typer.Context,
    name: str = typer.Argument(help="Tab name."),
    entity_ids: Optional[list[str]] = typer.Argument(None, help="Entities on the tab."),
) -> None:
    """Create a custom tab."""
    from simpleha.config import DashboardStore
    from simpleha.entities import CustomTab

    try:
        config = select_service(ctx, open_registry())
        DashboardStore().add_tab(
            CustomTab(name=name, entity_ids=list(entity_ids or []), configuration_id=config.id)
        )
    except SimpleHAError as exc:
        fail(exc)
    success(f'Tab "{name}" created.')


@tabs_app.command("edit")
def tabs_edit(
    ctx: typer.Context,
    name: str = typer.Argument(help="Tab name."),
    add: Optional[list[str]] = typer.Option(None, "--add", help="Entity to add (repeatable)."),
    remove: Optional[list[str]] = typer.Option(
        None, "--remove", help="Entity to remove (repeatable)."
    ),
    rename: Optional[str] = typer.Option(None, "--rename", help="New tab name."),
) -> None:
    """Change a tab's entities or name."""
    from simpleha.config import DashboardStore
    from simpleha.dashboard import find_tab

    try:
        config = select_service(ctx, open_registry())
        store = DashboardStore()
        tab = find_tab(store.tabs(config.id), name)
        members = [e for e in tab.entity_ids if e not in set(remove or [])]
        members.extend(e for e in add or [] if e not in members)
        store.update_tab(
            tab.model_copy(update={"entity_ids": members, "name": rename or tab.name})
        )
    except SimpleHAError as exc:
        fail(exc)
    success(f'Tab "{rename or name}" updated ({len(members)} entities).')


@tabs_app.command("remove")
def tabs_remove(
    ctx: typer.Context,
    name: str = typer.Argument(help="Tab to delete."),
) -> None:
    """Delete a custom tab."""
    from simpleha.config import DashboardStore

    try:
        config = select_service(ctx, open_registry())
        DashboardStore().remove_tab(config.id, name)
    except SimpleHAError as exc:
        fail(exc)
    success(f'Tab "{name}" removed.')


def select_command(
    ctx: typer.Context,
    entity_ids: Optional[list[str]] = typer.Argument(
        None, help="Entities to toggle in the selection. Omit to show the selection."
    ),
    clear: bool = typer.Option(False, "--clear", help="Empty the selection."),
) -> None:
    """Toggle entities in the dashboard selection, or show it.

    With an empty selection ``simpleha states`` shows every controllable
    entity.
    """
    from simpleha.config import DashboardStore

    try:
        config = select_service(ctx, open_registry())
        store = DashboardStore()
        if clear:
            store.set_selected_entities(config.id, [])
            success("Selection cleared.")
            return
        for entity_id in entity_ids or []:
            selected = store.toggle_selected(config.id, entity_id)
            info(f"{'Selected' if selected else 'Deselected'} {entity_id}")
        current = store.selected_entities(config.id)
    except SimpleHAError as exc:
        fail(exc)

    if not entity_ids:
        if current:
            print_table(["Entity"], [[e] for e in current], title="Selected")
        else:
            info("No entities selected; all controllable entities are shown.")
