"""Choosing which entities a dashboard view shows."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from simpleha.entities import CustomTab, Entity
from simpleha.exceptions import ConfigError

ALL_TAB = "All"


def filter_entities(
    entities: Iterable[Entity],
    selected_ids: Sequence[str] = (),
    tabs: Sequence[CustomTab] = (),
    tab_name: Optional[str] = None,
) -> list[Entity]:
    """Return the entities a dashboard tab displays, sorted by friendly name.

    A non-empty *selected_ids* narrows the pool to those entities first.
    Then a named custom tab keeps only its own entity ids, while the ``All``
    tab (or no tab) keeps controllable entities only.

    Raises:
        ConfigError: *tab_name* names no tab in *tabs*.
    """
    pool = list(entities)
    if selected_ids:
        wanted = set(selected_ids)
        pool = [entity for entity in pool if entity.entity_id in wanted]

    if tab_name is None or tab_name.lower() == ALL_TAB.lower():
        pool = [entity for entity in pool if entity.is_controllable]
    else:
        tab = find_tab(tabs, tab_name)
        members = set(tab.entity_ids)
        pool = [entity for entity in pool if entity.entity_id in members]

    return sorted(pool, key=lambda entity: entity.friendly_name.lower())


def find_tab(tabs: Sequence[CustomTab], name: str) -> CustomTab:
    for tab in tabs:
        if tab.name.lower() == name.lower():
            return tab
    raise ConfigError(f"Tab '{name}' not found")
