"""The in-memory service collection and its persistence.

:class:`ServiceRegistry` holds the list of
:class:`~simpleha.models.ServiceConfiguration` objects. Every logical change
(upsert, delete, activation, endpoint switch, completed login) is followed by
exactly one full-collection write through the injected
:class:`~simpleha.config.ConfigurationPersistence` and then by a call to every
subscriber. Nothing here depends on a UI toolkit, so the registry and the
login flow run headless under test.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from simpleha.auth.orchestrator import AuthOrchestrator
from simpleha.config import ConfigurationPersistence, find_service
from simpleha.models import ServiceConfiguration

logger = logging.getLogger(__name__)

Listener = Callable[[list[ServiceConfiguration]], None]


class ServiceRegistry:
    """Mutable service collection backed by a persistence store.

    At most one service is ``is_active``. The invariant is restored on load
    (the first active service wins) and kept by :meth:`upsert` and
    :meth:`set_active`.

    Args:
        store: Persistence collaborator; :meth:`load` is called immediately.
    """

    def __init__(self, store: ConfigurationPersistence) -> None:
        self._store = store
        self._listeners: list[Listener] = []
        self._configurations = _single_active(store.load())

    # -- queries ------------------------------------------------------------

    @property
    def configurations(self) -> list[ServiceConfiguration]:
        return list(self._configurations)

    @property
    def active(self) -> Optional[ServiceConfiguration]:
        for config in self._configurations:
            if config.is_active:
                return config
        return None

    def get(self, key: str) -> ServiceConfiguration:
        """Return the service with id or name *key*.

        Raises:
            ConfigError: If none matches.
        """
        return find_service(self._configurations, key)

    def __len__(self) -> int:
        return len(self._configurations)

    # -- notifications --------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* with the new collection after every change.

        Returns:
            A function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self) -> None:
        self._store.save(self._configurations)
        snapshot = self.configurations
        for listener in list(self._listeners):
            listener(snapshot)

    # -- mutations ------------------------------------------------------------

    def upsert(self, config: ServiceConfiguration) -> ServiceConfiguration:
        """Insert *config*, or replace the stored service with the same id.

        If *config* is active every other service is deactivated.
        """
        replaced = False
        for index, current in enumerate(self._configurations):
            if current.id == config.id:
                self._configurations[index] = config
                replaced = True
                break
        if not replaced:
            self._configurations.append(config)
        if config.is_active:
            self._deactivate_others(config.id)
        logger.debug("%s service %s", "Updated" if replaced else "Added", config.name)
        self._commit()
        return config

    def delete(self, key: str) -> ServiceConfiguration:
        config = self.get(key)
        self._configurations = [c for c in self._configurations if c.id != config.id]
        self._commit()
        return config

    def set_active(self, key: str) -> ServiceConfiguration:
        """Make *key* the only active service."""
        config = self.get(key)
        config.is_active = True
        self._deactivate_others(config.id)
        self._commit()
        return config

    def set_active_endpoint(self, key: str, endpoint_key: str) -> ServiceConfiguration:
        """Point a service at one of its endpoints (by id or label)."""
        config = self.get(key)
        config.active_endpoint_id = config.endpoint(endpoint_key).id
        self._commit()
        return config

    def cycle_endpoint(self, key: str) -> ServiceConfiguration:
        """Switch a service to the endpoint after its current one, wrapping around."""
        config = self.get(key)
        ids = [endpoint.id for endpoint in config.endpoints]
        current = ids.index(config.effective_endpoint.id)
        config.active_endpoint_id = ids[(current + 1) % len(ids)]
        self._commit()
        return config

    def authenticate(
        self,
        key: str,
        orchestrator: AuthOrchestrator,
        endpoint_key: Optional[str] = None,
    ) -> ServiceConfiguration:
        """Log in a service and store the result.

        With *endpoint_key* only that endpoint (and any sharing its URL) is
        logged in again; otherwise every distinct URL gets a round. The
        collection is written once, after all rounds succeed. On any error
        nothing is written and the error propagates.
        """
        config = self.get(key)
        if endpoint_key is None:
            updated = orchestrator.authenticate_configuration(config)
        else:
            updated = orchestrator.authenticate_endpoint(config, endpoint_key)
        return self.upsert(updated)

    def _deactivate_others(self, active_id: str) -> None:
        for config in self._configurations:
            if config.id != active_id and config.is_active:
                config.is_active = False


def _single_active(configurations: list[ServiceConfiguration]) -> list[ServiceConfiguration]:
    seen_active = False
    for config in configurations:
        if config.is_active:
            if seen_active:
                config.is_active = False
            seen_active = True
    return configurations
