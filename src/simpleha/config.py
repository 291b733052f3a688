"""Configuration storage with XDG paths, atomic writes, and service resolution.

This module handles all persistent state for simpleha:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.simpleha/`` on macOS and Windows. ``SIMPLEHA_CONFIG_DIR`` overrides
  the config directory outright. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Services** -- :class:`ConfigurationStore`, the blocking persistence
  collaborator. It always replaces the whole collection; there are no
  partial updates.
* **Dashboard state** -- :class:`DashboardStore` keeps the selected entity
  ids and custom tabs of each service.
* **Settings** -- a single :class:`~simpleha.models.GlobalConfig` JSON file.
* **Service resolution** -- :func:`resolve_service` picks the service a
  command talks to from CLI flag, environment, and stored state.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`), with ``0o600`` permissions because service files
contain access tokens.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional, Protocol, Sequence

from pydantic import BaseModel, Field, ValidationError

from simpleha.entities import CustomTab
from simpleha.exceptions import ConfigError
from simpleha.models import GlobalConfig, ServiceConfiguration

logger = logging.getLogger(__name__)

_APP_NAME = "simpleha"
_SERVICES_FILENAME = "services.json"
_DASHBOARD_FILENAME = "dashboard.json"
_SETTINGS_FILENAME = "settings.json"
_LEGACY_FILENAME = "default_config.json"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    ``$SIMPLEHA_CONFIG_DIR`` wins when set. Otherwise on Linux/BSD:
    ``$XDG_CONFIG_HOME/simpleha/`` (default ``~/.config/simpleha/``), and on
    macOS/Windows: ``~/.simpleha/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    override = os.environ.get("SIMPLEHA_CONFIG_DIR", "")
    if override:
        path = Path(override).expanduser()
    elif _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/simpleha/`` (default
    ``~/.local/share/simpleha/``). On macOS/Windows: ``~/.simpleha/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str, mode: int = 0o600) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems, and its permissions
    are set to *mode* before any content is written. On any failure the temp
    file is cleaned up and the original file is left untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def write_private_file(path: Path, data: str) -> None:
    """Atomically write *data* to *path*, readable by the owner only."""
    _atomic_write(path, data)


def _read_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc


def _dump(model: BaseModel) -> str:
    return json.dumps(model.model_dump(mode="json"), indent=2) + "\n"


# --- Services ---


class ConfigurationPersistence(Protocol):
    """Blocking store for the whole service collection."""

    def load(self) -> list[ServiceConfiguration]: ...

    def save(self, configurations: Sequence[ServiceConfiguration]) -> None: ...


class _ServicesFile(BaseModel):
    configurations: list[ServiceConfiguration] = Field(default_factory=list)


class ConfigurationStore:
    """File-backed :class:`ConfigurationPersistence` (``services.json``).

    On first load, when no services file exists but a legacy
    ``default_config.json`` does, the legacy single service is converted and
    written out as the initial collection.

    Args:
        path: Explicit file path. Defaults to ``<config_dir>/services.json``.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or get_config_dir() / _SERVICES_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[ServiceConfiguration]:
        """Load every stored service.

        Returns:
            The stored services in their saved order; an empty list when
            nothing has been saved yet.

        Raises:
            ConfigError: If the file is unreadable, not JSON, or fails
                validation.
        """
        if not self._path.is_file():
            return self._seed_from_legacy()
        data = _read_json(self._path)
        try:
            return _ServicesFile.model_validate(data).configurations
        except ValidationError as exc:
            raise ConfigError(f"Invalid services file at {self._path}: {exc}") from exc

    def save(self, configurations: Sequence[ServiceConfiguration]) -> None:
        """Replace the stored collection with *configurations*."""
        _atomic_write(self._path, _dump(_ServicesFile(configurations=list(configurations))))
        logger.debug("Saved %d service(s) to %s", len(configurations), self._path)

    def _seed_from_legacy(self) -> list[ServiceConfiguration]:
        legacy = self._path.parent / _LEGACY_FILENAME
        if not legacy.is_file():
            return []
        from simpleha.transfer import legacy_configuration

        data = _read_json(legacy)
        if not isinstance(data, dict):
            raise ConfigError(f"Invalid legacy configuration at {legacy}")
        configurations = [legacy_configuration(data)]
        self.save(configurations)
        logger.info("Imported legacy configuration from %s", legacy)
        return configurations


# --- Dashboard state ---


class DashboardState(BaseModel):
    """Per-service dashboard state: selected entities and custom tabs."""

    selected: dict[str, list[str]] = Field(default_factory=dict)
    tabs: list[CustomTab] = Field(default_factory=list)


class DashboardStore:
    """File-backed store of :class:`DashboardState` (``dashboard.json``).

    Every mutating method writes the whole file before returning.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or get_config_dir() / _DASHBOARD_FILENAME

    def load(self) -> DashboardState:
        if not self._path.is_file():
            return DashboardState()
        data = _read_json(self._path)
        try:
            return DashboardState.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid dashboard file at {self._path}: {exc}") from exc

    def save(self, state: DashboardState) -> None:
        _atomic_write(self._path, _dump(state), mode=0o644)

    def selected_entities(self, configuration_id: str) -> list[str]:
        return list(self.load().selected.get(configuration_id, []))

    def set_selected_entities(self, configuration_id: str, entity_ids: Sequence[str]) -> None:
        state = self.load()
        if entity_ids:
            state.selected[configuration_id] = list(dict.fromkeys(entity_ids))
        else:
            state.selected.pop(configuration_id, None)
        self.save(state)

    def toggle_selected(self, configuration_id: str, entity_id: str) -> bool:
        """Flip selection of *entity_id*; return True when it is now selected."""
        selected = self.selected_entities(configuration_id)
        if entity_id in selected:
            selected.remove(entity_id)
            now_selected = False
        else:
            selected.append(entity_id)
            now_selected = True
        self.set_selected_entities(configuration_id, selected)
        return now_selected

    def tabs(self, configuration_id: str) -> list[CustomTab]:
        """Return the service's tabs ordered by ``display_order``."""
        tabs = [tab for tab in self.load().tabs if tab.configuration_id == configuration_id]
        return sorted(tabs, key=lambda tab: tab.display_order)

    def add_tab(self, tab: CustomTab) -> CustomTab:
        state = self.load()
        existing = [t for t in state.tabs if t.configuration_id == tab.configuration_id]
        if any(t.name.lower() == tab.name.lower() for t in existing):
            raise ConfigError(f"Tab '{tab.name}' already exists")
        tab = tab.model_copy(update={"display_order": len(existing)})
        state.tabs.append(tab)
        self.save(state)
        return tab

    def update_tab(self, tab: CustomTab) -> None:
        state = self.load()
        for index, current in enumerate(state.tabs):
            if current.id == tab.id:
                state.tabs[index] = tab
                self.save(state)
                return
        raise ConfigError(f"Tab '{tab.name}' not found")

    def remove_tab(self, configuration_id: str, name: str) -> None:
        state = self.load()
        remaining = [
            tab
            for tab in state.tabs
            if not (tab.configuration_id == configuration_id and tab.name.lower() == name.lower())
        ]
        if len(remaining) == len(state.tabs):
            raise ConfigError(f"Tab '{name}' not found")
        state.tabs = remaining
        self.save(state)

    def forget(self, configuration_id: str) -> None:
        """Drop every selection and tab belonging to a deleted service."""
        state = self.load()
        state.selected.pop(configuration_id, None)
        state.tabs = [tab for tab in state.tabs if tab.configuration_id != configuration_id]
        self.save(state)


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global settings file."""
    return get_config_dir() / _SETTINGS_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global settings from the config directory.

    Returns:
        The deserialised :class:`~simpleha.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global settings atomically to disk."""
    _atomic_write(_global_config_path(), _dump(config), mode=0o644)


# --- Service resolution ---


def find_service(
    configurations: Sequence[ServiceConfiguration], key: str
) -> ServiceConfiguration:
    """Find a service by id or case-insensitive name.

    Raises:
        ConfigError: If nothing matches.
    """
    for config in configurations:
        if config.id == key:
            return config
    for config in configurations:
        if config.name.lower() == key.lower():
            return config
    raise ConfigError(f"Service '{key}' not found")


def resolve_service(
    configurations: Sequence[ServiceConfiguration],
    cli_service: Optional[str] = None,
    global_config: Optional[GlobalConfig] = None,
) -> ServiceConfiguration:
    """Pick the service a command should talk to.

    Precedence (high to low):
        1. CLI flag (``--service``)
        2. Environment variable ``SIMPLEHA_SERVICE``
        3. The service flagged ``is_active``
        4. ``GlobalConfig.default_service``
        5. The only configured service

    Raises:
        ConfigError: If no service is configured, a named service does not
            exist, or several services exist and none is selected.
    """
    if not configurations:
        raise ConfigError("No services configured; add one with 'simpleha service add'")

    if cli_service is not None:
        return find_service(configurations, cli_service)
    env_service = os.environ.get("SIMPLEHA_SERVICE")
    if env_service:
        return find_service(configurations, env_service)
    for config in configurations:
        if config.is_active:
            return config
    if global_config is not None and global_config.default_service:
        return find_service(configurations, global_config.default_service)
    if len(configurations) == 1:
        return configurations[0]
    raise ConfigError(
        "Several services are configured and none is active; "
        "run 'simpleha service activate NAME' or pass --service"
    )
