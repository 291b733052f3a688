"""Tests for simpleha.config -- paths, atomic writes, stores, service resolution."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from simpleha.config import (
    ConfigurationStore,
    DashboardStore,
    _atomic_write,
    find_service,
    get_config_dir,
    get_data_dir,
    load_global_config,
    resolve_service,
    save_global_config,
)
from simpleha.entities import CustomTab
from simpleha.exceptions import ConfigError
from simpleha.models import GlobalConfig, RequestConfig, ServiceConfiguration


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _service(name: str, active: bool = False) -> ServiceConfiguration:
    config = ServiceConfiguration.with_token(name, f"{name}-token", f"http://{name}.local:8123")
    config.is_active = active
    return config


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


class TestPaths:
    def test_config_dir_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SIMPLEHA_CONFIG_DIR", str(tmp_path / "override"))
        result = get_config_dir()
        assert result == tmp_path / "override"
        assert result.is_dir()

    def test_config_dir_xdg(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SIMPLEHA_CONFIG_DIR", raising=False)
        monkeypatch.setattr("simpleha.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        assert get_config_dir() == tmp_path / "xdg" / "simpleha"

    def test_config_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SIMPLEHA_CONFIG_DIR", raising=False)
        monkeypatch.setattr("simpleha.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_config_dir() == tmp_path / ".simpleha"

    def test_data_dir_xdg(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("simpleha.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
        assert get_data_dir() == tmp_path / "data" / "simpleha"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_writes_with_private_mode(self, tmp_path: Path) -> None:
        target = tmp_path / "sub" / "file.json"
        _atomic_write(target, "{}")
        assert target.read_text() == "{}"
        if os.name == "posix":
            assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_failure_keeps_original(self, tmp_path: Path) -> None:
        target = tmp_path / "file.json"
        target.write_text("original")
        with patch("simpleha.config.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                _atomic_write(target, "new")
        assert target.read_text() == "original"
        assert [p.name for p in tmp_path.iterdir()] == ["file.json"]


# ---------------------------------------------------------------------------
# ConfigurationStore
# ---------------------------------------------------------------------------


class TestConfigurationStore:
    def test_empty(self, isolated_config: Path) -> None:
        assert ConfigurationStore().load() == []

    def test_save_and_load(self, isolated_config: Path) -> None:
        store = ConfigurationStore()
        configs = [_service("home", active=True), _service("cabin")]
        store.save(configs)

        assert store.path == isolated_config / "services.json"
        assert ConfigurationStore().load() == configs
        data = json.loads(store.path.read_text())
        assert [c["name"] for c in data["configurations"]] == ["home", "cabin"]

    def test_invalid_json(self, isolated_config: Path) -> None:
        (isolated_config / "services.json").write_text("{nope")
        with pytest.raises(ConfigError, match="Cannot read"):
            ConfigurationStore().load()

    def test_invalid_shape(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "services.json", {"configurations": [{"name": "x"}]})
        with pytest.raises(ConfigError, match="Invalid services file"):
            ConfigurationStore().load()

    def test_seeds_from_legacy_file(self, isolated_config: Path) -> None:
        _write_json(
            isolated_config / "default_config.json",
            {
                "name": "Old Home",
                "internalUrl": "http://ha.local:8123",
                "externalUrl": "https://ha.example.com",
                "apiToken": "legacy-token",
                "isActive": True,
            },
        )
        store = ConfigurationStore()

        configs = store.load()

        assert len(configs) == 1
        assert configs[0].name == "Old Home"
        assert configs[0].effective_token == "legacy-token"
        assert [e.url for e in configs[0].endpoints] == [
            "http://ha.local:8123",
            "https://ha.example.com",
        ]
        assert store.path.is_file()


# ---------------------------------------------------------------------------
# DashboardStore
# ---------------------------------------------------------------------------


class TestDashboardStore:
    def test_toggle_selection(self, isolated_config: Path) -> None:
        store = DashboardStore()
        assert store.toggle_selected("C1", "light.a") is True
        assert store.toggle_selected("C1", "light.b") is True
        assert store.toggle_selected("C1", "light.a") is False
        assert store.selected_entities("C1") == ["light.b"]
        assert store.selected_entities("C2") == []

    def test_tabs_are_ordered_and_unique(self, isolated_config: Path) -> None:
        store = DashboardStore()
        store.add_tab(CustomTab(name="Upstairs", configuration_id="C1"))
        store.add_tab(CustomTab(name="Garden", configuration_id="C1"))
        store.add_tab(CustomTab(name="Other", configuration_id="C2"))

        assert [(t.name, t.display_order) for t in store.tabs("C1")] == [
            ("Upstairs", 0),
            ("Garden", 1),
        ]
        with pytest.raises(ConfigError, match="already exists"):
            store.add_tab(CustomTab(name="garden", configuration_id="C1"))

    def test_update_and_remove_tab(self, isolated_config: Path) -> None:
        store = DashboardStore()
        tab = store.add_tab(CustomTab(name="Upstairs", configuration_id="C1"))
        store.update_tab(tab.model_copy(update={"entity_ids": ["light.a"]}))
        assert store.tabs("C1")[0].entity_ids == ["light.a"]

        store.remove_tab("C1", "UPSTAIRS")
        assert store.tabs("C1") == []
        with pytest.raises(ConfigError):
            store.remove_tab("C1", "Upstairs")

    def test_forget(self, isolated_config: Path) -> None:
        store = DashboardStore()
        store.toggle_selected("C1", "light.a")
        store.add_tab(CustomTab(name="Tab", configuration_id="C1"))
        store.add_tab(CustomTab(name="Tab", configuration_id="C2"))

        store.forget("C1")

        assert store.selected_entities("C1") == []
        assert store.tabs("C1") == []
        assert len(store.tabs("C2")) == 1


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_default_when_missing(self, isolated_config: Path) -> None:
        assert load_global_config() == GlobalConfig()

    def test_round_trip(self, isolated_config: Path) -> None:
        config = GlobalConfig(default_service="home", request=RequestConfig(timeout=5))
        save_global_config(config)
        assert load_global_config() == config

    def test_invalid(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "settings.json", {"request": {"timeout": "soon"}})
        with pytest.raises(ConfigError):
            load_global_config()


# ---------------------------------------------------------------------------
# Service resolution
# ---------------------------------------------------------------------------


class TestResolveService:
    def test_no_services(self) -> None:
        with pytest.raises(ConfigError, match="No services"):
            resolve_service([])

    def test_cli_flag_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SIMPLEHA_SERVICE", "cabin")
        configs = [_service("home", active=True), _service("cabin"), _service("boat")]
        assert resolve_service(configs, "boat").name == "boat"

    def test_env_beats_active(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SIMPLEHA_SERVICE", "cabin")
        configs = [_service("home", active=True), _service("cabin")]
        assert resolve_service(configs).name == "cabin"

    def test_active_beats_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SIMPLEHA_SERVICE", raising=False)
        configs = [_service("home"), _service("cabin", active=True)]
        assert resolve_service(configs, global_config=GlobalConfig(default_service="home")).name == "cabin"

    def test_default_service(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SIMPLEHA_SERVICE", raising=False)
        configs = [_service("home"), _service("cabin")]
        assert resolve_service(configs, global_config=GlobalConfig(default_service="CABIN")).name == "cabin"

    def test_single_service(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SIMPLEHA_SERVICE", raising=False)
        assert resolve_service([_service("home")]).name == "home"

    def test_ambiguous(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SIMPLEHA_SERVICE", raising=False)
        with pytest.raises(ConfigError, match="none is active"):
            resolve_service([_service("home"), _service("cabin")])

    def test_find_by_id(self) -> None:
        configs = [_service("home"), _service("cabin")]
        assert find_service(configs, configs[1].id) is configs[1]
        with pytest.raises(ConfigError, match="not found"):
            find_service(configs, "boat")
