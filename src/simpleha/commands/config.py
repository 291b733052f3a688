"""Config commands -- view and modify global settings.

Provides the ``simpleha config`` sub-command group for the user-wide
:class:`~simpleha.models.GlobalConfig`: default service, request timeout,
TLS verification, retries, and output format.
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError

from simpleha.commands.common import fail, option
from simpleha.exceptions import InvalidUsageError, SimpleHAError
from simpleha.output import format_response, info, success

config_app = typer.Typer(no_args_is_help=True)

_NULL_WORDS = ("", "none", "null")


def _coerce(current: Any, value: str, key: str) -> Any:
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes", "on")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            raise InvalidUsageError(f"Expected an integer for {key}, got: {value}") from None
    if current is None and value.lower() in _NULL_WORDS:
        return None
    return value


@config_app.command("show")
def config_show() -> None:
    """Show the settings file location and its values.

    Example::

        simpleha config show --json
    """
    from simpleha.config import get_config_dir, load_global_config

    try:
        config = load_global_config()
    except SimpleHAError as exc:
        fail(exc)
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Setting in dot notation, e.g. 'request.timeout'."),
    value: str = typer.Argument(help="New value; 'none' clears an optional setting."),
) -> None:
    """Change one setting.

    Example::

        simpleha config set default_service home
        simpleha config set request.verify_ssl false
    """
    from simpleha.config import load_global_config, save_global_config
    from simpleha.models import GlobalConfig

    try:
        data = load_global_config().model_dump(mode="json")
        *parents, leaf = key.split(".")
        target = data
        for part in parents:
            if not isinstance(target.get(part), dict):
                raise InvalidUsageError(f"Invalid config key: {key}")
            target = target[part]
        if leaf not in target:
            raise InvalidUsageError(f"Unknown config key: {key}")
        if leaf == "default_service" and value.lower() in _NULL_WORDS:
            target[leaf] = None
        else:
            target[leaf] = _coerce(target[leaf], value, key)
        try:
            new_config = GlobalConfig.model_validate(data)
        except ValidationError as exc:
            raise InvalidUsageError(f"Validation error: {exc}") from exc
        save_global_config(new_config)
    except SimpleHAError as exc:
        fail(exc)
    success(f"Set {key} = {target[leaf]}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Restore default settings. Asks first unless ``--force`` is given."""
    from simpleha.config import save_global_config
    from simpleha.models import GlobalConfig

    if not option(ctx, "force", False):
        if not typer.confirm("Reset all settings to defaults?"):
            info("Cancelled.")
            raise typer.Exit()
    save_global_config(GlobalConfig())
    success("Settings reset to defaults.")
