"""Typer application and CLI entry point for simpleha.

This module builds the root Typer application, registers the command groups
from :mod:`simpleha.commands`, and provides :func:`main`, the console-script
entry point declared in ``pyproject.toml``. Unhandled
:class:`~simpleha.exceptions.SimpleHAError` instances exit with their
``exit_code``; anything else is written to a crash log under the data
directory.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from simpleha import __version__
from simpleha.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="simpleha",
    help="Control Home Assistant from the terminal.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"simpleha {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    service: Optional[str] = typer.Option(
        None, "--service", "-s", help="Service name to use (overrides the active one)."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~simpleha.output.OutputManager`, routes the
    ``simpleha`` logger through Rich, and stores the shared options in
    ``ctx.obj`` for sub-commands.
    """
    from simpleha.config import load_global_config
    from simpleha.exceptions import ConfigError
    from simpleha.output import OutputFormat, OutputManager, configure_logging, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        try:
            fmt = OutputFormat(load_global_config().output.format)
        except (ConfigError, ValueError):
            fmt = OutputFormat.AUTO

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["service"] = service
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #

from simpleha.commands.auth import auth_app  # noqa: E402
from simpleha.commands.config import config_app  # noqa: E402
from simpleha.commands.dashboard import select_command, tabs_app  # noqa: E402
from simpleha.commands.entities import (  # noqa: E402
    brightness_command,
    call_command,
    climate_app,
    history_command,
    logbook_command,
    off_command,
    on_command,
    state_command,
    states_command,
    toggle_command,
)
from simpleha.commands.service import service_app  # noqa: E402
from simpleha.commands.transfer import export_command, import_command  # noqa: E402

app.add_typer(service_app, name="service", help="Manage Home Assistant services.")
app.add_typer(auth_app, name="auth", help="Log in and inspect tokens.")
app.add_typer(tabs_app, name="tabs", help="Manage custom dashboard tabs.")
app.add_typer(climate_app, name="climate", help="Control thermostats.")
app.add_typer(config_app, name="config", help="Global settings.")

app.command("states")(states_command)
app.command("state")(state_command)
app.command("toggle")(toggle_command)
app.command("on")(on_command)
app.command("off")(off_command)
app.command("brightness")(brightness_command)
app.command("call")(call_command)
app.command("history")(history_command)
app.command("logbook")(logbook_command)
app.command("select")(select_command)
app.command("export")(export_command)
app.command("import")(import_command)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log() -> str:
    """Write the current traceback to the data directory and return its path."""
    from simpleha.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"
    log_path.write_text(traceback.format_exc(), encoding="utf-8")
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``simpleha`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)
    except Exception as exc:
        from simpleha.exceptions import SimpleHAError
        from simpleha.output import error

        if isinstance(exc, SimpleHAError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log()
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
