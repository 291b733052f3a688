"""Export and import commands for service configurations."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from simpleha.commands.common import fail, open_registry, option, select_service
from simpleha.exceptions import ConfigError, InvalidUsageError, SimpleHAError
from simpleha.output import info, print_data, success, warning


def export_command(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Service to export (default: current)."),
    all_services: bool = typer.Option(False, "--all", "-a", help="Export every service."),
    output_path: Optional[Path] = typer.Option(
        None, "--output", "-o", help="File or directory to write; '-' for stdout."
    ),
) -> None:
    """Export services as a versioned JSON file.

    Exported files contain access tokens; keep them private.

    Example::

        simpleha export home -o ~/backups/
        simpleha export --all -o -
    """
    from simpleha.config import write_private_file
    from simpleha.transfer import (
        batch_export_file_name,
        export_configuration,
        export_configurations,
        export_file_name,
    )

    try:
        registry = open_registry()
        if all_services:
            if name is not None:
                raise InvalidUsageError("Give a service name or --all, not both")
            configs = registry.configurations
            if not configs:
                raise ConfigError("No services configured")
            text = export_configurations(configs)
            default_name = batch_export_file_name()
        else:
            config = select_service(ctx, registry, name)
            text = export_configuration(config)
            default_name = export_file_name(config.name)
    except SimpleHAError as exc:
        fail(exc)

    if output_path is not None and str(output_path) == "-":
        print_data(text.rstrip("\n"))
        return

    target = output_path or Path.cwd()
    if target.is_dir():
        target = target / default_name
    if target.exists() and not option(ctx, "force", False):
        if not typer.confirm(f"{target} exists. Overwrite?"):
            info("Cancelled.")
            raise typer.Exit()
    write_private_file(target, text)
    success(f"Exported to {target}")
    warning("The file contains access tokens.")


def import_command(
    ctx: typer.Context,
    path: Path = typer.Argument(help="Exported JSON file.", exists=True, dir_okay=False),
    activate: bool = typer.Option(False, "--activate", help="Make the first imported service active."),
) -> None:
    """Import services from an export file.

    Services whose id already exists are replaced; others are added. Both
    single and batch export files are accepted.
    """
    from simpleha.transfer import import_configurations

    try:
        imported = import_configurations(path.read_bytes())
        registry = open_registry()
        existing = {config.id for config in registry.configurations}
        for config in imported:
            verb = "Replaced" if config.id in existing else "Added"
            registry.upsert(config)
            info(f"{verb} {config.name}")
        if activate and imported:
            registry.set_active(imported[0].id)
    except SimpleHAError as exc:
        fail(exc)
    success(f"Imported {len(imported)} service(s) from {path.name}.")
