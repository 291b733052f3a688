"""Helpers shared by the command modules."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, NoReturn, Optional

import typer

from simpleha.exceptions import AuthCancelledError, SimpleHAError
from simpleha.output import error, info

if TYPE_CHECKING:
    from simpleha.models import ServiceConfiguration
    from simpleha.registry import ServiceRegistry


def fail(exc: SimpleHAError) -> NoReturn:
    """Report *exc* on stderr and exit with its code.

    A cancelled login is reported as a plain notice.
    """
    if isinstance(exc, AuthCancelledError):
        info("Login cancelled; nothing was changed.")
    else:
        error(str(exc))
    raise typer.Exit(code=exc.exit_code)


def option(ctx: typer.Context, name: str, default: Any = None) -> Any:
    """Read a global option stored by the root callback."""
    if ctx.obj is None:
        return default
    return ctx.obj.get(name, default)


def open_registry() -> ServiceRegistry:
    """Load the service registry from the default store."""
    from simpleha.config import ConfigurationStore
    from simpleha.registry import ServiceRegistry

    return ServiceRegistry(ConfigurationStore())


def select_service(
    ctx: typer.Context,
    registry: ServiceRegistry,
    name: Optional[str] = None,
) -> ServiceConfiguration:
    """Resolve the service a command acts on.

    An explicit *name* argument wins over ``--service`` and the rest of the
    precedence chain in :func:`~simpleha.config.resolve_service`.
    """
    from simpleha.config import load_global_config, resolve_service

    cli_service = name if name is not None else option(ctx, "service")
    return resolve_service(registry.configurations, cli_service, load_global_config())
