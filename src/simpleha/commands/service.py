"""Service commands -- manage configured Home Assistant services.

Provides the ``simpleha service`` sub-command group. A service has a name,
an auth method, and one or more endpoints; exactly one service can be the
active one that entity commands talk to by default.

Typical workflow::

    simpleha service add home --url http://ha.local:8123 --url https://ha.example.com --oauth
    simpleha service use home External
    simpleha service test
"""

from __future__ import annotations

import os
from typing import Any, Optional

import typer

from simpleha.commands.common import fail, open_registry, option, select_service
from simpleha.exceptions import InvalidUsageError, SimpleHAError
from simpleha.output import format_response, info, print_table, success, suggest

service_app = typer.Typer(no_args_is_help=True)


def _mask(token: Optional[str]) -> str:
    if not token:
        return "-"
    return f"{token[:4]}..." if len(token) > 8 else "****"


def _redacted(config: Any) -> dict[str, Any]:
    data = config.model_dump(mode="json")
    data["token"] = _mask(data.get("token")) if data.get("token") else None
    for endpoint in data["endpoints"]:
        if endpoint.get("oauth_token"):
            endpoint["oauth_token"] = _mask(endpoint["oauth_token"])
    data["effective_endpoint"] = config.effective_endpoint.name
    return data


@service_app.command("add")
def service_add(
    name: str = typer.Argument(help="Display name, e.g. 'Home'."),
    urls: list[str] = typer.Option(
        ..., "--url", "-u", help="Endpoint base URL; repeat for several endpoints."
    ),
    labels: Optional[list[str]] = typer.Option(
        None, "--label", "-l", help="Endpoint label, in --url order (default Internal/External)."
    ),
    oauth: bool = typer.Option(False, "--oauth", help="Authenticate by browser login."),
    token: Optional[str] = typer.Option(
        None, "--token", "-t", help="Long-lived access token."
    ),
    token_env: Optional[str] = typer.Option(
        None, "--token-env", help="Read the long-lived token from this environment variable."
    ),
    activate: bool = typer.Option(False, "--activate", help="Make this the active service."),
) -> None:
    """Add a service.

    Without ``--oauth``, ``--token`` or ``--token-env`` the long-lived
    access token is prompted for with hidden input.

    Example::

        simpleha service add home -u http://ha.local:8123 -u https://ha.example.com --oauth
        simpleha service add cabin -u https://cabin.example.com --token-env CABIN_TOKEN
    """
    from simpleha.models import AuthMethod, ConnectionEndpoint, ServiceConfiguration

    try:
        if oauth and (token or token_env):
            raise InvalidUsageError("--oauth cannot be combined with a token")
        if labels and len(labels) != len(urls):
            raise InvalidUsageError("Give one --label per --url")

        if token_env:
            token = os.environ.get(token_env)
            if not token:
                raise InvalidUsageError(f"Environment variable '{token_env}' is not set")
        if not oauth and not token:
            token = typer.prompt("Long-lived access token", hide_input=True)

        default_labels = ["Internal", "External"]
        endpoints = []
        for index, url in enumerate(urls):
            if labels:
                label = labels[index]
            elif index < len(default_labels) and len(urls) > 1:
                label = default_labels[index]
            elif len(urls) == 1:
                label = "Default"
            else:
                label = f"Endpoint {index + 1}"
            endpoints.append(ConnectionEndpoint(name=label, url=url))

        registry = open_registry()
        if any(c.name.lower() == name.lower() for c in registry.configurations):
            raise InvalidUsageError(f"A service named '{name}' already exists")

        config = ServiceConfiguration(
            name=name,
            auth_method=AuthMethod.OAUTH if oauth else AuthMethod.TOKEN,
            token=None if oauth else token,
            endpoints=endpoints,
            is_active=activate or len(registry) == 0,
        )
        registry.upsert(config)
    except SimpleHAError as exc:
        fail(exc)
    except ValueError as exc:
        fail(InvalidUsageError(str(exc)))

    success(f'Service "{name}" added with {len(endpoints)} endpoint(s).')
    if oauth:
        suggest(f"Log in: simpleha auth login {name}")


@service_app.command("list")
def service_list() -> None:
    """List configured services."""
    try:
        registry = open_registry()
    except SimpleHAError as exc:
        fail(exc)

    if not registry.configurations:
        info("No services configured.")
        suggest("Add one: simpleha service add NAME --url URL")
        return

    rows = []
    for config in registry.configurations:
        endpoint = config.effective_endpoint
        rows.append(
            [
                "*" if config.is_active else "",
                config.name,
                config.auth_method.value,
                f"{endpoint.name} ({endpoint.url})",
                str(len(config.endpoints)),
                "yes" if config.effective_token else "no",
            ]
        )
    print_table(
        ["Active", "Name", "Auth", "Endpoint", "Endpoints", "Token"],
        rows,
        title="Services",
    )


@service_app.command("show")
def service_show(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Service name (default: current)."),
) -> None:
    """Show one service with its tokens masked."""
    try:
        config = select_service(ctx, open_registry(), name)
    except SimpleHAError as exc:
        fail(exc)
    format_response(_redacted(config))


@service_app.command("remove")
def service_remove(
    ctx: typer.Context,
    name: str = typer.Argument(help="Service to remove."),
) -> None:
    """Remove a service together with its dashboard tabs and selection."""
    from simpleha.config import DashboardStore

    try:
        registry = open_registry()
        config = registry.get(name)
        if not option(ctx, "force", False):
            if not typer.confirm(f'Remove service "{config.name}"?'):
                info("Cancelled.")
                raise typer.Exit()
        registry.delete(config.id)
        DashboardStore().forget(config.id)
    except SimpleHAError as exc:
        fail(exc)
    success(f'Service "{config.name}" removed.')


@service_app.command("activate")
def service_activate(name: str = typer.Argument(help="Service to make active.")) -> None:
    """Make a service the active one."""
    try:
        config = open_registry().set_active(name)
    except SimpleHAError as exc:
        fail(exc)
    success(f'"{config.name}" is now the active service.')


@service_app.command("use")
def service_use(
    ctx: typer.Context,
    endpoint: str = typer.Argument(help="Endpoint label or id."),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Service (default: current)."),
) -> None:
    """Switch the endpoint a service connects through."""
    try:
        registry = open_registry()
        config = select_service(ctx, registry, name)
        config = registry.set_active_endpoint(config.id, endpoint)
    except SimpleHAError as exc:
        fail(exc)
    current = config.effective_endpoint
    success(f'"{config.name}" now uses {current.name} ({current.url}).')
    if config.effective_token is None:
        suggest(f"No token for this endpoint yet: simpleha auth login {config.name}")


@service_app.command("toggle")
def service_toggle(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Service (default: current)."),
) -> None:
    """Switch to the service's next endpoint, e.g. Internal to External."""
    try:
        registry = open_registry()
        config = registry.cycle_endpoint(select_service(ctx, registry, name).id)
    except SimpleHAError as exc:
        fail(exc)
    current = config.effective_endpoint
    success(f'"{config.name}" now uses {current.name} ({current.url}).')


@service_app.command("add-endpoint")
def service_add_endpoint(
    ctx: typer.Context,
    url: str = typer.Argument(help="Base URL of the new endpoint."),
    label: str = typer.Option(..., "--label", "-l", help="Endpoint label, e.g. 'VPN'."),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Service (default: current)."),
) -> None:
    """Add another endpoint to a service."""
    from simpleha.models import ConnectionEndpoint

    try:
        registry = open_registry()
        config = select_service(ctx, registry, name)
        updated = config.model_copy(deep=True)
        updated.endpoints = [*updated.endpoints, ConnectionEndpoint(name=label, url=url)]
        registry.upsert(updated)
    except SimpleHAError as exc:
        fail(exc)
    success(f'Endpoint "{label}" added to "{config.name}".')


@service_app.command("remove-endpoint")
def service_remove_endpoint(
    ctx: typer.Context,
    endpoint: str = typer.Argument(help="Endpoint label or id."),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Service (default: current)."),
) -> None:
    """Remove an endpoint from a service. The last endpoint cannot be removed."""
    try:
        registry = open_registry()
        config = select_service(ctx, registry, name)
        target = config.endpoint(endpoint)
        if len(config.endpoints) == 1:
            raise InvalidUsageError("A service needs at least one endpoint")
        updated = config.model_copy(deep=True)
        remaining = [e for e in updated.endpoints if e.id != target.id]
        active_id = updated.active_endpoint_id
        updated = updated.model_copy(
            update={
                "endpoints": remaining,
                "active_endpoint_id": None if active_id == target.id else active_id,
            }
        )
        registry.upsert(updated)
    except SimpleHAError as exc:
        fail(exc)
    success(f'Endpoint "{target.name}" removed from "{config.name}".')


@service_app.command("test")
def service_test(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Service (default: current)."),
) -> None:
    """Check that the service's current endpoint accepts its token."""
    from simpleha.client import HomeAssistantClient
    from simpleha.config import load_global_config

    try:
        config = select_service(ctx, open_registry(), name)
        with HomeAssistantClient(config, load_global_config().request) as client:
            message = client.test_connection()
    except SimpleHAError as exc:
        fail(exc)
    success(f'{config.name} ({config.effective_url}): {message}')
