"""Auth commands -- log in to services and inspect their tokens.

Provides the ``simpleha auth`` sub-command group. ``login`` runs the Home
Assistant browser login (authorization code with PKCE) once per distinct
endpoint URL of an OAuth service and stores the tokens only when every
round succeeded.

Typical workflow::

    simpleha auth login home            # log in every endpoint
    simpleha auth login home -e External
    simpleha auth status
"""

from __future__ import annotations

from typing import Optional

import typer

from simpleha.commands.common import fail, open_registry, select_service
from simpleha.exceptions import InvalidUsageError, SimpleHAError
from simpleha.output import info, print_table, success, suggest

auth_app = typer.Typer(no_args_is_help=True)


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Service (default: current)."),
    endpoint: Optional[str] = typer.Option(
        None, "--endpoint", "-e", help="Only log in this endpoint (label or id)."
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the login URL instead of opening a browser."
    ),
) -> None:
    """Log in to an OAuth service through the browser.

    The login page opens in the system browser. After signing in, the
    browser is sent to a ``homeassistant://auth-callback`` address; paste
    that address back into the terminal to finish.

    Example::

        simpleha auth login home
        simpleha auth login home --endpoint External --no-browser
    """
    from simpleha.auth import AuthOrchestrator, BrowserPromptPresenter
    from simpleha.models import ConnectionEndpoint

    def announce(number: int, total: int, target: ConnectionEndpoint) -> None:
        if total > 1:
            info(f"Login {number} of {total}: {target.name} ({target.url})")
        else:
            info(f"Logging in to {target.name} ({target.url})")

    try:
        registry = open_registry()
        config = select_service(ctx, registry, name)
        orchestrator = AuthOrchestrator(
            BrowserPromptPresenter(open_browser=not no_browser),
            on_round=announce,
        )
        updated = registry.authenticate(config.id, orchestrator, endpoint_key=endpoint)
    except SimpleHAError as exc:
        fail(exc)

    logged_in = sum(1 for e in updated.endpoints if e.oauth_token)
    success(f'Logged in to "{updated.name}" ({logged_in} of {len(updated.endpoints)} endpoints).')


@auth_app.command("set-token")
def auth_set_token(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Service (default: current)."),
) -> None:
    """Replace the long-lived access token of a token-based service."""
    from simpleha.models import AuthMethod

    try:
        registry = open_registry()
        config = select_service(ctx, registry, name)
        if config.auth_method is not AuthMethod.TOKEN:
            raise InvalidUsageError(
                f'"{config.name}" uses browser login; run: simpleha auth login {config.name}'
            )
        token = typer.prompt("Long-lived access token", hide_input=True)
        registry.upsert(config.model_copy(update={"token": token.strip() or None}))
    except SimpleHAError as exc:
        fail(exc)
    success(f'Token updated for "{config.name}".')


@auth_app.command("logout")
def auth_logout(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Service (default: current)."),
) -> None:
    """Forget every stored browser-login token of a service."""
    try:
        registry = open_registry()
        config = select_service(ctx, registry, name)
        updated = config.model_copy(deep=True)
        for endpoint in updated.endpoints:
            endpoint.oauth_token = None
        registry.upsert(updated)
    except SimpleHAError as exc:
        fail(exc)
    success(f'Tokens cleared for "{config.name}".')


@auth_app.command("status")
def auth_status(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Service (default: current)."),
) -> None:
    """Show which endpoints of a service have a usable token."""
    from simpleha.models import AuthMethod

    try:
        config = select_service(ctx, open_registry(), name)
    except SimpleHAError as exc:
        fail(exc)

    current = config.effective_endpoint
    rows = []
    for endpoint in config.endpoints:
        if config.auth_method is AuthMethod.TOKEN:
            has_token = config.token is not None
        else:
            has_token = endpoint.oauth_token is not None
        rows.append(
            [
                "*" if endpoint.id == current.id else "",
                endpoint.name,
                endpoint.url,
                "yes" if has_token else "no",
            ]
        )
    print_table(["Current", "Endpoint", "URL", "Token"], rows, title=config.name)

    if config.effective_token is None:
        if config.auth_method is AuthMethod.OAUTH:
            suggest(f"Log in: simpleha auth login {config.name}")
        else:
            suggest(f"Set a token: simpleha auth set-token {config.name}")
