"""simpleha -- A command-line client for the Home Assistant REST API.

Users register one or more Home Assistant *services*, each reachable through
one or more *endpoints* (typically an internal LAN URL and an external one).
A service authenticates either with a shared long-lived access token or with
Home Assistant's OAuth2 authorization-code flow protected by PKCE, in which
case each endpoint holds its own access token.

Typical workflow::

    simpleha service add home --url http://homeassistant.local:8123 --oauth
    simpleha auth login home
    simpleha states

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic configuration models (services, endpoints, settings).
    entities: Pydantic models for entity states, custom tabs, logbook entries.
    config: XDG-aware storage of services, dashboard state and settings.
    registry: In-memory service collection with persistence and notifications.
    auth: PKCE, authorization URL, browser session, token exchange, orchestration.
    client: Home Assistant REST API client.
    transfer: Configuration import/export envelopes.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.3.0"
