"""Home Assistant OAuth2 login (authorization code + PKCE) for simpleha.

The main entry points are:

- :class:`AuthOrchestrator` -- runs login rounds for a service and returns an
  updated copy carrying the new per-endpoint tokens.
- :class:`BrowserAuthSession` -- one-at-a-time presentation of the login
  page through an :class:`ExternalAuthPresenter`.
- :func:`exchange_code_for_token` -- the ``/auth/token`` request.
- :mod:`~simpleha.auth.pkce` and :mod:`~simpleha.auth.authorize` -- the
  pure building blocks.

Typical usage::

    from simpleha.auth import AuthOrchestrator, BrowserPromptPresenter

    orchestrator = AuthOrchestrator(BrowserPromptPresenter())
    service = orchestrator.authenticate_configuration(service)
"""

from simpleha.auth.authorize import CLIENT_ID, REDIRECT_URI, build_authorization_url
from simpleha.auth.orchestrator import AuthOrchestrator
from simpleha.auth.presenters import BrowserPromptPresenter, CallbackPresenter
from simpleha.auth.session import (
    BrowserAuthSession,
    ExternalAuthPresenter,
    RedirectResult,
    SessionState,
)
from simpleha.auth.token import TokenGrant, exchange_code_for_token

__all__ = [
    "AuthOrchestrator",
    "BrowserAuthSession",
    "BrowserPromptPresenter",
    "CLIENT_ID",
    "CallbackPresenter",
    "ExternalAuthPresenter",
    "REDIRECT_URI",
    "RedirectResult",
    "SessionState",
    "TokenGrant",
    "build_authorization_url",
    "exchange_code_for_token",
]
