"""Authorization-code-for-token exchange against ``/auth/token``."""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from simpleha.exceptions import HttpStatusError, MalformedResponseError, TransportError

logger = logging.getLogger(__name__)

TOKEN_TIMEOUT = 30.0
"""Seconds allowed for the whole token request."""


class TokenGrant(BaseModel):
    """Successful token response.

    Only ``access_token`` is used. Tokens are treated as non-expiring, so
    ``refresh_token`` and ``expires_in`` are kept on the model for callers
    that want them but are never stored.
    """

    model_config = ConfigDict(extra="allow", str_strip_whitespace=True)

    access_token: str = Field(min_length=1)
    token_type: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[float] = None


def exchange_code_for_token(
    token_endpoint: str,
    code: str,
    client_id: str,
    redirect_uri: str,
    code_verifier: str,
    *,
    timeout: float = TOKEN_TIMEOUT,
    client: Optional[httpx.Client] = None,
) -> TokenGrant:
    """POST the authorization code and PKCE verifier; return the grant.

    Args:
        token_endpoint: Absolute ``.../auth/token`` URL.
        code: Authorization code from the redirect.
        client_id: The application's OAuth client identifier.
        redirect_uri: Redirect URI used in the authorization request.
        code_verifier: Verifier whose challenge was sent with the request.
        timeout: Request timeout in seconds.
        client: Optional shared :class:`httpx.Client`; a one-off request is
            made when omitted.

    Raises:
        TransportError: Network failure or timeout.
        HttpStatusError: Any status other than 200.
        MalformedResponseError: Body is not JSON or has no ``access_token``.
    """
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "code_verifier": code_verifier,
    }
    headers = {"Accept": "application/json"}
    try:
        if client is not None:
            response = client.post(token_endpoint, data=data, headers=headers, timeout=timeout)
        else:
            response = httpx.post(token_endpoint, data=data, headers=headers, timeout=timeout)
    except httpx.HTTPError as exc:
        raise TransportError(f"Token exchange failed: {exc}") from exc

    if response.status_code != 200:
        logger.debug("Token endpoint answered %s: %s", response.status_code, response.text[:200])
        raise HttpStatusError(response.status_code)

    try:
        payload = response.json()
    except ValueError as exc:
        raise MalformedResponseError("Token response is not valid JSON") from exc
    if not isinstance(payload, dict) or "access_token" not in payload:
        raise MalformedResponseError("Token response missing 'access_token' field")
    try:
        grant = TokenGrant.model_validate(payload)
    except ValidationError as exc:
        raise MalformedResponseError(f"Token response is malformed: {exc}") from exc

    logger.debug("Received access token %s...", grant.access_token[:6])
    return grant
