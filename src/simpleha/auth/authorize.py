"""Authorization request construction for the Home Assistant login flow.

The client identifier and redirect URI are fixed for the application: Home
Assistant accepts any ``client_id`` that is a URL and trusts redirect URIs
registered for it, so these values are not user-configurable.
"""

from __future__ import annotations

from urllib.parse import urlencode, urlparse

from simpleha.exceptions import InvalidEndpointError

CLIENT_ID = "https://home-assistant.io/ios"
REDIRECT_URI = "homeassistant://auth-callback"
REDIRECT_SCHEME = "homeassistant"

AUTHORIZE_PATH = "/auth/authorize"
TOKEN_PATH = "/auth/token"


def _validated_base(base_url: str) -> str:
    base = base_url.strip().rstrip("/")
    parsed = urlparse(base)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidEndpointError(f"Not an absolute HTTP(S) URL: {base_url!r}")
    return base


def build_authorization_url(
    base_url: str,
    client_id: str,
    redirect_uri: str,
    state: str,
    code_challenge: str,
) -> str:
    """Build ``{base_url}/auth/authorize`` with the PKCE query parameters.

    Parameters are emitted in a fixed order: ``client_id``, ``redirect_uri``,
    ``state``, ``code_challenge``, ``code_challenge_method``.

    Example::

        >>> build_authorization_url(
        ...     "https://ha.example.com", "app-client",
        ...     "appscheme://auth-callback", "S1", "C1")
        'https://ha.example.com/auth/authorize?client_id=app-client&redirect_uri=appscheme%3A%2F%2Fauth-callback&state=S1&code_challenge=C1&code_challenge_method=S256'

    Raises:
        InvalidEndpointError: If *base_url* is not an absolute HTTP(S) URL.
    """
    base = _validated_base(base_url)
    query = urlencode(
        [
            ("client_id", client_id),
            ("redirect_uri", redirect_uri),
            ("state", state),
            ("code_challenge", code_challenge),
            ("code_challenge_method", "S256"),
        ]
    )
    return f"{base}{AUTHORIZE_PATH}?{query}"


def token_endpoint(base_url: str) -> str:
    """Return ``{base_url}/auth/token``.

    Raises:
        InvalidEndpointError: If *base_url* is not an absolute HTTP(S) URL.
    """
    return f"{_validated_base(base_url)}{TOKEN_PATH}"

