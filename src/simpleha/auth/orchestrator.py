"""Drive PKCE login rounds and write the resulting tokens into a service.

One *round* is: fresh :class:`~simpleha.auth.pkce.PKCESession`, build the
authorization URL, present it through the session, exchange the returned
code for an access token.

:meth:`AuthOrchestrator.authenticate_configuration` runs one round per
distinct base URL among the service's endpoints, in endpoint order, and gives
every endpoint the token of the round for its URL. Endpoints that share a
host share a login; different hosts keep separate browser cookies and so
need separate logins.

The service passed in is never mutated. The caller receives an updated deep
copy only when every round succeeded; if any round fails or is cancelled the
exception propagates and the partially filled copy is dropped, so whatever
was stored before stays as it was.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional
from urllib.parse import urlsplit

import httpx

from simpleha.auth.authorize import (
    CLIENT_ID,
    REDIRECT_URI,
    build_authorization_url,
    token_endpoint,
)
from simpleha.auth.pkce import PKCESession
from simpleha.auth.session import BrowserAuthSession, ExternalAuthPresenter
from simpleha.auth.token import TOKEN_TIMEOUT, exchange_code_for_token
from simpleha.exceptions import AuthorizationDeniedError, ConfigError, SessionStartError
from simpleha.models import AuthMethod, ConnectionEndpoint, ServiceConfiguration

logger = logging.getLogger(__name__)

RoundCallback = Callable[[int, int, ConnectionEndpoint], None]
"""``(round_number, total_rounds, endpoint)`` notification before each round."""

_DEFAULT_PORTS = {"http": 80, "https": 443}


def same_origin_key(url: str) -> str:
    """Normalise a base URL so equivalent spellings compare equal.

    Scheme and host are lower-cased, default ports are dropped, and any
    trailing slash on the path is ignored.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    try:
        port = parts.port
    except ValueError:
        port = None
    if port is None or port == _DEFAULT_PORTS.get(scheme):
        netloc = host
    else:
        netloc = f"{host}:{port}"
    return f"{scheme}://{netloc}{parts.path.rstrip('/')}"


class AuthOrchestrator:
    """Runs login rounds through a single :class:`BrowserAuthSession`.

    Args:
        presenter: Platform capability that shows the login page.
        client_id: OAuth client identifier sent to Home Assistant.
        redirect_uri: Redirect URI registered for *client_id*. Its scheme is
            the one the session waits for.
        http_client: Optional shared client for token requests.
        timeout: Token request timeout in seconds.
        on_round: Optional callback invoked before each round.
    """

    def __init__(
        self,
        presenter: ExternalAuthPresenter,
        *,
        client_id: str = CLIENT_ID,
        redirect_uri: str = REDIRECT_URI,
        http_client: Optional[httpx.Client] = None,
        timeout: float = TOKEN_TIMEOUT,
        on_round: Optional[RoundCallback] = None,
    ) -> None:
        self._session = BrowserAuthSession(presenter)
        self._client_id = client_id
        self._redirect_uri = redirect_uri
        self._redirect_scheme = urlsplit(redirect_uri).scheme
        self._http_client = http_client
        self._timeout = timeout
        self._on_round = on_round

    @property
    def session(self) -> BrowserAuthSession:
        return self._session

    def authenticate_single(self, endpoint: ConnectionEndpoint) -> str:
        """Run one full login round against *endpoint* and return its access token.

        Fresh PKCE material is generated on every call.

        Raises:
            InvalidEndpointError: The endpoint URL is not absolute HTTP(S).
            SessionStartError: The login surface could not be shown, or
                another round is still presenting.
            AuthCancelledError: The user dismissed the login surface.
            AuthorizationDeniedError: The server refused, or the echoed
                ``state`` does not match.
            MissingAuthorizationCodeError: The redirect had no code.
            TokenExchangeError: The code could not be exchanged.
        """
        pkce = PKCESession.create(endpoint)
        authorization_url = build_authorization_url(
            endpoint.url,
            self._client_id,
            self._redirect_uri,
            pkce.state,
            pkce.code_challenge,
        )
        token_url = token_endpoint(endpoint.url)

        result = self._session.start(authorization_url, self._redirect_scheme)
        if result is None:
            raise SessionStartError("Another login is already in progress")
        code = result.unwrap()
        if result.state is not None and result.state != pkce.state:
            logger.warning("Login redirect for %s carried a foreign state value", endpoint.url)
            raise AuthorizationDeniedError("state_mismatch")

        grant = exchange_code_for_token(
            token_url,
            code,
            self._client_id,
            self._redirect_uri,
            pkce.code_verifier,
            timeout=self._timeout,
            client=self._http_client,
        )
        logger.info("Logged in to %s", endpoint.url)
        return grant.access_token

    def authenticate_configuration(self, config: ServiceConfiguration) -> ServiceConfiguration:
        """Log in to every distinct base URL of an OAuth service.

        Returns:
            A deep copy of *config* with ``oauth_token`` set on every endpoint.

        Raises:
            ConfigError: *config* does not use :attr:`AuthMethod.OAUTH`.
            AuthError: The first failing round's error; see
                :meth:`authenticate_single`.
        """
        self._require_oauth(config)
        updated = config.model_copy(deep=True)
        rounds = _group_by_origin(updated.endpoints)

        tokens: dict[str, str] = {}
        for number, (key, endpoints) in enumerate(rounds.items(), start=1):
            first = endpoints[0]
            if self._on_round is not None:
                self._on_round(number, len(rounds), first)
            logger.debug("Login round %d/%d for %s", number, len(rounds), first.url)
            tokens[key] = self.authenticate_single(first)

        for key, endpoints in rounds.items():
            for endpoint in endpoints:
                endpoint.oauth_token = tokens[key]
        return updated

    def authenticate_endpoint(
        self, config: ServiceConfiguration, endpoint_key: str
    ) -> ServiceConfiguration:
        """Log in again for one endpoint (by id or label).

        Every endpoint sharing that endpoint's base URL receives the new
        token; other endpoints keep theirs.
        """
        self._require_oauth(config)
        target = config.endpoint(endpoint_key)
        if self._on_round is not None:
            self._on_round(1, 1, target)
        token = self.authenticate_single(target)

        updated = config.model_copy(deep=True)
        key = same_origin_key(target.url)
        for endpoint in updated.endpoints:
            if same_origin_key(endpoint.url) == key:
                endpoint.oauth_token = token
        return updated

    @staticmethod
    def _require_oauth(config: ServiceConfiguration) -> None:
        if config.auth_method is not AuthMethod.OAUTH:
            raise ConfigError(
                f"Service '{config.name}' uses a long-lived token; browser login does not apply"
            )


def _group_by_origin(
    endpoints: list[ConnectionEndpoint],
) -> dict[str, list[ConnectionEndpoint]]:
    groups: dict[str, list[ConnectionEndpoint]] = {}
    for endpoint in endpoints:
        groups.setdefault(same_origin_key(endpoint.url), []).append(endpoint)
    return groups
