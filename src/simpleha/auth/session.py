"""Browser-delegated authentication session.

A :class:`BrowserAuthSession` hands the authorization URL to an
:class:`ExternalAuthPresenter` (the platform layer: a system browser, an
embedded web view, a test double) and classifies whatever comes back into a
:class:`RedirectResult`.

State machine::

    IDLE -> PRESENTING -> SUCCEEDED | CANCELLED | FAILED

Only one session may be presenting at a time. A second :meth:`start` while
one is in flight does not reach the presenter; it logs a warning and
returns ``None``.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import parse_qs, urlparse

from simpleha.exceptions import (
    AuthCancelledError,
    AuthError,
    AuthorizationDeniedError,
    MissingAuthorizationCodeError,
    SessionStartError,
)

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    IDLE = "idle"
    PRESENTING = "presenting"
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class RedirectResult:
    """Terminal outcome of one presented login surface.

    Exactly one of the three shapes is produced: ``SUCCEEDED`` with a
    ``code`` (and the ``state`` echoed by the server, if any), ``CANCELLED``,
    or ``FAILED`` with the :class:`~simpleha.exceptions.AuthError` that
    describes the failure.
    """

    status: SessionState
    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[AuthError] = None

    @classmethod
    def succeeded(cls, code: str, state: Optional[str] = None) -> RedirectResult:
        return cls(SessionState.SUCCEEDED, code=code, state=state)

    @classmethod
    def cancelled(cls) -> RedirectResult:
        return cls(SessionState.CANCELLED)

    @classmethod
    def failed(cls, error: AuthError) -> RedirectResult:
        return cls(SessionState.FAILED, error=error)

    def unwrap(self) -> str:
        """Return the authorization code, or raise the failure.

        Raises:
            AuthCancelledError: If the user dismissed the surface.
            AuthError: The recorded failure.
        """
        if self.status is SessionState.SUCCEEDED and self.code is not None:
            return self.code
        if self.status is SessionState.CANCELLED:
            raise AuthCancelledError("Login was cancelled")
        raise self.error or MissingAuthorizationCodeError("Login produced no result")


class ExternalAuthPresenter(Protocol):
    """Capability the platform layer implements to show a login surface.

    ``present`` blocks until the surface is torn down. It returns the full
    URL the browser was redirected to, or ``None`` when the user dismissed
    the surface without completing the login.

    Raises:
        SessionStartError: If no login surface could be launched.
    """

    def present(self, url: str, callback_scheme: str) -> Optional[str]: ...


def parse_redirect(url: str, expected_scheme: str) -> RedirectResult:
    """Classify the URL the login surface was redirected to.

    ``code`` present means success; ``error`` present means the server
    refused; anything else, including a foreign scheme, is a redirect
    without an authorization code.
    """
    parsed = urlparse(url.strip())
    if parsed.scheme.lower() != expected_scheme.lower():
        return RedirectResult.failed(
            MissingAuthorizationCodeError(
                f"Redirect used scheme {parsed.scheme!r}, expected {expected_scheme!r}"
            )
        )
    params = parse_qs(parsed.query)
    state = params.get("state", [None])[0]
    if params.get("code"):
        return RedirectResult.succeeded(params["code"][0], state=state)
    if params.get("error"):
        return RedirectResult.failed(AuthorizationDeniedError(params["error"][0]))
    return RedirectResult.failed(
        MissingAuthorizationCodeError("Redirect carried no authorization code")
    )


class BrowserAuthSession:
    """Presents one login surface at a time and reports its outcome.

    The session can be started again once the previous attempt has
    resolved; the presenting guard only rejects overlapping starts.
    """

    def __init__(self, presenter: ExternalAuthPresenter) -> None:
        self._presenter = presenter
        self._guard = threading.Lock()
        self._state = SessionState.IDLE

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_presenting(self) -> bool:
        return self._state is SessionState.PRESENTING

    def start(self, authorization_url: str, expected_scheme: str) -> Optional[RedirectResult]:
        """Present *authorization_url* and wait for the outcome.

        Returns:
            The :class:`RedirectResult`, or ``None`` when another session is
            already presenting (nothing is shown in that case).
        """
        if not self._guard.acquire(blocking=False):
            logger.warning("Login already in progress; ignoring duplicate session start")
            return None
        try:
            self._state = SessionState.PRESENTING
            logger.debug("Presenting login surface for %s", urlparse(authorization_url).netloc)
            result = self._present(authorization_url, expected_scheme)
            self._state = result.status
            logger.debug("Login surface resolved: %s", result.status.value)
            return result
        finally:
            if self._state is SessionState.PRESENTING:
                self._state = SessionState.FAILED
            self._guard.release()

    def _present(self, authorization_url: str, expected_scheme: str) -> RedirectResult:
        try:
            redirect = self._presenter.present(authorization_url, expected_scheme)
        except SessionStartError as exc:
            return RedirectResult.failed(exc)
        except Exception as exc:
            logger.warning("Login surface failed: %s", exc)
            failure = SessionStartError(f"Could not show the login page: {exc}")
            failure.__cause__ = exc
            return RedirectResult.failed(failure)
        if redirect is None:
            return RedirectResult.cancelled()
        return parse_redirect(redirect, expected_scheme)
