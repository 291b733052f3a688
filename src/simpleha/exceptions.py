"""Exception hierarchy for simpleha.

All exceptions inherit from :class:`SimpleHAError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`simpleha.exit_codes`.
The top-level error handler in :func:`simpleha.app.main` catches
``SimpleHAError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    SimpleHAError (exit 1)
    +-- InvalidUsageError                 (exit 2)
    +-- ConfigError                       (exit 1)
    |   +-- ImportFormatError
    |   +-- UnsupportedVersionError
    +-- AuthError                         (exit 3)
    |   +-- InvalidEndpointError
    |   +-- PKCEError
    |   +-- SessionStartError
    |   +-- AuthorizationDeniedError
    |   +-- MissingAuthorizationCodeError
    |   +-- AuthCancelledError            (exit 130)
    |   +-- TokenExchangeError
    |   |   +-- TransportError
    |   |   +-- HttpStatusError
    |   |   +-- MalformedResponseError
    |   +-- MissingCredentialsError
    |   +-- UnauthorizedError
    +-- NotFoundError                     (exit 4)
    +-- ServerError                       (exit 5)
    +-- ConnectionError_                  (exit 6)
"""

from __future__ import annotations

from typing import Optional

from simpleha.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CANCELLED,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class SimpleHAError(Exception):
    """Base exception for all simpleha errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`simpleha.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SimpleHAError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(SimpleHAError):
    """Raised for configuration problems (unknown service, invalid JSON, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE


class ImportFormatError(ConfigError):
    """Raised when an import payload is neither a single nor a batch export envelope."""


class UnsupportedVersionError(ConfigError):
    """Raised when an import envelope declares a version other than ``1.0``."""

    def __init__(self, version: str):
        super().__init__(f"Unsupported export version: {version!r} (expected '1.0')")
        self.version = version


# --- Authentication ---


class AuthError(SimpleHAError):
    """Raised when authentication fails or no usable credential is available."""

    exit_code = EXIT_AUTH_FAILURE

    retryable: bool = False
    """Whether repeating the same attempt could reasonably succeed."""


class InvalidEndpointError(AuthError):
    """Raised when an endpoint base URL cannot be turned into an authorization URL."""


class PKCEError(AuthError):
    """Raised when the secure random source fails while generating PKCE material."""


class SessionStartError(AuthError):
    """Raised when the external authentication surface could not be launched."""

    retryable = True


class AuthorizationDeniedError(AuthError):
    """Raised when the server redirects back with an ``error`` parameter.

    Args:
        reason: The raw ``error`` value from the redirect (e.g. ``access_denied``).
    """

    def __init__(self, reason: str):
        super().__init__(f"Authorization denied: {reason}")
        self.reason = reason


class MissingAuthorizationCodeError(AuthError):
    """Raised when the redirect carries neither a ``code`` nor an ``error``."""


class AuthCancelledError(AuthError):
    """Raised when the user dismisses the login surface.

    Callers treat this as a non-error outcome: nothing is persisted and the
    CLI prints a notice rather than an error banner.
    """

    exit_code = EXIT_CANCELLED


class TokenExchangeError(AuthError):
    """Base class for failures of the authorization-code-for-token exchange."""


class TransportError(TokenExchangeError):
    """Raised when the token request fails at the network level or times out."""

    retryable = True


class HttpStatusError(TokenExchangeError):
    """Raised when the token endpoint answers with a status other than 200.

    Args:
        status: The HTTP status code that was returned.
    """

    def __init__(self, status: int, message: Optional[str] = None):
        super().__init__(message or f"Token endpoint returned HTTP {status}")
        self.status = status
        self.retryable = status >= 500


class MalformedResponseError(TokenExchangeError):
    """Raised when the token response is not JSON or lacks ``access_token``."""


class MissingCredentialsError(AuthError):
    """Raised when a service has no usable token for its effective endpoint."""


class UnauthorizedError(AuthError):
    """Raised when Home Assistant rejects the bearer token (HTTP 401/403)."""


# --- REST API ---


class NotFoundError(SimpleHAError):
    """Raised when Home Assistant returns HTTP 404 (unknown entity or service)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(SimpleHAError):
    """Raised when Home Assistant returns an HTTP 5xx or an unexpected 4xx status."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(SimpleHAError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR
