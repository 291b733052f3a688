"""PKCE (:rfc:`7636`) material for the authorization-code flow.

Every login attempt gets a fresh :class:`PKCESession`: a code verifier, its
S256 challenge, and an opaque ``state`` value. None of it is ever persisted
or reused across attempts.

All randomness comes from :mod:`secrets`. If the operating system cannot
supply secure random bytes, :class:`~simpleha.exceptions.PKCEError` is
raised and the attempt is aborted; there is no weaker fallback.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass

from simpleha.exceptions import PKCEError
from simpleha.models import ConnectionEndpoint

VERIFIER_BYTES = 32
"""Random bytes behind each verifier; encodes to 43 characters."""

STATE_LENGTH = 32
"""Length of the ``state`` anti-CSRF value."""


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_code_verifier() -> str:
    """Return a new base64url code verifier (no padding, 43 characters).

    Raises:
        PKCEError: If the secure random source is unavailable.
    """
    try:
        raw = secrets.token_bytes(VERIFIER_BYTES)
    except (OSError, NotImplementedError) as exc:
        raise PKCEError(f"Secure random source unavailable: {exc}") from exc
    return _b64url(raw)


def derive_code_challenge(verifier: str) -> str:
    """Return ``BASE64URL(SHA256(verifier))`` without padding."""
    return _b64url(hashlib.sha256(verifier.encode("utf-8")).digest())


def generate_opaque_token(length: int = STATE_LENGTH) -> str:
    """Return *length* URL-safe random characters.

    Raises:
        PKCEError: If the secure random source is unavailable.
    """
    if length < 1:
        raise ValueError("length must be positive")
    try:
        return secrets.token_urlsafe(length)[:length]
    except (OSError, NotImplementedError) as exc:
        raise PKCEError(f"Secure random source unavailable: {exc}") from exc


@dataclass(frozen=True)
class PKCESession:
    """Ephemeral PKCE state for one authentication attempt."""

    code_verifier: str
    code_challenge: str
    state: str
    target: ConnectionEndpoint

    @classmethod
    def create(cls, target: ConnectionEndpoint) -> PKCESession:
        verifier = generate_code_verifier()
        return cls(
            code_verifier=verifier,
            code_challenge=derive_code_challenge(verifier),
            state=generate_opaque_token(),
            target=target,
        )

    def __repr__(self) -> str:
        return f"PKCESession(target={self.target.url!r}, state={self.state[:6]}...)"
