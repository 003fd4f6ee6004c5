"""PKCE (Proof Key for Code Exchange, RFC 7636) helpers.

The verifier is 32 bytes from the OS CSPRNG, base64url-encoded without
padding (43 characters). The challenge is the base64url SHA-256 of the
verifier (S256 method), also 43 characters.

The verifier must only ever leave the process in the final code-exchange
request body, so nothing here logs it.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass

VERIFIER_BYTES = 32
CHALLENGE_METHOD = "S256"


@dataclass(frozen=True)
class PKCEPair:
    """A PKCE verifier and its derived S256 challenge."""

    verifier: str
    challenge: str
    method: str = CHALLENGE_METHOD


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_verifier() -> str:
    """Generate a random PKCE code verifier.

    Returns:
        A 43-character URL-safe string encoding 256 random bits.
    """
    return _b64url(secrets.token_bytes(VERIFIER_BYTES))


def generate_challenge(verifier: str) -> str:
    """Derive the S256 code challenge for a verifier.

    Deterministic: the same verifier always yields the same challenge.

    Args:
        verifier: PKCE code verifier.

    Returns:
        base64url(SHA-256(verifier)) without padding, 43 characters.

    Example:
        >>> generate_challenge("dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk")
        'E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM'
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return _b64url(digest)


def generate_pkce_pair() -> PKCEPair:
    """Generate a fresh verifier together with its challenge."""
    verifier = generate_verifier()
    return PKCEPair(verifier=verifier, challenge=generate_challenge(verifier))


def generate_state() -> str:
    """Generate an opaque CSRF ``state`` value for the authorization request."""
    return secrets.token_urlsafe(32)


__all__ = [
    "PKCEPair",
    "CHALLENGE_METHOD",
    "generate_verifier",
    "generate_challenge",
    "generate_pkce_pair",
    "generate_state",
]
