"""
PKCE Generator Module

Generators for the OAuth 2.0 Proof Key for Code Exchange values: the code
verifier, its S256 challenge and the CSRF ``state`` parameter. All values
use URL-safe base64 without padding.
"""

import base64
import hashlib
import secrets

VERIFIER_BYTES = 32
STATE_BYTES = 16


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def code_verifier() -> str:
    """Return a fresh 43-character code verifier."""
    return _b64url(secrets.token_bytes(VERIFIER_BYTES))


def code_challenge(verifier: str) -> str:
    """Return the S256 challenge for ``verifier``."""
    return _b64url(hashlib.sha256(verifier.encode("utf-8")).digest())


def state() -> str:
    """Return a fresh random value binding the callback to this attempt."""
    return _b64url(secrets.token_bytes(STATE_BYTES))
