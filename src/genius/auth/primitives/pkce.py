"""PKCE (Proof Key for Code Exchange) parameter generation.

Implements RFC 7636 S256 parameters for a public client that holds no
client secret. All randomness comes from the ``secrets`` module.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

from genius.auth.models.errors import PKCEError
from genius.auth.models.security import PKCEParameters

VERIFIER_BYTES = 32
STATE_BYTES = 16


def base64url_encode(data: bytes) -> str:
    """Encode bytes as URL-safe base64 without ``=`` padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _random_token(num_bytes: int) -> str:
    try:
        return base64url_encode(secrets.token_bytes(num_bytes))
    except NotImplementedError as e:
        # os.urandom raises this when the host has no secure random source
        raise PKCEError(f"No secure random source available: {e}") from e


def generate_code_verifier() -> str:
    """Generate a cryptographically secure code verifier.

    RFC 7636 Section 4.1: 32 random octets, base64url encoded, give a
    43-character verifier using only unreserved characters.
    """
    return _random_token(VERIFIER_BYTES)


def generate_code_challenge(code_verifier: str) -> str:
    """Derive the S256 code challenge for a verifier.

    RFC 7636 Section 4.2: BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))
    """
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64url_encode(digest)


def generate_state() -> str:
    """Generate the state parameter that binds a callback to its login attempt."""
    return _random_token(STATE_BYTES)


def generate_pkce_parameters() -> PKCEParameters:
    """Generate a fresh verifier/challenge/state triple.

    Raises:
        PKCEError: If the host cannot provide secure randomness
    """
    verifier = generate_code_verifier()
    return PKCEParameters(
        verifier=verifier,
        challenge=generate_code_challenge(verifier),
        state=generate_state(),
    )
