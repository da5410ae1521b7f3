"""Security checks for the authorization callback."""

from __future__ import annotations

import secrets
from urllib.parse import urlparse

from genius.auth.models.errors import SecurityValidationError


def validate_state(expected: str | None, actual: str | None) -> None:
    """Validate the callback state against the one persisted before redirect.

    Args:
        expected: State persisted when the login was started
        actual: State returned on the callback URL

    Raises:
        SecurityValidationError: If either side is missing or they differ
    """
    if not expected:
        raise SecurityValidationError(
            "No persisted state for this callback - login was not started here"
        )
    if not actual:
        raise SecurityValidationError("Callback missing required state parameter")
    if not secrets.compare_digest(expected.encode("utf-8"), actual.encode("utf-8")):
        raise SecurityValidationError("State parameter mismatch - possible CSRF attack")


def validate_redirect_uri(uri: str) -> bool:
    """Check a redirect URI is HTTPS or a loopback HTTP address."""
    try:
        parsed = urlparse(uri)
    except ValueError:
        return False
    return parsed.scheme == "https" or (
        parsed.scheme == "http" and parsed.hostname in ("localhost", "127.0.0.1")
    )
