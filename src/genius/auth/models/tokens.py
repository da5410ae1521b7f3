"""Token models for the authorization code flow.

Contains the persisted session credential and the token endpoint
request/response shapes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel


@dataclass(frozen=True)
class SessionCredential:
    """Access token plus its expiry, held for one login session.

    Immutable: the store only ever replaces the whole record.
    """

    access_token: str
    expires_at_ms: int | None = None  # Unix epoch milliseconds
    refresh_token: str | None = None

    def is_expired(self, now_ms: float) -> bool:
        """A credential without expiry never expires."""
        if self.expires_at_ms is None:
            return False
        return now_ms >= self.expires_at_ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "expires_at_ms": self.expires_at_ms,
            "refresh_token": self.refresh_token,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionCredential:
        expires_at_ms = data.get("expires_at_ms")
        return cls(
            access_token=str(data["access_token"]),
            expires_at_ms=int(expires_at_ms) if expires_at_ms is not None else None,
            refresh_token=data.get("refresh_token"),
        )


@dataclass(frozen=True)
class TokenRequest:
    """Token exchange request parameters (RFC 6749 Section 4.1.3).

    Public client: no secret, the PKCE ``code_verifier`` proves possession.
    """

    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str
    code_verifier: str
    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for an application/x-www-form-urlencoded body."""
        return {
            "grant_type": self.grant_type,
            "code": self.code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "code_verifier": self.code_verifier,
        }


class TokenResponse(BaseModel):
    """Token endpoint response (RFC 6749 Section 5).

    Covers both successful responses (Section 5.1) and error responses
    (Section 5.2).
    """

    access_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None  # Seconds until expiry
    refresh_token: str | None = None
    scope: str | None = None

    error: str | None = None
    error_description: str | None = None

    def is_success(self) -> bool:
        return self.error is None and bool(self.access_token)

    def is_error(self) -> bool:
        return self.error is not None
