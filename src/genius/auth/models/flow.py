"""Authorization flow models.

Contains the authorization request, the parsed callback and the handshake
state machine types.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import parse_qs, quote, urlencode, urlparse


class HandshakeState(enum.Enum):
    """Stage of one authorization attempt."""

    IDLE = "idle"
    REDIRECTING = "redirecting"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING_CODE = "exchanging_code"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the PKCE code flow."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    code_challenge: str
    state: str
    scopes: tuple[str, ...] = ()
    code_challenge_method: str = "S256"
    show_dialog: bool = True

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL.

        Scopes are space-joined and percent-encoded (``%20``, not ``+``).
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "response_type": "code",
            "state": self.state,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
        }
        if self.show_dialog:
            params["show_dialog"] = "true"

        return f"{self.authorization_endpoint}?{urlencode(params, quote_via=quote)}"


@dataclass(frozen=True)
class AuthorizationResponse:
    """Query parameters the provider sends back to the redirect URI."""

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def from_query(cls, query: Mapping[str, str] | str) -> AuthorizationResponse:
        """Parse a callback URL, a raw query string or a mapping of parameters."""
        if isinstance(query, str):
            raw = urlparse(query).query if "?" in query else query.lstrip("?")
            parsed = parse_qs(raw)

            def get_single_param(key: str) -> str | None:
                values = parsed.get(key, [])
                return values[0] if values else None

        else:

            def get_single_param(key: str) -> str | None:
                return query.get(key) or None

        return cls(
            code=get_single_param("code"),
            state=get_single_param("state"),
            error=get_single_param("error"),
            error_description=get_single_param("error_description"),
        )


@dataclass(frozen=True)
class HandshakeResult:
    """Outcome of processing a callback, ready for display."""

    state: HandshakeState
    message: str
    error: Exception | None = field(default=None, compare=False)

    @property
    def succeeded(self) -> bool:
        return self.state is HandshakeState.AUTHENTICATED
