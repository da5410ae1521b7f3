"""Application settings read from the environment.

Call ``dotenv.load_dotenv()`` before ``GeniusSettings.from_env()`` to pick
up a local ``.env`` file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from genius.auth.services.security import validate_redirect_uri
from genius.errors import ConfigurationError

DEFAULT_SCOPES = (
    "user-read-private",
    "user-read-email",
    "user-top-read",
    "playlist-read-private",
    "playlist-modify-public",
    "playlist-modify-private",
    "user-follow-read",
)

PLACEHOLDER_CLIENT_IDS = ("", "your_spotify_client_id_here")


@dataclass(frozen=True)
class GeniusSettings:
    client_id: str
    redirect_uri: str = "http://127.0.0.1:8888/callback"
    scopes: tuple[str, ...] = DEFAULT_SCOPES
    authorization_endpoint: str = "https://accounts.spotify.com/authorize"
    token_endpoint: str = "https://accounts.spotify.com/api/token"
    api_base: str = "https://api.spotify.com/v1"
    token_file: str | None = None  # None keeps credentials in memory
    http_timeout: float = 10.0
    host: str = "127.0.0.1"
    port: int = 8888

    def __post_init__(self) -> None:
        if self.client_id in PLACEHOLDER_CLIENT_IDS:
            raise ConfigurationError("SPOTIFY_CLIENT_ID is not set")
        if not validate_redirect_uri(self.redirect_uri):
            raise ConfigurationError(
                f"Redirect URI must be HTTPS or loopback HTTP: {self.redirect_uri}",
                user_message="SPOTIFY_REDIRECT_URI must be HTTPS or loopback HTTP.",
            )

    @classmethod
    def from_env(cls) -> GeniusSettings:
        """Build settings from environment variables.

        Raises:
            ConfigurationError: If a value is missing or invalid
        """
        defaults = cls.__dataclass_fields__
        scopes = os.getenv("SPOTIFY_SCOPES")
        try:
            http_timeout = float(
                os.getenv("GENIUS_HTTP_TIMEOUT", defaults["http_timeout"].default)
            )
            port = int(os.getenv("GENIUS_PORT", defaults["port"].default))
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

        return cls(
            client_id=os.getenv("SPOTIFY_CLIENT_ID", "").strip(),
            redirect_uri=os.getenv(
                "SPOTIFY_REDIRECT_URI", defaults["redirect_uri"].default
            ),
            scopes=tuple(scopes.split()) if scopes else DEFAULT_SCOPES,
            authorization_endpoint=os.getenv(
                "SPOTIFY_AUTH_ENDPOINT", defaults["authorization_endpoint"].default
            ),
            token_endpoint=os.getenv(
                "SPOTIFY_TOKEN_ENDPOINT", defaults["token_endpoint"].default
            ),
            api_base=os.getenv("SPOTIFY_API_BASE", defaults["api_base"].default),
            token_file=os.getenv("GENIUS_TOKEN_FILE") or None,
            http_timeout=http_timeout,
            host=os.getenv("GENIUS_HOST", defaults["host"].default),
            port=port,
        )
