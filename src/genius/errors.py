"""Base exception hierarchy for Spotify Genius.

Every error carries a ``user_message``: a plain string that is safe to show
to the user. The exception message itself is for logs.
"""

from __future__ import annotations


class GeniusError(Exception):
    """Base exception for all Spotify Genius errors."""

    user_message = "Unexpected error. Please try again."

    def __init__(self, message: str = "", *, user_message: str | None = None):
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class ConfigurationError(GeniusError):
    """Raised when required settings are missing or invalid."""

    user_message = "The application is not configured. Set SPOTIFY_CLIENT_ID."


class StorageUnavailableError(GeniusError):
    """Raised when a storage area cannot be read or written."""

    user_message = "Local storage is unavailable."
