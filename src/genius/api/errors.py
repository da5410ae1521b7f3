"""Exception types for Spotify Web API calls."""

from __future__ import annotations

import httpx

from genius.errors import GeniusError


class SpotifyAPIError(GeniusError):
    """Raised when an API call fails.

    ``status_code`` is ``None`` for transport failures (no response).
    """

    user_message = "Error talking to Spotify. Please try again."

    def __init__(
        self,
        message: str = "",
        *,
        status_code: int | None = None,
        response: httpx.Response | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message, user_message=user_message)
        self.status_code = status_code
        self.response = response


class SessionExpiredError(SpotifyAPIError):
    """Raised when the session is no longer authorized.

    The credential store has already been cleared when this is raised; the
    caller should route the user back to the login entry point.
    """

    user_message = "Your session has expired. Please log in again."


class RateLimitedError(SpotifyAPIError):
    """Raised when the provider throttles requests. Retryable."""

    user_message = "Too many requests. Wait a moment and try again."

    def __init__(
        self,
        message: str = "",
        *,
        retry_after: float | None = None,
        response: httpx.Response | None = None,
    ):
        super().__init__(message, status_code=429, response=response)
        self.retry_after = retry_after
        if retry_after is not None:
            self.user_message = (
                f"Too many requests. Wait {retry_after:g} seconds and try again."
            )
