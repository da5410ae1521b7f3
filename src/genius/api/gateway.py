"""Authenticated request gateway for the Spotify Web API.

Every outbound API call goes through ``SpotifyGateway.request``. The gateway
attaches the bearer token, and turns an unauthorized response into a global
logout: the credential store is cleared and the caller is told to route the
user back to login.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

import httpx

from genius.api.errors import RateLimitedError, SessionExpiredError, SpotifyAPIError
from genius.auth.services.credentials import CredentialStore

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.spotify.com/v1"

UnauthorizedCallback = Callable[[], Awaitable[None] | None]


class SpotifyGateway:
    """Wraps HTTP calls to the Spotify Web API.

    Status handling:
    - 401: clear credentials, notify ``on_unauthorized``, raise
      ``SessionExpiredError``
    - 429: raise ``RateLimitedError`` with the ``Retry-After`` delay
    - other non-2xx: raise ``SpotifyAPIError`` with the response attached
    """

    def __init__(
        self,
        credentials: CredentialStore,
        base_url: str = DEFAULT_API_BASE,
        timeout: float = 10.0,
        on_unauthorized: UnauthorizedCallback | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the gateway.

        Args:
            credentials: Store the bearer token is read from
            base_url: API base URL, e.g. https://api.spotify.com/v1
            timeout: HTTP request timeout in seconds
            on_unauthorized: Called once a 401 has cleared the session
            http_client: Client to reuse; one is created when omitted
        """
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.on_unauthorized = on_unauthorized
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)
        # Token of the current session; the login signal fires once per session
        self._session_token: str | None = None
        self._session_ended = False

    def _build_headers(self) -> dict[str, str]:
        credential = self.credentials.load()
        if credential is None:
            return {}
        if credential.access_token != self._session_token:
            self._session_token = credential.access_token
            self._session_ended = False
        return {
            "Authorization": f"Bearer {credential.access_token}",
            "Content-Type": "application/json",
        }

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send a request and return the successful response.

        Raises:
            SessionExpiredError: The provider answered 401
            RateLimitedError: The provider answered 429
            SpotifyAPIError: Any other non-2xx status or a transport failure
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = self._build_headers()
        if not headers:
            logger.debug(f"No valid credential, sending {method} {path} without auth")

        try:
            response = await self._http_client.request(
                method, url, params=params, json=json, headers=headers
            )
        except httpx.HTTPError as e:
            raise SpotifyAPIError(f"HTTP error during {method} {path}: {e}") from e

        if response.status_code == 401:
            await self._handle_unauthorized(method, path)
            raise SessionExpiredError(
                f"{method} {path} returned 401", status_code=401, response=response
            )

        if response.status_code == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            logger.warning(
                f"Rate limited on {method} {path} (retry after {retry_after})"
            )
            raise RateLimitedError(
                f"{method} {path} was rate limited",
                retry_after=retry_after,
                response=response,
            )

        if not response.is_success:
            message = _error_message(response)
            logger.debug(f"{method} {path} -> {response.status_code}: {message}")
            raise SpotifyAPIError(
                f"{method} {path} failed with {response.status_code}: {message}",
                status_code=response.status_code,
                response=response,
            )

        return response

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a path and decode the JSON body."""
        response = await self.request("GET", path, params=params)
        return response.json()

    async def post(self, path: str, json: Any = None) -> Any:
        """POST a JSON body and decode the JSON response, if any."""
        response = await self.request("POST", path, json=json)
        return response.json() if response.content else None

    async def _handle_unauthorized(self, method: str, path: str) -> None:
        self.credentials.clear()
        # Concurrent 401s race here; only the first one ends the session
        if self._session_ended:
            return
        self._session_ended = True
        logger.warning(f"{method} {path} returned 401, session cleared")
        if self.on_unauthorized is not None:
            result = self.on_unauthorized()
            if result is not None:
                await result

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()


def _parse_retry_after(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def _error_message(response: httpx.Response) -> str:
    """Pull the provider's ``{"error": {"message": ...}}`` text, if present."""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or "unknown error"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or response.reason_phrase)
    if isinstance(error, str):
        return str(body.get("error_description") or error)
    return response.reason_phrase or "unknown error"
