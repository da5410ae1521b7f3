"""Local web application that hosts the login flow and the data API.

The browser talks to this app; the app is the OAuth public client and the
only holder of the access token. Responses are plain JSON data and plain
error strings for the dashboards to render.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from genius.api.errors import RateLimitedError, SessionExpiredError, SpotifyAPIError
from genius.api.features import AudioFeatureFetcher
from genius.api.gateway import SpotifyGateway
from genius.api.service import SpotifyService
from genius.auth.models.errors import OAuth2Error
from genius.auth.services.credentials import AuthState, CredentialStore, PKCEStore
from genius.auth.services.flow import LOGIN_ENTRY_POINT, AuthorizationFlow
from genius.auth.services.tokens import SpotifyTokenClient
from genius.config import GeniusSettings
from genius.storage import FileStorage, MemoryStorage

logger = logging.getLogger(__name__)

DASHBOARD_PATH = "/dashboard"
MALFORMED_RESPONSE_MESSAGE = (
    "Spotify returned an unexpected response. Please try again."
)
TIME_RANGES = ("short_term", "medium_term", "long_term")


class GeniusWebApp:
    """Starlette application wiring the auth flow and the API service."""

    def __init__(
        self,
        flow: AuthorizationFlow,
        service: SpotifyService,
        credentials: CredentialStore,
    ):
        self.flow = flow
        self.service = service
        self.credentials = credentials
        self._unsubscribe = None

        self.app = Starlette(
            routes=[
                Route(LOGIN_ENTRY_POINT, self._handle_index, methods=["GET"]),
                Route("/login", self._handle_login, methods=["GET"]),
                Route("/callback", self._handle_callback, methods=["GET"]),
                Route("/retry", self._handle_retry, methods=["GET"]),
                Route("/logout", self._handle_logout, methods=["POST"]),
                Route(DASHBOARD_PATH, self._handle_dashboard, methods=["GET"]),
                Route("/api/me", self._handle_profile, methods=["GET"]),
                Route("/api/top/{kind}", self._handle_top, methods=["GET"]),
                Route("/api/playlists/{playlist_id}", self._handle_playlist),
                Route("/api/audio-features", self._handle_audio_features),
            ],
            lifespan=self._lifespan,
        )

    @classmethod
    def from_settings(
        cls,
        settings: GeniusSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> GeniusWebApp:
        """Build the full component graph from settings."""
        durable = (
            FileStorage(settings.token_file) if settings.token_file else MemoryStorage()
        )
        credentials = CredentialStore(durable)
        http_client = http_client or httpx.AsyncClient(timeout=settings.http_timeout)

        flow = AuthorizationFlow(
            client_id=settings.client_id,
            redirect_uri=settings.redirect_uri,
            authorization_endpoint=settings.authorization_endpoint,
            token_endpoint=settings.token_endpoint,
            credentials=credentials,
            pkce_store=PKCEStore(MemoryStorage()),
            token_client=SpotifyTokenClient(http_client=http_client),
            scopes=settings.scopes,
        )
        gateway = SpotifyGateway(
            credentials, base_url=settings.api_base, http_client=http_client
        )
        service = SpotifyService(gateway, AudioFeatureFetcher(gateway))
        return cls(flow, service, credentials)

    @contextlib.asynccontextmanager
    async def _lifespan(self, app: Starlette) -> AsyncIterator[None]:
        self._unsubscribe = self.credentials.on_external_change(self._log_auth_change)
        try:
            yield
        finally:
            await self.close()

    def _log_auth_change(self, state: AuthState) -> None:
        logger.info(f"Credential changed in another context: {state.value}")

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self.service.gateway.close()

    # ================================
    # Authentication routes
    # ================================

    async def _handle_index(self, request: Request) -> Response:
        state = self.credentials.auth_state()
        return JSONResponse(
            {
                "authenticated": state is AuthState.AUTHENTICATED,
                "login": "/login",
            }
        )

    async def _handle_login(self, request: Request) -> Response:
        try:
            authorization_url = self.flow.begin_login()
        except OAuth2Error as e:
            logger.error(f"Cannot start login: {e}")
            return JSONResponse({"error": e.user_message}, status_code=500)
        return RedirectResponse(authorization_url)

    async def _handle_callback(self, request: Request) -> Response:
        result = await self.flow.handle_callback(dict(request.query_params))
        if result.succeeded:
            return RedirectResponse(DASHBOARD_PATH)
        return JSONResponse(
            {"state": result.state.value, "message": result.message, "retry": "/retry"},
            status_code=400,
        )

    async def _handle_retry(self, request: Request) -> Response:
        return RedirectResponse(self.flow.retry())

    async def _handle_logout(self, request: Request) -> Response:
        self.credentials.clear()
        return JSONResponse({"authenticated": False, "login": LOGIN_ENTRY_POINT})

    # ================================
    # Data routes
    # ================================

    async def _handle_dashboard(self, request: Request) -> Response:
        return await self._call_api(self._dashboard_data)

    async def _dashboard_data(self) -> dict[str, Any]:
        profile = await self.service.get_user_profile()
        artists = await self.service.get_top_artists(limit=10)
        tracks = await self.service.get_top_tracks(limit=10)
        return {
            "profile": profile.model_dump(),
            "top_artists": [artist.model_dump() for artist in artists],
            "top_tracks": [track.model_dump() for track in tracks],
        }

    async def _handle_profile(self, request: Request) -> Response:
        async def load() -> dict[str, Any]:
            return (await self.service.get_user_profile()).model_dump()

        return await self._call_api(load)

    async def _handle_top(self, request: Request) -> Response:
        kind = request.path_params["kind"]
        time_range = request.query_params.get("time_range", "medium_term")
        if kind not in ("artists", "tracks") or time_range not in TIME_RANGES:
            return JSONResponse({"error": "Unknown top list"}, status_code=404)
        try:
            limit = int(request.query_params.get("limit", 20))
        except ValueError:
            return JSONResponse({"error": "limit must be a number"}, status_code=400)

        async def load() -> list[dict[str, Any]]:
            if kind == "artists":
                items = await self.service.get_top_artists(time_range, limit)
            else:
                items = await self.service.get_top_tracks(time_range, limit)
            return [item.model_dump() for item in items]

        return await self._call_api(load)

    async def _handle_playlist(self, request: Request) -> Response:
        playlist_id = request.path_params["playlist_id"]

        async def load() -> dict[str, Any]:
            playlist = await self.service.get_playlist(playlist_id)
            outcome = await self.service.get_audio_features(playlist.track_ids())
            return {"playlist": playlist.model_dump(), "analysis": outcome.to_dict()}

        return await self._call_api(load)

    async def _handle_audio_features(self, request: Request) -> Response:
        ids = request.query_params.get("ids", "").split(",")

        async def load() -> dict[str, Any]:
            return (await self.service.get_audio_features(ids)).to_dict()

        return await self._call_api(load)

    async def _call_api(self, load: Callable[[], Awaitable[Any]]) -> Response:
        """Run an API call and map failures to plain error responses."""
        try:
            return JSONResponse(await load())
        except SessionExpiredError as e:
            return JSONResponse(
                {"error": e.user_message, "login": LOGIN_ENTRY_POINT}, status_code=401
            )
        except RateLimitedError as e:
            headers = {}
            if e.retry_after is not None:
                headers["Retry-After"] = f"{e.retry_after:g}"
            return JSONResponse(
                {"error": e.user_message, "retryable": True},
                status_code=429,
                headers=headers,
            )
        except SpotifyAPIError as e:
            logger.warning(f"API call failed: {e}")
            return JSONResponse(
                {"error": e.user_message}, status_code=e.status_code or 502
            )
        except (KeyError, TypeError, ValidationError) as e:
            logger.warning(f"Malformed API response: {e!r}")
            return JSONResponse({"error": MALFORMED_RESPONSE_MESSAGE}, status_code=502)


def create_app(settings: GeniusSettings) -> Starlette:
    return GeniusWebApp.from_settings(settings).app
