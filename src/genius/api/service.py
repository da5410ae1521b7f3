"""High-level Spotify Web API operations used by the dashboards."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from genius.api.errors import SpotifyAPIError
from genius.api.features import AudioFeatureFetcher, FeatureFetchOutcome
from genius.api.gateway import SpotifyGateway
from genius.api.models import (
    Artist,
    AudioFeatures,
    CreatePlaylistRequest,
    Playlist,
    RecommendationSeed,
    Recommendations,
    SearchType,
    TimeRange,
    Track,
    UserProfile,
)

logger = logging.getLogger(__name__)


class SpotifyService:
    """Typed wrappers around the Spotify Web API endpoints the app uses.

    Errors from the gateway propagate unchanged except where an endpoint
    gives a status a specific meaning (e.g. a private playlist).
    """

    def __init__(
        self,
        gateway: SpotifyGateway,
        fetcher: AudioFeatureFetcher | None = None,
    ):
        self.gateway = gateway
        self.fetcher = fetcher or AudioFeatureFetcher(gateway)

    async def get_user_profile(self) -> UserProfile:
        return UserProfile.model_validate(await self.gateway.get("/me"))

    async def get_top_artists(
        self, time_range: TimeRange = "medium_term", limit: int = 20
    ) -> list[Artist]:
        body = await self.gateway.get(
            "/me/top/artists", params={"time_range": time_range, "limit": limit}
        )
        return [Artist.model_validate(item) for item in body["items"]]

    async def get_top_tracks(
        self, time_range: TimeRange = "medium_term", limit: int = 20
    ) -> list[Track]:
        body = await self.gateway.get(
            "/me/top/tracks", params={"time_range": time_range, "limit": limit}
        )
        return [Track.model_validate(item) for item in body["items"]]

    async def get_user_playlists(self, limit: int = 20) -> list[Playlist]:
        body = await self.gateway.get("/me/playlists", params={"limit": limit})
        return [Playlist.model_validate(item) for item in body["items"]]

    async def get_playlist(self, playlist_id: str) -> Playlist:
        """Fetch one playlist with its first page of tracks.

        Raises:
            SpotifyAPIError: With a specific user message for 403 and 404
        """
        try:
            body = await self.gateway.get(f"/playlists/{playlist_id}")
        except SpotifyAPIError as e:
            if e.status_code == 403:
                e.user_message = (
                    "Access to the playlist was denied. Check that it is public "
                    "or that you have permission to access it."
                )
            elif e.status_code == 404:
                e.user_message = "Playlist not found."
            raise
        return Playlist.model_validate(body)

    async def get_audio_features(
        self, track_ids: Iterable[str]
    ) -> FeatureFetchOutcome:
        return await self.fetcher.fetch_features(track_ids)

    async def get_single_audio_features(self, track_id: str) -> AudioFeatures | None:
        outcome = await self.fetcher.fetch_features([track_id])
        return outcome.succeeded[0] if outcome.succeeded else None

    async def get_recommendations(self, seed: RecommendationSeed) -> Recommendations:
        body = await self.gateway.get("/recommendations", params=seed.to_params())
        return Recommendations.model_validate(body)

    async def get_available_genres(self) -> list[str]:
        body = await self.gateway.get("/recommendations/available-genre-seeds")
        return list(body["genres"])

    async def search(
        self, query: str, search_type: SearchType, limit: int = 20
    ) -> list[dict]:
        """Search the catalog; returns the raw items of the requested type."""
        body = await self.gateway.get(
            "/search", params={"q": query, "type": search_type, "limit": limit}
        )
        return body[f"{search_type}s"]["items"]

    async def create_playlist(
        self, user_id: str, request: CreatePlaylistRequest
    ) -> Playlist:
        body = await self.gateway.post(
            f"/users/{user_id}/playlists", json=request.model_dump()
        )
        logger.info(f"Created playlist {body.get('id')} for user {user_id}")
        return Playlist.model_validate(body)

    async def add_tracks_to_playlist(
        self, playlist_id: str, track_uris: list[str]
    ) -> None:
        # The endpoint accepts at most 100 uris per call
        for start in range(0, len(track_uris), 100):
            await self.gateway.post(
                f"/playlists/{playlist_id}/tracks",
                json={"uris": track_uris[start : start + 100]},
            )

    async def check_following_artists(self, artist_ids: list[str]) -> list[bool]:
        body = await self.gateway.get(
            "/me/following/contains",
            params={"type": "artist", "ids": ",".join(artist_ids)},
        )
        return [bool(value) for value in body]
