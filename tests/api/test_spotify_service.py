"""Tests for the Spotify API service wrappers.

Each test answers the gateway from canned provider responses and checks
request shape and parsed models.
"""

import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from genius.api.errors import SpotifyAPIError
from genius.api.features import AudioFeatureFetcher
from genius.api.gateway import SpotifyGateway
from genius.api.models import CreatePlaylistRequest, RecommendationSeed
from genius.api.service import SpotifyService

API_BASE = "https://api.example.com/v1"

ARTIST = {"id": "artist-1", "name": "Artist", "genres": ["rock"], "popularity": 70}
TRACK = {
    "id": "track-1",
    "name": "Song",
    "uri": "spotify:track:track-1",
    "duration_ms": 180000,
    "artists": [ARTIST],
}


class FakeSpotify:
    """Routes requests by path to canned JSON bodies."""

    def __init__(self, routes: dict[str, httpx.Response]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/v1")
        canned = self.routes.get(path)
        if canned is None:
            return httpx.Response(404)
        return httpx.Response(
            canned.status_code, headers=canned.headers, content=canned.content
        )

    def last_query(self) -> dict[str, list[str]]:
        return parse_qs(urlparse(str(self.requests[-1].url)).query)


@pytest.fixture
def make_service(credentials, mock_http, recording_sleep):
    credentials.save("token", expires_in=3600)

    def build(routes: dict[str, httpx.Response]) -> tuple[SpotifyService, FakeSpotify]:
        fake = FakeSpotify(routes)
        gateway = SpotifyGateway(credentials, API_BASE, http_client=mock_http(fake))
        fetcher = AudioFeatureFetcher(gateway, sleep=recording_sleep)
        return SpotifyService(gateway, fetcher), fake

    return build


class TestReadEndpoints:
    """Test read-only API wrappers."""

    async def test_get_user_profile(self, make_service):
        service, _ = make_service(
            {
                "/me": httpx.Response(
                    200,
                    json={
                        "id": "user-1",
                        "display_name": "Ana",
                        "email": "ana@example.com",
                        "followers": {"total": 12},
                        "images": [],
                        "country": "BR",
                    },
                )
            }
        )

        profile = await service.get_user_profile()

        assert profile.id == "user-1"
        assert profile.display_name == "Ana"
        assert profile.followers.total == 12

    async def test_get_top_tracks_sends_time_range(self, make_service):
        service, fake = make_service(
            {"/me/top/tracks": httpx.Response(200, json={"items": [TRACK]})}
        )

        tracks = await service.get_top_tracks("short_term", 5)

        assert [track.id for track in tracks] == ["track-1"]
        assert tracks[0].artists[0].name == "Artist"
        assert fake.last_query() == {"time_range": ["short_term"], "limit": ["5"]}

    async def test_get_top_artists_defaults(self, make_service):
        service, fake = make_service(
            {"/me/top/artists": httpx.Response(200, json={"items": [ARTIST]})}
        )

        artists = await service.get_top_artists()

        assert artists[0].genres == ["rock"]
        assert fake.last_query() == {"time_range": ["medium_term"], "limit": ["20"]}

    async def test_get_playlist_track_ids_skip_missing_tracks(self, make_service):
        service, _ = make_service(
            {
                "/playlists/pl-1": httpx.Response(
                    200,
                    json={
                        "id": "pl-1",
                        "name": "Mix",
                        "tracks": {
                            "total": 2,
                            "items": [{"track": TRACK}, {"track": None}],
                        },
                    },
                )
            }
        )

        playlist = await service.get_playlist("pl-1")

        assert playlist.track_ids() == ["track-1"]

    @pytest.mark.parametrize(
        ("status_code", "message"),
        [(403, "Access to the playlist was denied"), (404, "Playlist not found.")],
    )
    async def test_get_playlist_errors_have_user_messages(
        self, make_service, status_code, message
    ):
        service, _ = make_service({"/playlists/pl-1": httpx.Response(status_code)})

        with pytest.raises(SpotifyAPIError) as exc_info:
            await service.get_playlist("pl-1")

        assert exc_info.value.user_message.startswith(message)

    async def test_get_single_audio_features(self, make_service):
        service, fake = make_service(
            {
                "/audio-features": httpx.Response(
                    200,
                    json={
                        "audio_features": [
                            {
                                "id": "track-1",
                                "danceability": 0.8,
                                "energy": 0.6,
                                "valence": 0.9,
                                "tempo": 128.0,
                            }
                        ]
                    },
                )
            }
        )

        features = await service.get_single_audio_features("track-1")

        assert features.danceability == 0.8
        assert fake.last_query() == {"ids": ["track-1"]}

    async def test_get_single_audio_features_missing_track(self, make_service):
        service, _ = make_service(
            {"/audio-features": httpx.Response(200, json={"audio_features": [None]})}
        )

        assert await service.get_single_audio_features("gone") is None

    async def test_get_recommendations_joins_seed_lists(self, make_service):
        service, fake = make_service(
            {"/recommendations": httpx.Response(200, json={"tracks": [TRACK]})}
        )

        recommendations = await service.get_recommendations(
            RecommendationSeed(seed_genres=["rock", "pop"], target_energy=0.8, limit=10)
        )

        assert recommendations.tracks[0].id == "track-1"
        assert fake.last_query() == {
            "seed_genres": ["rock,pop"],
            "target_energy": ["0.8"],
            "limit": ["10"],
        }

    async def test_get_available_genres(self, make_service):
        service, _ = make_service(
            {
                "/recommendations/available-genre-seeds": httpx.Response(
                    200, json={"genres": ["jazz", "rock"]}
                )
            }
        )

        assert await service.get_available_genres() == ["jazz", "rock"]

    async def test_search_returns_items_of_type(self, make_service):
        service, fake = make_service(
            {"/search": httpx.Response(200, json={"artists": {"items": [ARTIST]}})}
        )

        items = await service.search("radio head", "artist", limit=3)

        assert items == [ARTIST]
        assert fake.last_query() == {
            "q": ["radio head"],
            "type": ["artist"],
            "limit": ["3"],
        }

    async def test_check_following_artists(self, make_service):
        service, fake = make_service(
            {"/me/following/contains": httpx.Response(200, json=[True, False])}
        )

        assert await service.check_following_artists(["a", "b"]) == [True, False]
        assert fake.last_query() == {"type": ["artist"], "ids": ["a,b"]}


class TestWriteEndpoints:
    """Test playlist creation and modification wrappers."""

    async def test_create_playlist_posts_json(self, make_service):
        service, fake = make_service(
            {
                "/users/user-1/playlists": httpx.Response(
                    201, json={"id": "pl-new", "name": "Focus"}
                )
            }
        )

        playlist = await service.create_playlist(
            "user-1", CreatePlaylistRequest(name="Focus", description="calm")
        )

        assert playlist.id == "pl-new"
        request = fake.requests[-1]
        assert request.method == "POST"
        assert json.loads(request.content) == {
            "name": "Focus",
            "description": "calm",
            "public": False,
        }

    async def test_add_tracks_chunks_by_hundred(self, make_service):
        service, fake = make_service(
            {
                "/playlists/pl-1/tracks": httpx.Response(
                    201, json={"snapshot_id": "snap"}
                )
            }
        )
        uris = [f"spotify:track:{i}" for i in range(150)]

        await service.add_tracks_to_playlist("pl-1", uris)

        bodies = [json.loads(request.content) for request in fake.requests]
        assert [len(body["uris"]) for body in bodies] == [100, 50]
