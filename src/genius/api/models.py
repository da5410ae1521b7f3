"""Spotify Web API data models.

Only the fields the application reads are declared; anything else the API
returns is ignored.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

TimeRange = Literal["short_term", "medium_term", "long_term"]
SearchType = Literal["artist", "track", "album", "playlist"]


class Image(BaseModel):
    url: str
    height: int | None = None
    width: int | None = None


class Followers(BaseModel):
    total: int = 0


class UserProfile(BaseModel):
    id: str
    display_name: str | None = None
    email: str | None = None
    country: str | None = None
    images: list[Image] = Field(default_factory=list)
    followers: Followers = Field(default_factory=Followers)


class Artist(BaseModel):
    id: str
    name: str
    genres: list[str] = Field(default_factory=list)
    popularity: int | None = None
    images: list[Image] = Field(default_factory=list)
    followers: Followers | None = None
    external_urls: dict[str, str] = Field(default_factory=dict)


class Album(BaseModel):
    id: str
    name: str
    release_date: str | None = None
    album_type: str | None = None
    total_tracks: int | None = None
    images: list[Image] = Field(default_factory=list)
    artists: list[Artist] = Field(default_factory=list)


class Track(BaseModel):
    id: str | None = None  # local files have no id
    name: str
    uri: str | None = None
    duration_ms: int = 0
    popularity: int | None = None
    preview_url: str | None = None
    artists: list[Artist] = Field(default_factory=list)
    album: Album | None = None
    external_urls: dict[str, str] = Field(default_factory=dict)


class PlaylistTrack(BaseModel):
    added_at: str | None = None
    track: Track | None = None  # removed or unavailable tracks come back null


class PlaylistTracks(BaseModel):
    total: int = 0
    items: list[PlaylistTrack] = Field(default_factory=list)


class PlaylistOwner(BaseModel):
    id: str
    display_name: str | None = None


class Playlist(BaseModel):
    id: str
    name: str
    description: str | None = None
    public: bool | None = None
    collaborative: bool = False
    images: list[Image] | None = None
    owner: PlaylistOwner | None = None
    tracks: PlaylistTracks = Field(default_factory=PlaylistTracks)
    external_urls: dict[str, str] = Field(default_factory=dict)

    def track_ids(self) -> list[str]:
        """Ids of the playable tracks in the loaded page of items."""
        return [
            item.track.id
            for item in self.tracks.items
            if item.track is not None and item.track.id
        ]


class AudioFeatures(BaseModel):
    """Per-track audio characteristics from ``/audio-features``."""

    id: str
    danceability: float
    energy: float
    valence: float
    tempo: float
    acousticness: float = 0.0
    instrumentalness: float = 0.0
    liveness: float = 0.0
    loudness: float = 0.0
    speechiness: float = 0.0
    key: int = -1
    mode: int = 0
    time_signature: int = 4
    duration_ms: int = 0
    uri: str | None = None


class RecommendationSeed(BaseModel):
    """Query parameters for ``/recommendations``.

    List fields are sent comma-joined; unset fields are omitted.
    """

    seed_artists: list[str] | None = None
    seed_genres: list[str] | None = None
    seed_tracks: list[str] | None = None
    limit: int | None = None
    target_danceability: float | None = None
    target_energy: float | None = None
    target_valence: float | None = None
    target_tempo: float | None = None
    target_acousticness: float | None = None
    min_popularity: int | None = None
    max_popularity: int | None = None

    def to_params(self) -> dict[str, str]:
        params = {}
        for key, value in self.model_dump(exclude_none=True).items():
            params[key] = ",".join(value) if isinstance(value, list) else str(value)
        return params


class Recommendations(BaseModel):
    tracks: list[Track] = Field(default_factory=list)
    seeds: list[dict] = Field(default_factory=list)


class CreatePlaylistRequest(BaseModel):
    name: str
    description: str = ""
    public: bool = False
