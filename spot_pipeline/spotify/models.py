"""
Data models for Spotify catalog entities.

Whatever the resource kind behind a URL (playlist, album or artist), a
metadata fetch produces the same shape: a PlaylistMetadata holding a name
and an ordered list of CatalogTrack entries.

Usage:
    from spot_pipeline.spotify.models import CatalogTrack, PlaylistMetadata

    metadata = PlaylistMetadata(name="My Playlist", tracks=[...])
    for track in metadata.tracks:
        print(f"{track.artist} - {track.name}")
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


SPOTIFY_OPEN_URL = "https://open.spotify.com"


class ResourceKind(str, Enum):
    """Category of catalog entity referenced by an input URL."""

    PLAYLIST = "playlist"
    ALBUM = "album"
    ARTIST = "artist"


@dataclass(frozen=True)
class ResourceRef:
    """
    A parsed catalog reference.

    Attributes:
        kind: Resource kind (playlist, album or artist).
        id: Spotify base62 identifier.
            Example: "37i9dQZF1DXcBWIGoYBM5M"
    """
    kind: ResourceKind
    id: str


@dataclass(frozen=True)
class CatalogTrack:
    """
    Normalized track entry, identical for every resource kind.

    Attributes:
        artist: Names of all contributing artists, comma-separated.
                Example: "Calvin Harris, Dua Lipa"
        name: Track title as it appears on Spotify.
        duration: Track duration in milliseconds.
        preview_url: 30 second preview MP3, when Spotify provides one.
        source_uri: Spotify URI of the track.
                    Example: "spotify:track:4cOdK2wGLETKBW3PvgPWqT"
    """
    artist: str
    name: str
    duration: int
    preview_url: str | None
    source_uri: str

    @classmethod
    def from_spotify_api(cls, track_data: dict[str, Any]) -> "CatalogTrack":
        """
        Create a CatalogTrack from a Spotify API track object.

        Works for full track objects (playlist items, top tracks) and
        simplified ones (album listings) since only shared fields are read.
        """
        artists = track_data.get("artists") or []
        return cls(
            artist=", ".join(a.get("name", "") for a in artists if a),
            name=track_data.get("name", ""),
            duration=track_data.get("duration_ms") or 0,
            preview_url=track_data.get("preview_url"),
            source_uri=track_data.get("uri", ""),
        )

    @property
    def spotify_url(self) -> str:
        """
        Open-web URL for the track, derived from its URI.

        Returns an empty string for URIs that are not track URIs
        (e.g. local files).
        """
        parts = self.source_uri.split(":")
        if len(parts) == 3 and parts[0] == "spotify" and parts[1] == "track":
            return f"{SPOTIFY_OPEN_URL}/track/{parts[2]}"
        return ""


@dataclass(frozen=True)
class PlaylistMetadata:
    """
    Result of any catalog fetch.

    Attributes:
        name: Playlist or album title; artist name suffixed with
              " (Top Tracks)" for artist URLs.
        tracks: Ordered track entries. Always a list, possibly empty.
    """
    name: str
    tracks: list[CatalogTrack] = field(default_factory=list)
