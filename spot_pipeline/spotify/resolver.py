"""
Catalog URL resolution for spot-pipeline.

Turns a Spotify playlist, album or artist URL into a PlaylistMetadata:
a name plus the ordered list of normalized tracks.

Resolution Workflow:
    1. Parse the URL into a ResourceRef (kind + id)
    2. Authenticate (client-credentials exchange) to get a session
    3. Dispatch to the fetch strategy registered for the kind:
       - playlist: name, then items paged 100 at a time
       - album: metadata with its embedded track listing
       - artist: profile plus top tracks, name suffixed " (Top Tracks)"
    4. Return PlaylistMetadata with tracks in catalog order

Accepted Inputs:
    https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M
    https://open.spotify.com/intl-it/album/4aawyAB9vmqN3uQ7FjRGTy?si=...
    spotify:artist:0TnOYISbd1XYRBk9myaseg
"""

import re
from typing import Protocol

from spot_pipeline.core.exceptions import InvalidInputError, UnsupportedResourceError
from spot_pipeline.core.logger import get_logger
from spot_pipeline.spotify.client import CatalogClient, CatalogSession
from spot_pipeline.spotify.models import (
    CatalogTrack,
    PlaylistMetadata,
    ResourceKind,
    ResourceRef,
)

logger = get_logger(__name__)


# Resource kind and id, from either a URL path or a spotify: URI
_RESOURCE_PATTERN = re.compile(r"(playlist|album|artist)[/:]([a-zA-Z0-9]+)")

# Any other Spotify resource, used to tell "unsupported" apart from "invalid"
_ANY_SPOTIFY_RESOURCE_PATTERN = re.compile(
    r"(?:open\.spotify\.com/(?:intl-[\w-]+/)?|^spotify:)([a-z]+)[/:]([a-zA-Z0-9]+)"
)

# Spotify's maximum page size for playlist items
PLAYLIST_PAGE_SIZE = 100

TOP_TRACKS_SUFFIX = " (Top Tracks)"


def parse_resource(url: str) -> ResourceRef:
    """
    Extract the resource kind and id from a Spotify URL or URI.

    Args:
        url: Playlist, album or artist URL (or spotify: URI).

    Returns:
        ResourceRef with the kind and id.

    Raises:
        UnsupportedResourceError: If the URL is a Spotify reference of
                                  another kind (track, show, episode...).
        InvalidInputError: If no resource reference can be found at all.

    Example:
        parse_resource("https://open.spotify.com/album/4aawyAB9vmqN3uQ7FjRGTy")
        # ResourceRef(kind=ResourceKind.ALBUM, id="4aawyAB9vmqN3uQ7FjRGTy")
    """
    match = _RESOURCE_PATTERN.search(url or "")
    if match:
        return ResourceRef(kind=ResourceKind(match.group(1)), id=match.group(2))

    other = _ANY_SPOTIFY_RESOURCE_PATTERN.search(url or "")
    if other:
        kind = other.group(1)
        raise UnsupportedResourceError(
            f"Unsupported Spotify type: {kind}",
            kind=kind,
            details={"url": url, "kind": kind}
        )

    raise InvalidInputError(
        f"Invalid Spotify URL: {url}",
        details={"url": url}
    )


# =============================================================================
# Fetch strategies, one per resource kind
# =============================================================================

class FetchStrategy(Protocol):
    """Produces PlaylistMetadata for one resource kind."""

    async def fetch(self, session: CatalogSession, resource_id: str) -> PlaylistMetadata:
        ...


class PlaylistStrategy:
    """
    Playlist: name first, then every page of items.

    Pages are requested strictly one after another: each offset depends
    on the previous page. Paging stops on an empty page or when the API
    reports no next page. Items without a track object (removed tracks,
    unavailable local files) are skipped.
    """

    def __init__(self, page_size: int = PLAYLIST_PAGE_SIZE) -> None:
        self._page_size = page_size

    async def fetch(self, session: CatalogSession, resource_id: str) -> PlaylistMetadata:
        playlist_data = await session.playlist(resource_id)
        name = playlist_data.get("name", "")

        tracks: list[CatalogTrack] = []
        offset = 0
        while True:
            page = await session.playlist_items(
                resource_id, limit=self._page_size, offset=offset
            )
            items = page.get("items") or []
            if not items:
                break

            for item in items:
                track_data = item.get("track") if item else None
                if not track_data:
                    logger.debug(f"Skipping empty playlist item at offset {offset}")
                    continue
                tracks.append(CatalogTrack.from_spotify_api(track_data))

            offset += self._page_size
            if not page.get("next"):
                break

        return PlaylistMetadata(name=name, tracks=tracks)


class AlbumStrategy:
    """Album: a single embedded listing, no pagination."""

    async def fetch(self, session: CatalogSession, resource_id: str) -> PlaylistMetadata:
        album_data = await session.album(resource_id)
        items = (album_data.get("tracks") or {}).get("items") or []
        return PlaylistMetadata(
            name=album_data.get("name", ""),
            tracks=[CatalogTrack.from_spotify_api(item) for item in items if item],
        )


class ArtistStrategy:
    """Artist: the top-tracks listing, in the order Spotify ranks them."""

    async def fetch(self, session: CatalogSession, resource_id: str) -> PlaylistMetadata:
        artist_data = await session.artist(resource_id)
        top_tracks = await session.artist_top_tracks(resource_id)
        items = top_tracks.get("tracks") or []
        return PlaylistMetadata(
            name=f"{artist_data.get('name', '')}{TOP_TRACKS_SUFFIX}",
            tracks=[CatalogTrack.from_spotify_api(item) for item in items if item],
        )


def default_strategies() -> dict[ResourceKind, FetchStrategy]:
    return {
        ResourceKind.PLAYLIST: PlaylistStrategy(),
        ResourceKind.ALBUM: AlbumStrategy(),
        ResourceKind.ARTIST: ArtistStrategy(),
    }


class CatalogResolver:
    """
    Resolves catalog URLs into PlaylistMetadata.

    Attributes:
        _client: CatalogClient used to open an authenticated session.
        _strategies: Fetch strategy per resource kind.

    Example:
        resolver = CatalogResolver(CatalogClient(client_id, client_secret))
        metadata = await resolver.fetch_metadata(
            "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M"
        )
        print(metadata.name, len(metadata.tracks))
    """

    def __init__(
        self,
        client: CatalogClient,
        strategies: dict[ResourceKind, FetchStrategy] | None = None
    ) -> None:
        self._client = client
        self._strategies = strategies if strategies is not None else default_strategies()

    async def fetch_metadata(self, url: str) -> PlaylistMetadata:
        """
        Fetch the name and ordered tracks behind a catalog URL.

        Args:
            url: Playlist, album or artist URL.

        Returns:
            PlaylistMetadata with tracks in catalog order.

        Raises:
            InvalidInputError: If the URL has no resource reference.
            UnsupportedResourceError: If the resource kind is not handled.
            AuthenticationError: If the credentials are rejected.
            CatalogTransportError: On network/HTTP failures.
        """
        ref = parse_resource(url)

        strategy = self._strategies.get(ref.kind)
        if strategy is None:
            raise UnsupportedResourceError(
                f"Unsupported Spotify type: {ref.kind.value}",
                kind=ref.kind.value,
                details={"url": url, "kind": ref.kind.value}
            )

        session = await self._client.authenticate()
        logger.debug(f"Fetching {ref.kind.value} {ref.id}")
        metadata = await strategy.fetch(session, ref.id)
        logger.debug(
            f"Fetched {ref.kind.value} '{metadata.name}' with {len(metadata.tracks)} tracks"
        )
        return metadata

    async def fetch_tracks(self, url: str) -> list[CatalogTrack]:
        """Convenience wrapper returning only the tracks."""
        metadata = await self.fetch_metadata(url)
        return metadata.tracks
