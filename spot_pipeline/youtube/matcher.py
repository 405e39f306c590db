"""
YouTube Music source lookup for spot-pipeline.

Finds a playable YouTube URL for a track given its artist and title.

Matching Algorithm:
    1. Search YouTube Music for "Artist - Title"
    2. Take the first result that carries a videoId
    3. Build the watch URL from the result type:
       - songs: https://music.youtube.com/watch?v={id}
       - videos: https://www.youtube.com/watch?v={id}

    No scoring and no retry: the first result is used, and a failed
    search is reported to the caller, which marks the track as failed.

Dependencies:
    - ytmusicapi: YouTube Music API client

Usage:
    from spot_pipeline.youtube.matcher import SourceMatcher

    matcher = SourceMatcher()
    url = await matcher.find_source("Rick Astley", "Never Gonna Give You Up")
"""

import asyncio
from typing import Any

from ytmusicapi import YTMusic

from spot_pipeline.core.exceptions import NoMatchFoundError, YouTubeError
from spot_pipeline.core.logger import (
    format_matched_message,
    format_no_match_message,
    get_logger,
)

logger = get_logger(__name__)


YOUTUBE_MUSIC_WATCH_URL = "https://music.youtube.com/watch?v="
YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v="

DEFAULT_SEARCH_FILTER = "songs"


def build_search_query(artist: str, name: str) -> str:
    """
    Build the search query for a track.

    Example:
        build_search_query("Daft Punk", "One More Time")
        # "Daft Punk - One More Time"
    """
    return f"{artist} - {name}"


def result_url(result: dict[str, Any]) -> str:
    """Watch URL for a ytmusicapi search result."""
    video_id = result["videoId"]
    if result.get("resultType") == "song":
        return f"{YOUTUBE_MUSIC_WATCH_URL}{video_id}"
    return f"{YOUTUBE_WATCH_URL}{video_id}"


class SourceMatcher:
    """
    Resolves a track to a YouTube watch URL.

    Attributes:
        _ytmusic: ytmusicapi client, created on first search unless injected.
        _search_filter: ytmusicapi search filter ("songs" or "videos").
    """

    def __init__(
        self,
        ytmusic: YTMusic | None = None,
        search_filter: str = DEFAULT_SEARCH_FILTER
    ) -> None:
        self._ytmusic = ytmusic
        self._search_filter = search_filter

    def _client(self) -> YTMusic:
        if self._ytmusic is None:
            self._ytmusic = YTMusic(language="en")
        return self._ytmusic

    async def find_source(self, artist: str, name: str) -> str:
        """
        Find the YouTube URL for a track.

        Args:
            artist: Artist name(s) as shown on Spotify.
            name: Track title.

        Returns:
            Watch URL of the first result with a video id.

        Raises:
            NoMatchFoundError: If the search returned nothing playable.
            YouTubeError: If the search itself failed.
        """
        query = build_search_query(artist, name)
        logger.debug(f"Searching YouTube Music ({self._search_filter}): {query}")

        try:
            results = await asyncio.to_thread(
                self._client().search, query, filter=self._search_filter
            )
        except Exception as e:
            raise YouTubeError(
                f"YouTube Music search failed for: {query}",
                details={"search_query": query, "original_error": str(e)}
            ) from e

        for result in results or []:
            if result and result.get("videoId"):
                url = result_url(result)
                logger.info(format_matched_message(artist, name, url))
                return url

        logger.warning(format_no_match_message(artist, name, "no results"))
        raise NoMatchFoundError(
            f"No YouTube result for: {query}",
            details={"search_query": query}
        )
