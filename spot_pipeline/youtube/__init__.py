"""
YouTube module for spot-pipeline.

Looks up a YouTube Music source URL for each Spotify track.
"""

from spot_pipeline.youtube.matcher import SourceMatcher, build_search_query

__all__ = [
    "SourceMatcher",
    "build_search_query",
]
