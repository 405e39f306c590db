"""
Spotify catalog module for spot-pipeline.

Resolves a playlist, album or artist URL into an ordered track list.

Components:
    - client: CatalogClient (credential exchange) and CatalogSession (API calls)
    - resolver: URL parsing and per-kind fetch strategies
    - retry: RetryingFetcher with per-attempt timeout
    - models: CatalogTrack, PlaylistMetadata, ResourceRef

Usage:
    from spot_pipeline.spotify import CatalogClient, CatalogResolver, RetryingFetcher

    client = CatalogClient(config.spotify.client_id, config.spotify.client_secret)
    fetcher = RetryingFetcher(CatalogResolver(client))
    metadata = await fetcher.fetch(url)
"""

from spot_pipeline.spotify.client import CatalogClient, CatalogSession
from spot_pipeline.spotify.models import (
    CatalogTrack,
    PlaylistMetadata,
    ResourceKind,
    ResourceRef,
)
from spot_pipeline.spotify.resolver import CatalogResolver, parse_resource
from spot_pipeline.spotify.retry import RetryingFetcher, fetch_with_retry

__all__ = [
    "CatalogClient",
    "CatalogSession",
    "CatalogResolver",
    "RetryingFetcher",
    "fetch_with_retry",
    "parse_resource",
    "CatalogTrack",
    "PlaylistMetadata",
    "ResourceKind",
    "ResourceRef",
]
