"""
Spotify catalog client for spot-pipeline.

This module wraps spotipy for the client-credentials flow and exposes
the handful of catalog calls the resolver needs as coroutines.

Authentication:
    CatalogClient.authenticate() performs the client-credentials exchange
    and returns a CatalogSession bound to the resulting bearer token.
    The session is meant for one logical fetch; it is never shared between
    concurrent fetches.

Token Reuse:
    By default every authenticate() call performs a fresh exchange.
    With cache_token=True, tokens are kept in a process-wide cache keyed
    by client id:
        - initialised on first use
        - reused until spotipy reports them expired
        - invalidated as soon as the API answers 401

Concurrency:
    spotipy is blocking (requests). Every call is run with
    asyncio.to_thread(), so each API round trip is a suspension point of
    the calling task and never blocks the event loop.

Usage:
    client = CatalogClient(client_id, client_secret)
    session = await client.authenticate()
    playlist = await session.playlist("37i9dQZF1DXcBWIGoYBM5M")
"""

import asyncio
from typing import Any, Callable

import requests
import spotipy
from spotipy.cache_handler import CacheHandler, MemoryCacheHandler
from spotipy.oauth2 import SpotifyClientCredentials, SpotifyOauthError

from spot_pipeline.core.exceptions import AuthenticationError, CatalogTransportError
from spot_pipeline.core.logger import get_logger

logger = get_logger(__name__)


# Seconds spotipy waits for a single HTTP response
REQUESTS_TIMEOUT = 10

# Process-wide token caches, one per client id
_TOKEN_CACHES: dict[str, MemoryCacheHandler] = {}


def shared_token_cache(client_id: str) -> MemoryCacheHandler:
    """
    Get the process-wide token cache for a client id.

    Created on first use; every CatalogClient built with cache_token=True
    for the same client id reads and writes the same cache.
    """
    cache = _TOKEN_CACHES.get(client_id)
    if cache is None:
        cache = MemoryCacheHandler()
        _TOKEN_CACHES[client_id] = cache
    return cache


def invalidate_token(cache_handler: CacheHandler) -> None:
    """Drop the cached token so the next authenticate() does a fresh exchange."""
    cache_handler.save_token_to_cache(None)


def clear_token_caches() -> None:
    """Forget every shared token (for testing)."""
    _TOKEN_CACHES.clear()


# OAuth error codes meaning the client id/secret pair was refused
REJECTED_CREDENTIAL_ERRORS = ("invalid_client", "unauthorized_client")


def _token_http_status(error: SpotifyOauthError) -> int | None:
    """HTTP status of the failed token request, from the chained HTTPError."""
    context = error.__context__
    if isinstance(context, requests.HTTPError) and context.response is not None:
        return context.response.status_code
    return None


def _is_rejected_credentials(error: SpotifyOauthError, http_status: int | None) -> bool:
    """
    Tell a credentials rejection apart from any other token endpoint failure.

    spotipy raises SpotifyOauthError for every HTTP error of the token
    endpoint, 5xx included; only 400/401 or an explicit client error code
    mean the credentials are wrong.
    """
    if error.error in REJECTED_CREDENTIAL_ERRORS:
        return True
    return http_status in (400, 401)


class CatalogClient:
    """
    Spotify client-credentials authenticator.

    Attributes:
        _auth: spotipy credentials manager doing the token exchange.
        _cache_handler: Where the bearer token lives between calls.
        _market: Country code used for artist top-tracks.
        _requests_timeout: Per-request HTTP timeout for data calls.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        market: str = "US",
        cache_token: bool = False,
        requests_timeout: int = REQUESTS_TIMEOUT
    ) -> None:
        """
        Initialize the CatalogClient.

        Args:
            client_id: Spotify application client ID.
            client_secret: Spotify application client secret.
            market: Country code for artist top-tracks.
            cache_token: Share tokens process-wide until they expire.
            requests_timeout: Seconds before a single HTTP call gives up.

        Note:
            No network traffic happens here; the exchange is done lazily
            by authenticate().
        """
        self._cache_handler = (
            shared_token_cache(client_id) if cache_token else MemoryCacheHandler()
        )
        self._cache_token = cache_token
        self._auth = SpotifyClientCredentials(
            client_id=client_id,
            client_secret=client_secret,
            cache_handler=self._cache_handler,
            requests_timeout=requests_timeout,
        )
        self._market = market
        self._requests_timeout = requests_timeout

    async def authenticate(self) -> "CatalogSession":
        """
        Exchange the client credentials for a bearer token.

        Returns:
            A CatalogSession using the token.

        Raises:
            AuthenticationError: If Spotify rejects the credentials.
            CatalogTransportError: If the token endpoint can't be reached.
        """
        if not self._cache_token:
            # Request-scoped: never reuse a previous session's token
            invalidate_token(self._cache_handler)

        token = await asyncio.to_thread(self._request_token)

        spotify = spotipy.Spotify(
            auth=token,
            requests_timeout=self._requests_timeout,
            retries=0,
            status_retries=0,
        )
        return CatalogSession(
            spotify,
            market=self._market,
            on_auth_failure=lambda: invalidate_token(self._cache_handler),
        )

    def _request_token(self) -> str:
        try:
            return self._auth.get_access_token(as_dict=False)
        except SpotifyOauthError as e:
            http_status = _token_http_status(e)
            if _is_rejected_credentials(e, http_status):
                raise AuthenticationError(
                    "Invalid Spotify credentials: Client ID or Secret may be incorrect.",
                    details={"error": e.error, "original_error": str(e)}
                ) from e
            raise CatalogTransportError(
                f"Spotify token endpoint failed: {e}",
                details={
                    "error": e.error,
                    "http_status": http_status,
                    "original_error": str(e),
                },
                http_status=http_status,
                is_rate_limit=http_status == 429
            ) from e
        except requests.RequestException as e:
            raise CatalogTransportError(
                f"Failed to get Spotify access token: {e}",
                details={"original_error": str(e)}
            ) from e


class CatalogSession:
    """
    Catalog calls bound to one bearer token.

    Every method maps spotipy/requests failures onto the catalog error
    taxonomy:
        - HTTP 401 -> AuthenticationError (cached token invalidated)
        - HTTP 429 -> CatalogTransportError with is_rate_limit=True
        - any other HTTP or network failure -> CatalogTransportError

    Attributes:
        _spotify: spotipy.Spotify instance authorised with the token.
        _market: Country code for artist top-tracks.
        _on_auth_failure: Called when the API rejects the token.
    """

    def __init__(
        self,
        spotify: spotipy.Spotify,
        market: str = "US",
        on_auth_failure: Callable[[], None] | None = None
    ) -> None:
        self._spotify = spotify
        self._market = market
        self._on_auth_failure = on_auth_failure

    async def playlist(self, playlist_id: str) -> dict[str, Any]:
        """Playlist metadata (only the fields the resolver reads)."""
        return await self._call(
            "playlist", self._spotify.playlist, playlist_id, fields="id,name"
        )

    async def playlist_items(
        self,
        playlist_id: str,
        limit: int = 100,
        offset: int = 0
    ) -> dict[str, Any]:
        """
        One page of playlist items.

        Returns:
            Dictionary containing:
            - items: List of playlist track objects
            - next: URL for next page (or None)
        """
        return await self._call(
            "playlist items",
            self._spotify.playlist_items,
            playlist_id,
            limit=min(limit, 100),
            offset=offset,
            additional_types=("track",),
        )

    async def album(self, album_id: str) -> dict[str, Any]:
        """Album metadata including its embedded track listing."""
        return await self._call("album", self._spotify.album, album_id)

    async def artist(self, artist_id: str) -> dict[str, Any]:
        """Artist profile."""
        return await self._call("artist", self._spotify.artist, artist_id)

    async def artist_top_tracks(self, artist_id: str) -> dict[str, Any]:
        """The artist's top tracks in the configured market."""
        return await self._call(
            "artist top tracks",
            self._spotify.artist_top_tracks,
            artist_id,
            country=self._market,
        )

    async def _call(
        self,
        what: str,
        method: Callable[..., Any],
        resource_id: str,
        **kwargs: Any
    ) -> dict[str, Any]:
        """
        Run a blocking spotipy call in a worker thread.

        Args:
            what: Human-readable name of the call, for error messages.
            method: Bound spotipy method.
            resource_id: Spotify id passed as first argument.
            **kwargs: Extra keyword arguments for the spotipy method.

        Raises:
            AuthenticationError: On HTTP 401.
            CatalogTransportError: On any other API or network failure,
                                   or an empty response.
        """
        logger.debug(f"Spotify API: {what} {resource_id} {kwargs or ''}")
        try:
            result = await asyncio.to_thread(method, resource_id, **kwargs)
        except spotipy.SpotifyException as e:
            if e.http_status == 401:
                if self._on_auth_failure is not None:
                    self._on_auth_failure()
                raise AuthenticationError(
                    f"Spotify rejected the access token while fetching {what}",
                    details={"resource_id": resource_id, "http_status": 401}
                ) from e
            if e.http_status == 429:
                raise CatalogTransportError(
                    f"Rate limited while fetching {what}: {resource_id}",
                    details={"resource_id": resource_id, "http_status": 429},
                    http_status=429,
                    is_rate_limit=True
                ) from e
            raise CatalogTransportError(
                f"Failed to fetch {what}: {e.msg}",
                details={
                    "resource_id": resource_id,
                    "http_status": e.http_status,
                    "original_error": str(e),
                },
                http_status=e.http_status
            ) from e
        except requests.RequestException as e:
            raise CatalogTransportError(
                f"Network error while fetching {what}: {e}",
                details={"resource_id": resource_id, "original_error": str(e)}
            ) from e

        if result is None:
            raise CatalogTransportError(
                f"Empty response while fetching {what}: {resource_id}",
                details={"resource_id": resource_id}
            )
        return result
