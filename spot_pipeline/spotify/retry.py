"""
Bounded retries for catalog metadata fetches.

The Spotify API has transient rate limiting and network hiccups, so a
metadata fetch is attempted up to max_attempts times, each attempt bounded
by its own timeout.

Retry Policy:
    - Attempts run strictly one after another, never in parallel.
    - Each attempt is all-or-nothing: a failed or timed-out attempt leaves
      nothing behind, and results are never merged across attempts.
    - The first successful result is returned immediately.
    - A timed-out attempt is abandoned (its worker thread may still be
      running) and counted as failed. Its state is local to that attempt,
      so a late completion cannot leak into the next one.
    - After the last attempt, RetryExhaustedError is raised, chained from
      the last observed error.
    - AuthenticationError is retried like any other failure unless
      fail_fast_on_auth is set.

Usage:
    fetcher = RetryingFetcher(resolver, max_attempts=3, attempt_timeout=10.0)
    metadata = await fetcher.fetch(url)
"""

import asyncio
import random
from typing import Awaitable, Callable

from spot_pipeline.core.exceptions import (
    AuthenticationError,
    CatalogError,
    CatalogTimeoutError,
    RetryExhaustedError,
)
from spot_pipeline.core.logger import get_logger
from spot_pipeline.spotify.models import PlaylistMetadata
from spot_pipeline.spotify.resolver import CatalogResolver

logger = get_logger(__name__)


DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_ATTEMPT_TIMEOUT = 10.0  # seconds

MAX_DELAY = 15.0  # seconds
JITTER_FACTOR = 0.3  # randomness factor for backoff


def calculate_backoff(attempt: int, base_delay: float) -> float:
    """
    Exponential backoff delay with jitter.

    Args:
        attempt: Number of failed attempts so far (1 after the first failure).
        base_delay: Base delay in seconds. 0 disables waiting.

    Returns:
        Delay in seconds.
    """
    if base_delay <= 0:
        return 0.0

    delay = min(base_delay * (2 ** (attempt - 1)), MAX_DELAY)
    jitter = delay * JITTER_FACTOR * (2 * random.random() - 1)
    return max(0.0, delay + jitter)


async def fetch_with_retry(
    fetch: Callable[[str], Awaitable[PlaylistMetadata]],
    url: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT,
    backoff_base: float = 0.0,
    fail_fast_on_auth: bool = False
) -> PlaylistMetadata:
    """
    Call fetch(url) until it succeeds or the attempts run out.

    Args:
        fetch: Coroutine function producing PlaylistMetadata for a URL.
        url: Catalog URL.
        max_attempts: Total number of attempts (>= 1).
        attempt_timeout: Seconds allowed per attempt.
        backoff_base: Base delay between attempts; 0 retries immediately.
        fail_fast_on_auth: Re-raise AuthenticationError on the first occurrence.

    Returns:
        The first successful PlaylistMetadata, tracks defaulted to [].

    Raises:
        RetryExhaustedError: If every attempt failed or timed out.
        AuthenticationError: Only when fail_fast_on_auth is True.
        ValueError: If max_attempts < 1.

    Note:
        Only CatalogError and timeouts count as failed attempts. Any other
        exception is a bug and propagates immediately.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: CatalogError | None = None

    for attempt in range(1, max_attempts + 1):
        logger.debug(f"[Fetching details] Attempt {attempt}/{max_attempts} for {url}")
        try:
            result = await asyncio.wait_for(fetch(url), timeout=attempt_timeout)
        except asyncio.TimeoutError as e:
            last_error = CatalogTimeoutError(
                f"Timeout during metadata fetch after {attempt_timeout:g}s",
                details={"url": url, "attempt": attempt, "timeout": attempt_timeout}
            )
            last_error.__cause__ = e
        except AuthenticationError as e:
            if fail_fast_on_auth:
                raise
            last_error = e
        except CatalogError as e:
            last_error = e
        else:
            logger.debug(f"[Fetching details] Success on attempt {attempt}")
            return PlaylistMetadata(name=result.name, tracks=list(result.tracks or []))

        logger.warning(
            f"Metadata fetch attempt {attempt}/{max_attempts} failed: {last_error}"
        )

        if attempt < max_attempts:
            delay = calculate_backoff(attempt, backoff_base)
            if delay > 0:
                logger.debug(f"Retrying in {delay:.1f}s")
                await asyncio.sleep(delay)

    raise RetryExhaustedError(
        f"Failed to fetch {url} after {max_attempts} attempts: {last_error}",
        attempts=max_attempts,
        last_error=last_error,
        details={"url": url, "original_error": str(last_error)}
    ) from last_error


class RetryingFetcher:
    """
    CatalogResolver wrapped with the retry policy.

    Attributes:
        _resolver: The resolver doing the actual fetch.
        max_attempts: Total attempts per fetch.
        attempt_timeout: Seconds allowed per attempt.
        backoff_base: Base delay between attempts.
        fail_fast_on_auth: Whether rejected credentials stop the retries.
    """

    def __init__(
        self,
        resolver: CatalogResolver,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT,
        backoff_base: float = 0.0,
        fail_fast_on_auth: bool = False
    ) -> None:
        self._resolver = resolver
        self.max_attempts = max_attempts
        self.attempt_timeout = attempt_timeout
        self.backoff_base = backoff_base
        self.fail_fast_on_auth = fail_fast_on_auth

    async def fetch(self, url: str) -> PlaylistMetadata:
        """Fetch metadata for url with retries. See fetch_with_retry()."""
        return await fetch_with_retry(
            self._resolver.fetch_metadata,
            url,
            max_attempts=self.max_attempts,
            attempt_timeout=self.attempt_timeout,
            backoff_base=self.backoff_base,
            fail_fast_on_auth=self.fail_fast_on_auth,
        )
