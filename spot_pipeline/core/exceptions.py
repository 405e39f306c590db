"""
Exception classes for spot-pipeline.

Every failure surfaced by the pipeline is one of the classes below, so
callers can tell apart a malformed URL, rejected credentials, a flaky
catalog, a missing YouTube match and a broken audio stream.

Exception Hierarchy:
    SpotPipelineError (base)
        ConfigError - Configuration file / environment issues
        CatalogError - Spotify catalog issues
            InvalidInputError - URL has no playlist/album/artist reference
                UnsupportedResourceError - Spotify resource of another kind
            AuthenticationError - Client credentials rejected
            CatalogTransportError - Network/HTTP failures other than auth
                CatalogTimeoutError - A fetch attempt ran out of time
            RetryExhaustedError - Every fetch attempt failed
        YouTubeError - YouTube Music search issues
            NoMatchFoundError - Search returned nothing playable
        DownloadError - Audio acquisition issues
            StreamError - Source read, transcode or destination write failed
            TrackInProgressError - Same output already being produced
        TrackStateError - Illegal track status transition
"""


class SpotPipelineError(Exception):
    """
    Base exception for all spot-pipeline errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., track info, URLs).

    Example:
        try:
            metadata = await fetcher.fetch(url)
        except SpotPipelineError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'url': URL that caused the error
                     - 'http_status': HTTP status returned by a remote service
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(SpotPipelineError):
    """
    Raised when there's an issue with the configuration.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - config.yaml has invalid YAML syntax
        - Spotify credentials missing from both config.yaml and environment
        - Invalid field values (e.g., non-positive attempt count)
    """
    pass


# =============================================================================
# Catalog (Spotify) errors
# =============================================================================

class CatalogError(SpotPipelineError):
    """
    Base class for errors raised while resolving catalog metadata.

    These are the errors the retry layer counts as failed attempts.
    """
    pass


class InvalidInputError(CatalogError):
    """
    Raised when a URL does not reference a playlist, album or artist.

    Example:
        raise InvalidInputError(
            "Invalid Spotify URL: https://example.com/foo",
            details={'url': 'https://example.com/foo'}
        )
    """
    pass


class UnsupportedResourceError(InvalidInputError):
    """
    Raised for Spotify resources the pipeline cannot turn into a track list.

    The URL is a well-formed Spotify reference (a track, show, episode...)
    but only playlists, albums and artists are resolved.

    Attributes:
        kind: The resource kind found in the URL (e.g. "track").
    """

    def __init__(self, message: str, kind: str, details: dict | None = None) -> None:
        super().__init__(message, details)
        self.kind = kind


class AuthenticationError(CatalogError):
    """
    Raised when Spotify rejects the client credentials.

    Distinguished from transport failures so callers can stop early
    instead of burning retries on credentials that will never work.

    Common causes:
        - Wrong client_id / client_secret
        - Application revoked in the Spotify Developer Dashboard
        - Bearer token expired or revoked mid-session (HTTP 401)
    """
    pass


class CatalogTransportError(CatalogError):
    """
    Raised for network and HTTP failures other than authentication.

    Attributes:
        http_status: HTTP status code if the API answered, else None.
        is_rate_limit: True if Spotify answered 429 Too Many Requests.

    Example:
        raise CatalogTransportError(
            "Failed to fetch playlist items: http status 502",
            details={'playlist_id': '37i9dQZF1DXcBWIGoYBM5M', 'http_status': 502},
            http_status=502
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        http_status: int | None = None,
        is_rate_limit: bool = False
    ) -> None:
        super().__init__(message, details)
        self.http_status = http_status
        self.is_rate_limit = is_rate_limit


class CatalogTimeoutError(CatalogTransportError):
    """Raised when a single metadata fetch attempt exceeds its time budget."""
    pass


class RetryExhaustedError(CatalogError):
    """
    Raised when every metadata fetch attempt failed or timed out.

    Attributes:
        attempts: Number of attempts that were made.
        last_error: The error observed on the final attempt.
                    Also available as __cause__.
    """

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: BaseException | None,
        details: dict | None = None
    ) -> None:
        super().__init__(message, details)
        self.attempts = attempts
        self.last_error = last_error


# =============================================================================
# YouTube errors
# =============================================================================

class YouTubeError(SpotPipelineError):
    """
    Raised when there's an issue with YouTube Music search.

    This is a NON-CRITICAL error - the other tracks of a playlist
    are still processed if one fails to match.
    """
    pass


class NoMatchFoundError(YouTubeError):
    """
    Raised when a search yields no playable result.

    Example:
        raise NoMatchFoundError(
            "No YouTube result for: Artist Name - Song Title",
            details={'search_query': 'Artist Name - Song Title'}
        )
    """
    pass


# =============================================================================
# Download errors
# =============================================================================

class DownloadError(SpotPipelineError):
    """
    Raised when there's an issue producing the audio file for a track.

    This is a NON-CRITICAL error for the playlist as a whole.
    """
    pass


class StreamError(DownloadError):
    """
    Raised when a stage of the audio pipeline fails.

    Attributes:
        stage: Which stage failed: "source" (reading from YouTube),
               "transcode" (ffmpeg) or "destination" (writing the file).
        original_error: The underlying exception, unmodified.
                        Also available as __cause__.

    Note:
        The destination file is NOT removed on failure and may be truncated.
    """

    def __init__(
        self,
        message: str,
        stage: str,
        original_error: BaseException | None = None,
        details: dict | None = None
    ) -> None:
        super().__init__(message, details)
        self.stage = stage
        self.original_error = original_error


class TrackInProgressError(DownloadError):
    """Raised when a track's output file is already being produced by another run."""
    pass


class TrackStateError(SpotPipelineError):
    """
    Raised on an illegal track status transition.

    Example:
        Completed -> Downloading, or anything after Error.
    """
    pass
