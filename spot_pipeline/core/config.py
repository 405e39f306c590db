"""
Configuration management for spot-pipeline.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml, with secrets and a few
common settings overridable from the environment (or a .env file).

Configuration File Location:
    By default config.yaml is read from the current working directory.
    A missing default file is not an error as long as the environment
    provides the Spotify credentials.

Environment Overrides:
    SPOTIFY_CLIENT_ID       -> spotify.client_id
    SPOTIFY_CLIENT_SECRET   -> spotify.client_secret
    AUDIO_FORMAT            -> output.format
    DOWNLOAD_OUTPUT_DIR     -> output.directory

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"
      market: "US"
      cache_token: false

    output:
      directory: "~/Music/SpotPipeline"
      format: "mp3"

    fetch:
      max_attempts: 3
      attempt_timeout: 10
      backoff_base: 0
      fail_fast_on_auth: false

    youtube:
      search_filter: "songs"
      cookie_file: null
      ffmpeg: "ffmpeg"
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from spot_pipeline.core.exceptions import ConfigError


# Default configuration file name (always in current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_OUTPUT_DIRECTORY = "~/Music/SpotPipeline"
DEFAULT_AUDIO_FORMAT = "mp3"
DEFAULT_MARKET = "US"

# ytmusicapi search filters that return playable videoIds
SEARCH_FILTERS = ("songs", "videos")

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "SPOTIFY_CLIENT_ID": ("spotify", "client_id"),
    "SPOTIFY_CLIENT_SECRET": ("spotify", "client_secret"),
    "AUDIO_FORMAT": ("output", "format"),
    "DOWNLOAD_OUTPUT_DIR": ("output", "directory"),
}


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify API credentials configuration.

    Attributes:
        client_id: The Spotify application client ID.
        client_secret: The Spotify application client secret.
        market: Country code used for artist top-tracks.
        cache_token: If True, bearer tokens are shared process-wide and
                     reused until they expire. If False, every metadata
                     fetch performs a fresh credential exchange.
    """
    client_id: str
    client_secret: str
    market: str = DEFAULT_MARKET
    cache_token: bool = False


@dataclass(frozen=True)
class OutputConfig:
    """
    Output configuration.

    Attributes:
        directory: Absolute path where playlist folders are created.
        format: Output container/codec handed to ffmpeg and used as the
                file extension (e.g. "mp3", "m4a", "flac", "opus").
    """
    directory: Path
    format: str = DEFAULT_AUDIO_FORMAT


@dataclass(frozen=True)
class FetchConfig:
    """
    Metadata fetch retry policy.

    Attributes:
        max_attempts: Total number of attempts for one metadata fetch.
        attempt_timeout: Seconds allowed for a single attempt.
        backoff_base: Base delay in seconds between attempts (0 = none).
        fail_fast_on_auth: Stop retrying as soon as credentials are rejected.
    """
    max_attempts: int = 3
    attempt_timeout: float = 10.0
    backoff_base: float = 0.0
    fail_fast_on_auth: bool = False


@dataclass(frozen=True)
class YouTubeConfig:
    """
    YouTube search and download configuration.

    Attributes:
        search_filter: ytmusicapi search filter, "songs" or "videos".
        cookie_file: Optional cookies.txt for yt-dlp (age-restricted
                     videos, YouTube Premium quality).
        ffmpeg: ffmpeg executable name or path.
    """
    search_filter: str = "songs"
    cookie_file: Path | None = None
    ffmpeg: str = "ffmpeg"


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Example:
        config = load_config()
        print(f"Saving to: {config.output.directory}")
        print(f"Using {config.fetch.max_attempts} fetch attempts")
    """
    spotify: SpotifyConfig
    output: OutputConfig
    fetch: FetchConfig
    youtube: YouTubeConfig


def load_config(config_path: Path | None = None, use_env: bool = True) -> Config:
    """
    Load and validate configuration from config.yaml and the environment.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory.
        use_env: If True, load .env and apply environment overrides.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit config file is not found, the YAML is
                     invalid, required fields are missing, or values are invalid.

    Behavior:
        1. Read config file (explicit path must exist; default may be absent)
        2. Apply environment overrides (.env loaded first)
        3. Validate each section, applying defaults
        4. Return frozen Config object
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if config_path.exists():
        raw_config = _read_config_file(config_path)
    elif explicit:
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )
    else:
        raw_config = {}

    if use_env:
        load_dotenv()
        _apply_env_overrides(raw_config)

    _validate_sections(raw_config)

    return Config(
        spotify=_parse_spotify_config(raw_config.get("spotify") or {}),
        output=_parse_output_config(raw_config.get("output") or {}),
        fetch=_parse_fetch_config(raw_config.get("fetch") or {}),
        youtube=_parse_youtube_config(raw_config.get("youtube") or {}),
    )


def _read_config_file(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except IOError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if raw_config is None:
        return {}

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    return raw_config


def _apply_env_overrides(raw_config: dict[str, Any]) -> None:
    """
    Overlay environment variables onto the raw configuration in place.

    Environment variables take precedence over the file so credentials
    can be kept out of config.yaml.
    """
    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            section_data = raw_config.get(section)
            if not isinstance(section_data, dict):
                section_data = {}
                raw_config[section] = section_data
            section_data[key] = value


def _validate_sections(raw_config: dict[str, Any]) -> None:
    for section in ("spotify", "output", "fetch", "youtube"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _parse_spotify_config(spotify_section: dict[str, Any]) -> SpotifyConfig:
    """
    Parse and validate the Spotify configuration section.

    Raises:
        ConfigError: If client_id or client_secret is missing or empty.
    """
    client_id = spotify_section.get("client_id", "")
    client_secret = spotify_section.get("client_secret", "")

    if not isinstance(client_id, str) or not client_id.strip():
        raise ConfigError(
            "'spotify.client_id' must be a non-empty string "
            "(or set SPOTIFY_CLIENT_ID)",
            details={"field": "spotify.client_id"}
        )

    if not isinstance(client_secret, str) or not client_secret.strip():
        raise ConfigError(
            "'spotify.client_secret' must be a non-empty string "
            "(or set SPOTIFY_CLIENT_SECRET)",
            details={"field": "spotify.client_secret"}
        )

    market = spotify_section.get("market", DEFAULT_MARKET)
    if not isinstance(market, str) or not market.strip():
        raise ConfigError(
            "'spotify.market' must be a country code string",
            details={"field": "spotify.market", "value": market}
        )

    cache_token = spotify_section.get("cache_token", False)
    if not isinstance(cache_token, bool):
        raise ConfigError(
            "'spotify.cache_token' must be true or false",
            details={"field": "spotify.cache_token", "value": cache_token}
        )

    return SpotifyConfig(
        client_id=client_id.strip(),
        client_secret=client_secret.strip(),
        market=market.strip().upper(),
        cache_token=cache_token
    )


def _parse_output_config(output_section: dict[str, Any]) -> OutputConfig:
    """
    Parse the output section.

    Expands ~ to home directory and converts to absolute Path.
    Does NOT create the directory (that happens at download time).
    The format is passed through untouched apart from trimming.
    """
    directory = output_section.get("directory", DEFAULT_OUTPUT_DIRECTORY)
    if not isinstance(directory, str) or not directory.strip():
        raise ConfigError(
            "'output.directory' must be a non-empty string",
            details={"field": "output.directory"}
        )

    audio_format = output_section.get("format", DEFAULT_AUDIO_FORMAT)
    if not isinstance(audio_format, str) or not audio_format.strip():
        raise ConfigError(
            "'output.format' must be a non-empty string",
            details={"field": "output.format"}
        )

    return OutputConfig(
        directory=Path(directory.strip()).expanduser().resolve(),
        format=audio_format.strip().lstrip(".")
    )


def _parse_fetch_config(fetch_section: dict[str, Any]) -> FetchConfig:
    max_attempts = fetch_section.get("max_attempts", 3)
    if isinstance(max_attempts, bool) or not isinstance(max_attempts, int) or max_attempts < 1:
        raise ConfigError(
            "'fetch.max_attempts' must be a positive integer",
            details={"field": "fetch.max_attempts", "value": max_attempts}
        )

    attempt_timeout = fetch_section.get("attempt_timeout", 10.0)
    if isinstance(attempt_timeout, bool) or not isinstance(attempt_timeout, (int, float)) \
            or attempt_timeout <= 0:
        raise ConfigError(
            "'fetch.attempt_timeout' must be a positive number of seconds",
            details={"field": "fetch.attempt_timeout", "value": attempt_timeout}
        )

    backoff_base = fetch_section.get("backoff_base", 0.0)
    if isinstance(backoff_base, bool) or not isinstance(backoff_base, (int, float)) \
            or backoff_base < 0:
        raise ConfigError(
            "'fetch.backoff_base' must be zero or a positive number of seconds",
            details={"field": "fetch.backoff_base", "value": backoff_base}
        )

    fail_fast_on_auth = fetch_section.get("fail_fast_on_auth", False)
    if not isinstance(fail_fast_on_auth, bool):
        raise ConfigError(
            "'fetch.fail_fast_on_auth' must be true or false",
            details={"field": "fetch.fail_fast_on_auth", "value": fail_fast_on_auth}
        )

    return FetchConfig(
        max_attempts=max_attempts,
        attempt_timeout=float(attempt_timeout),
        backoff_base=float(backoff_base),
        fail_fast_on_auth=fail_fast_on_auth
    )


def _parse_youtube_config(youtube_section: dict[str, Any]) -> YouTubeConfig:
    """
    Parse the youtube section.

    Raises:
        ConfigError: If search_filter is unknown, or if cookie_file
                     is specified but doesn't exist.
    """
    search_filter = youtube_section.get("search_filter", "songs")
    if search_filter not in SEARCH_FILTERS:
        raise ConfigError(
            f"'youtube.search_filter' must be one of {', '.join(SEARCH_FILTERS)}",
            details={"field": "youtube.search_filter", "value": search_filter}
        )

    cookie_file = None
    raw_cookie = youtube_section.get("cookie_file")
    if raw_cookie is not None:
        if not isinstance(raw_cookie, str):
            raise ConfigError(
                "'youtube.cookie_file' must be a string path or null",
                details={"field": "youtube.cookie_file"}
            )
        cookie_path = Path(raw_cookie).expanduser().resolve()
        if not cookie_path.exists():
            raise ConfigError(
                f"Cookie file not found: {cookie_path}",
                details={"field": "youtube.cookie_file", "path": str(cookie_path)}
            )
        cookie_file = cookie_path

    ffmpeg = youtube_section.get("ffmpeg", "ffmpeg")
    if not isinstance(ffmpeg, str) or not ffmpeg.strip():
        raise ConfigError(
            "'youtube.ffmpeg' must be a non-empty string",
            details={"field": "youtube.ffmpeg"}
        )

    return YouTubeConfig(
        search_filter=search_filter,
        cookie_file=cookie_file,
        ffmpeg=ffmpeg.strip()
    )
