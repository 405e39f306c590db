"""
Core module for spot-pipeline.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - logger: Logging system with multiple outputs
    - file_manager: Output file naming
    - progress: Rich progress bar for track processing

Usage:
    from spot_pipeline.core import (
        Config, load_config,
        setup_logging, get_logger,
        SpotPipelineError, ConfigError
    )
"""

from spot_pipeline.core.config import (
    Config,
    FetchConfig,
    OutputConfig,
    SpotifyConfig,
    YouTubeConfig,
    load_config,
)
from spot_pipeline.core.exceptions import (
    AuthenticationError,
    CatalogError,
    CatalogTimeoutError,
    CatalogTransportError,
    ConfigError,
    DownloadError,
    InvalidInputError,
    NoMatchFoundError,
    RetryExhaustedError,
    SpotPipelineError,
    StreamError,
    TrackInProgressError,
    TrackStateError,
    UnsupportedResourceError,
    YouTubeError,
)
from spot_pipeline.core.logger import (
    get_logger,
    log_download_failure,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    # Config
    "Config",
    "SpotifyConfig",
    "OutputConfig",
    "FetchConfig",
    "YouTubeConfig",
    "load_config",
    # Exceptions
    "SpotPipelineError",
    "ConfigError",
    "CatalogError",
    "InvalidInputError",
    "UnsupportedResourceError",
    "AuthenticationError",
    "CatalogTransportError",
    "CatalogTimeoutError",
    "RetryExhaustedError",
    "YouTubeError",
    "NoMatchFoundError",
    "DownloadError",
    "StreamError",
    "TrackInProgressError",
    "TrackStateError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_download_failure",
    "shutdown_logging",
]
