"""
Logging configuration for spot-pipeline.

This module sets up the logging system with multiple outputs:
    - Console: Colored, tqdm-compatible output (INFO and above)
    - log_full_<timestamp>.log: Complete log of all events (DEBUG and above)
    - log_errors_<timestamp>.log: Only ERROR and CRITICAL level messages
    - download_failures_<timestamp>.log: Tracks that could not be produced,
      with their Spotify URL and the failure reason

Log File Locations:
    All log files are created in <output_dir>/logs, one set per run.

Usage:
    from spot_pipeline.core.logger import setup_logging, get_logger

    setup_logging(output_dir)  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Fetching playlist")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that colors the level name on the console.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        return f"{color}{record.levelname}{Colors.RESET}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking progress bars.

    Uses tqdm.write(), which prints above any active bar instead of
    tearing through it.

    Attributes:
        stream: The output stream (defaults to sys.stderr).
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class DownloadFailedTrackHandler(logging.Handler):
    """
    Handler that collects failed tracks into a human-readable report.

    Only records carrying the extra fields set by log_download_failure()
    are written, in this format:

        3 - Artist Name - Song Title
        https://open.spotify.com/track/xxxxx
        Reason: No YouTube result for: Artist Name - Song Title

    Attributes:
        report_path: Path to the download_failures log file.
        report_file: Open file handle (None until open() is called).
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "download_failed_track_name"):
            return

        if self.report_file is None:
            return

        try:
            track_name = getattr(record, "download_failed_track_name", "Unknown")
            artist = getattr(record, "download_failed_track_artist", "Unknown")
            url = getattr(record, "download_failed_track_url", "")
            number = getattr(record, "download_failed_track_number", None)
            reason = getattr(record, "download_failed_reason", "")

            if number is not None:
                label = f"{number} - {artist} - {track_name}"
            else:
                label = f"{artist} - {track_name}"

            self.report_file.write(f"{label}\n")
            self.report_file.write(f"{url}\n")
            self.report_file.write(f"Reason: {reason}\n\n")
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """Close the report file handle. Safe to call multiple times."""
        if self.report_file is not None:
            self.report_file.close()
            self.report_file = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """Filter that only allows ERROR and CRITICAL level records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(output_dir: Path, verbose: bool = False) -> Path:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        output_dir: Directory where log files will be created.
                    Logs are stored in a 'logs' subdirectory.
        verbose: If True, the console also shows DEBUG messages.

    Returns:
        The logs directory that was created.

    Behavior:
        1. Create output_dir/logs if it doesn't exist
        2. Configure root logger level to DEBUG, dropping existing handlers
        3. Console handler (TqdmLoggingHandler), INFO or DEBUG
        4. Full log file handler, DEBUG
        5. Error log file handler, filtered to ERROR+
        6. Download failures report handler
        7. Quiet down chatty third-party loggers
    """
    logs_dir = output_dir / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_handler = logging.FileHandler(
        logs_dir / f"log_full_{timestamp}.log", mode="w", encoding="utf-8"
    )
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_handler = logging.FileHandler(
        logs_dir / f"log_errors_{timestamp}.log", mode="w", encoding="utf-8"
    )
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    download_handler = DownloadFailedTrackHandler(
        logs_dir / f"download_failures_{timestamp}.log"
    )
    download_handler.open()
    root_logger.addHandler(download_handler)

    for noisy in ("urllib3", "spotipy", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logs_dir


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Note:
        Loggers obtained before setup_logging() is called will have no
        handlers and will not produce output.
    """
    return logging.getLogger(name)


def format_matched_message(artist: str, name: str, url: str) -> str:
    """Format a 'Matched' console message with colors."""
    return (
        f"{Colors.GREEN}Matched{Colors.RESET}: "
        f"{artist} - {name} -> "
        f"{Colors.CYAN}{url}{Colors.RESET}"
    )


def format_no_match_message(artist: str, name: str, reason: str) -> str:
    """Format a 'No match' console message with colors."""
    return (
        f"{Colors.RED}No match{Colors.RESET}: "
        f"{artist} - {name} "
        f"({reason})"
    )


def log_download_failure(
    logger: logging.Logger,
    track_name: str,
    artist: str,
    spotify_url: str,
    error_message: str,
    index: int | None = None
) -> None:
    """
    Log a track that could not be produced.

    Attaches the extra fields DownloadFailedTrackHandler looks for, so the
    failure also lands in the download failures report.

    Example:
        log_download_failure(
            logger,
            track_name="Song Title",
            artist="Artist Name",
            spotify_url="https://open.spotify.com/track/xxx",
            error_message="Video unavailable",
            index=3
        )
    """
    logger.error(
        f"Download failed: {artist} - {track_name} - {error_message}",
        extra={
            "download_failed_track_name": track_name,
            "download_failed_track_artist": artist,
            "download_failed_track_url": spotify_url,
            "download_failed_track_number": index,
            "download_failed_reason": error_message,
        }
    )


def shutdown_logging() -> None:
    """
    Flush, close and detach every root handler.

    Typically called in a finally block at application exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        handler.flush()
        handler.close()
        root_logger.removeHandler(handler)
