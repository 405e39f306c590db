"""
Output file naming for spot-pipeline.

Every track is written to:

    <output_folder>/<index> - <artist> - <name>.<format>

Artist and title come straight from Spotify and may contain characters
that are illegal in file names ("AC/DC", "What?"), so each component is
sanitized before the path is built.
"""

import re
from pathlib import Path


# Characters that are invalid in filenames on various operating systems
_INVALID_CHARS_PATTERN = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

# Maximum component length (conservative for cross-platform compatibility)
_MAX_FILENAME_LENGTH = 200


def sanitize_filename(name: str) -> str:
    """
    Sanitize a string for use in a filename.

    Args:
        name: The string to sanitize.

    Returns:
        A sanitized string safe for use in filenames.

    Behavior:
        - Replaces invalid characters with underscores
        - Strips leading/trailing whitespace and dots
        - Truncates to maximum length
        - Returns "Unknown" if result is empty
    """
    if not name:
        return "Unknown"

    result = _INVALID_CHARS_PATTERN.sub("_", name)

    # Dots at start can hide files on Unix
    result = result.strip(" .")

    if len(result) > _MAX_FILENAME_LENGTH:
        result = result[:_MAX_FILENAME_LENGTH].rstrip(" .")

    return result if result else "Unknown"


def track_filename(index: int, artist: str, name: str, audio_format: str) -> str:
    """
    Build the file name for a track.

    Example:
        track_filename(3, "AC/DC", "Thunderstruck", "mp3")
        # "3 - AC_DC - Thunderstruck.mp3"
    """
    return f"{index} - {sanitize_filename(artist)} - {sanitize_filename(name)}.{audio_format}"


def track_path(output_folder: Path, index: int, artist: str, name: str, audio_format: str) -> Path:
    """Full destination path of a track inside output_folder."""
    return output_folder / track_filename(index, artist, name, audio_format)


def playlist_folder(output_dir: Path, playlist_name: str) -> Path:
    """Folder holding the files of one playlist/album/artist run."""
    return output_dir / sanitize_filename(playlist_name)
