"""
spot-pipeline: Download Spotify playlists, albums and artist top tracks
via YouTube Music.

Architecture:
    spotify/: Resolve a catalog URL into an ordered track list
        - Parse the URL (playlist, album or artist)
        - Client-credentials authentication
        - Playlist pagination, album listing, artist top tracks
        - Bounded retries with a per-attempt timeout

    youtube/: Find a YouTube source for each track
        - YouTube Music search for "Artist - Title", first result

    download/: Produce one tagged audio file per track
        - yt-dlp stream extraction, aiohttp streaming
        - ffmpeg transcoding with title/artist tags, pipe to pipe
        - Track status machine and per-track processing

    core/: Configuration, exceptions, logging, file naming, progress bar

Usage:
    spot-pipeline "https://open.spotify.com/playlist/..."
"""

__version__ = "0.1.0"
