"""
Streaming audio pipeline for spot-pipeline.

Turns a YouTube URL into a tagged audio file without intermediate files:

    source reader -> [channel] -> transcoder feeder -> ffmpeg
    ffmpeg -> transcoder reader -> [channel] -> destination writer
    transcoder monitor (drains stderr, checks the exit status)

Stages:
    source: yt-dlp resolves the best audio-only stream, aiohttp streams it
    transcode: ffmpeg converts to the output format and writes the
               title/artist tags; it reads stdin and writes stdout
    destination: chunks are written to
                 <output_folder>/<index> - <artist> - <name>.<format>

    Stages are connected by bounded asyncio.Queue channels, so a slow
    writer throttles the download instead of buffering it in memory.
    None on a channel marks end of stream.

Completion:
    download() returns only once every stage has finished, i.e. after the
    destination file is closed. The first stage failure cancels the other
    stages, kills ffmpeg and is raised as StreamError(stage=...). Once a
    failure has been raised the call never completes successfully.

    A partially written destination file is left in place.

Dependencies:
    - yt-dlp: stream URL extraction (cookies optional)
    - aiohttp: HTTP streaming of the media
    - ffmpeg-python: ffmpeg command line construction
    - ffmpeg binary on PATH (or configured)

Usage:
    pipeline = AudioPipeline(audio_format="mp3")
    path = await pipeline.download(track, Path("Music/My Playlist"))
"""

import asyncio
import contextlib
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Protocol

import aiohttp
import ffmpeg
from yt_dlp import YoutubeDL

from spot_pipeline.core.exceptions import DownloadError, StreamError
from spot_pipeline.core.file_manager import track_path
from spot_pipeline.core.logger import get_logger
from spot_pipeline.download.models import Track

logger = get_logger(__name__)


# =============================================================================
# Pipeline Configuration
# =============================================================================

CHUNK_SIZE = 64 * 1024  # bytes per read
CHANNEL_SIZE = 16  # chunks buffered between two stages

# No total limit (tracks can be long); fail on a stalled connection instead
STREAM_TIMEOUT = aiohttp.ClientTimeout(total=None, sock_connect=30, sock_read=60)

STAGE_SOURCE = "source"
STAGE_TRANSCODE = "transcode"
STAGE_DESTINATION = "destination"

DEFAULT_FORMAT = "mp3"

# Output formats whose ffmpeg muxer differs from the format name.
# MP4-family muxers need a seekable output unless fragmented.
_MUXERS: dict[str, tuple[str, dict[str, Any]]] = {
    "m4a": ("ipod", {"movflags": "frag_keyframe+empty_moov"}),
    "mp4": ("mp4", {"movflags": "frag_keyframe+empty_moov"}),
    "aac": ("adts", {}),
}


# =============================================================================
# ffmpeg transcoder
# =============================================================================

def build_ffmpeg_command(
    audio_format: str,
    title: str,
    artist: str,
    ffmpeg_binary: str = "ffmpeg"
) -> list[str]:
    """
    Build the ffmpeg command line for a pipe-to-pipe transcode.

    Args:
        audio_format: Output format (mp3, m4a, opus, flac, ...).
        title: Value of the title tag.
        artist: Value of the artist tag.
        ffmpeg_binary: ffmpeg executable.

    Returns:
        Argument list ready for asyncio.create_subprocess_exec().

    Example:
        build_ffmpeg_command("mp3", "Song", "Artist")
        # ['ffmpeg', '-i', 'pipe:0', '-f', 'mp3', '-metadata:g:0', 'title=Song',
        #  '-metadata:g:1', 'artist=Artist', '-vn', 'pipe:1',
        #  '-hide_banner', '-loglevel', 'error']
    """
    muxer, muxer_options = _MUXERS.get(audio_format, (audio_format, {}))
    # Distinct keys for the two -metadata options
    tags = {
        "metadata:g:0": f"title={title}",
        "metadata:g:1": f"artist={artist}",
    }
    stream = (
        ffmpeg
        .input("pipe:0")
        .output("pipe:1", format=muxer, vn=None, **muxer_options, **tags)
        .global_args("-hide_banner", "-loglevel", "error")
    )
    return stream.compile(cmd=ffmpeg_binary)


class Transcoder(Protocol):
    """What the pipeline needs from a transcoding process."""

    async def start(self) -> None: ...

    async def write(self, chunk: bytes) -> None: ...

    async def close_input(self) -> None: ...

    async def read(self, size: int) -> bytes: ...

    async def wait(self) -> None: ...

    async def exit_code(self) -> int: ...

    def kill(self) -> None: ...


class FfmpegTranscoder:
    """
    ffmpeg subprocess reading stdin and writing stdout.

    Attributes:
        _command: Full ffmpeg argument list.
        _process: Running process, None before start().
    """

    def __init__(self, command: list[str]) -> None:
        self._command = command
        self._process: asyncio.subprocess.Process | None = None

    async def start(self) -> None:
        logger.debug(f"Starting transcoder: {' '.join(self._command)}")
        self._process = await asyncio.create_subprocess_exec(
            *self._command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

    async def write(self, chunk: bytes) -> None:
        self._process.stdin.write(chunk)
        await self._process.stdin.drain()

    async def close_input(self) -> None:
        self._process.stdin.close()
        await self._process.stdin.wait_closed()

    async def read(self, size: int) -> bytes:
        """Read up to size bytes of output; b"" at end of stream."""
        return await self._process.stdout.read(size)

    async def wait(self) -> None:
        """
        Wait for ffmpeg to exit.

        Raises:
            ffmpeg.Error: If ffmpeg exits with a non-zero status.
        """
        stderr = await self._process.stderr.read()
        returncode = await self._process.wait()
        if returncode != 0:
            logger.debug(f"ffmpeg exited with {returncode}: {stderr.decode(errors='replace')}")
            raise ffmpeg.Error("ffmpeg", None, stderr)

    async def exit_code(self) -> int:
        """Wait for the process to exit, without touching its output."""
        return await self._process.wait()

    def kill(self) -> None:
        if self._process is not None and self._process.returncode is None:
            self._process.kill()


# =============================================================================
# yt-dlp stream extraction
# =============================================================================

class YtDlpLogger:
    """Routes yt-dlp's own output to our debug log."""

    def debug(self, msg: str) -> None:
        logger.debug(f"yt-dlp: {msg}")

    def info(self, msg: str) -> None:
        logger.debug(f"yt-dlp: {msg}")

    def warning(self, msg: str) -> None:
        logger.debug(f"yt-dlp warning: {msg}")

    def error(self, msg: str) -> None:
        logger.debug(f"yt-dlp error: {msg}")


def yt_dlp_options(cookie_file: Path | None = None) -> dict[str, Any]:
    """
    yt-dlp options for resolving the audio stream without downloading.

    Args:
        cookie_file: Optional cookies.txt (YouTube Premium quality,
                     age-restricted videos).
    """
    options: dict[str, Any] = {
        # Best audio-only stream, yt-dlp picks it
        "format": "bestaudio",
        "quiet": True,
        "no_warnings": True,
        "noprogress": True,
        "noplaylist": True,
        "logger": YtDlpLogger(),
        # Try multiple YouTube player clients (fixes "format not available")
        "extractor_args": {
            "youtube": {
                "player_client": ["web", "android", "default"],
            }
        },
    }
    if cookie_file is not None:
        options["cookiefile"] = str(cookie_file)
    return options


# =============================================================================
# Pipeline
# =============================================================================

class AudioPipeline:
    """
    Stream -> transcode -> tag -> file, for one track at a time.

    Attributes:
        audio_format: Output format / file extension.
        _ffmpeg: ffmpeg executable.
        _cookie_file: Optional cookies.txt for yt-dlp.

    Note:
        _open_source() and _create_transcoder() are the two external
        boundaries; subclasses can replace them.
    """

    def __init__(
        self,
        audio_format: str = DEFAULT_FORMAT,
        ffmpeg_binary: str = "ffmpeg",
        cookie_file: Path | None = None
    ) -> None:
        self.audio_format = audio_format
        self._ffmpeg = ffmpeg_binary
        self._cookie_file = cookie_file

        if self._cookie_file is not None and not self._cookie_file.exists():
            logger.warning(
                f"Cookie file not found: {self._cookie_file}. "
                "Continuing without cookies."
            )
            self._cookie_file = None

    def output_path(self, track: Track, output_folder: Path) -> Path:
        """Destination file of a track."""
        return track_path(output_folder, track.index, track.artist, track.name, self.audio_format)

    async def download(self, track: Track, output_folder: Path) -> Path:
        """
        Produce the audio file for a matched track.

        Args:
            track: Track with youtube_url set.
            output_folder: Folder receiving the file (created if missing).

        Returns:
            Path of the written file.

        Raises:
            DownloadError: If the track has no YouTube URL.
            StreamError: If any stage fails; stage tells which one.
        """
        if not track.youtube_url:
            raise DownloadError(
                f"No YouTube URL for: {track.label}",
                details={"track": track.label}
            )

        destination = self.output_path(track, output_folder)
        await self.stream_to_file(
            track.youtube_url, destination, title=track.name, artist=track.artist
        )
        logger.debug(f"Written: {destination}")
        return destination

    async def stream_to_file(
        self,
        url: str,
        destination: Path,
        title: str,
        artist: str
    ) -> None:
        """
        Run the stages for one URL and wait for all of them.

        Raises:
            StreamError: On the first stage failure.
        """
        transcoder = self._create_transcoder(title, artist)
        try:
            await transcoder.start()
        except Exception as e:
            raise _stage_error(STAGE_TRANSCODE, e) from e

        source_channel: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=CHANNEL_SIZE)
        output_channel: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=CHANNEL_SIZE)

        stages = [
            (STAGE_SOURCE, self._read_source(url, source_channel)),
            (STAGE_TRANSCODE, self._feed_transcoder(source_channel, transcoder)),
            (STAGE_TRANSCODE, self._read_transcoder(transcoder, output_channel)),
            (STAGE_TRANSCODE, transcoder.wait()),
            (STAGE_DESTINATION, self._write_destination(output_channel, destination)),
        ]
        await _run_stages(stages, on_failure=transcoder.kill)

    def _create_transcoder(self, title: str, artist: str) -> Transcoder:
        command = build_ffmpeg_command(self.audio_format, title, artist, self._ffmpeg)
        return FfmpegTranscoder(command)

    async def _open_source(self, url: str) -> AsyncIterator[bytes]:
        """
        Stream the best audio-only rendition of a YouTube URL.

        Yields:
            Raw media chunks as served by YouTube.
        """
        info = await asyncio.to_thread(self._extract_stream, url)
        headers = info.get("http_headers") or {}

        async with aiohttp.ClientSession(timeout=STREAM_TIMEOUT) as session:
            async with session.get(info["url"], headers=headers) as response:
                response.raise_for_status()
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    yield chunk

    def _extract_stream(self, url: str) -> dict[str, Any]:
        with YoutubeDL(yt_dlp_options(self._cookie_file)) as ydl:
            info = ydl.extract_info(url, download=False)

        if not info or not info.get("url"):
            raise DownloadError(
                f"No audio stream found for: {url}",
                details={"youtube_url": url}
            )
        logger.debug(
            f"Audio stream for {url}: format {info.get('format_id')} "
            f"({info.get('acodec')}, {info.get('abr')} kbps)"
        )
        return info

    # -------------------------------------------------------------------------
    # Stage bodies
    # -------------------------------------------------------------------------

    async def _read_source(self, url: str, channel: asyncio.Queue) -> None:
        async with contextlib.aclosing(self._open_source(url)) as chunks:
            async for chunk in chunks:
                await channel.put(chunk)
        await channel.put(None)

    async def _feed_transcoder(self, channel: asyncio.Queue, transcoder: Transcoder) -> None:
        try:
            while True:
                chunk = await channel.get()
                if chunk is None:
                    break
                await transcoder.write(chunk)
            await transcoder.close_input()
        except (BrokenPipeError, ConnectionResetError):
            # ffmpeg stopped reading; a failed exit is raised by wait() with its stderr
            if await transcoder.exit_code() != 0:
                return
            raise

    async def _read_transcoder(self, transcoder: Transcoder, channel: asyncio.Queue) -> None:
        while True:
            chunk = await transcoder.read(CHUNK_SIZE)
            if not chunk:
                break
            await channel.put(chunk)
        await channel.put(None)

    async def _write_destination(self, channel: asyncio.Queue, destination: Path) -> None:
        await asyncio.to_thread(destination.parent.mkdir, parents=True, exist_ok=True)
        file = await asyncio.to_thread(open, destination, "wb")
        try:
            while True:
                chunk = await channel.get()
                if chunk is None:
                    break
                await asyncio.to_thread(file.write, chunk)
        finally:
            file.close()


# =============================================================================
# Stage coordination
# =============================================================================

def _stage_error(stage: str, error: BaseException) -> StreamError:
    return StreamError(
        f"Audio pipeline {stage} stage failed: {error}",
        stage=stage,
        original_error=error,
        details={"stage": stage, "original_error": str(error)}
    )


async def _guard_stage(stage: str, body: Awaitable[None]) -> None:
    try:
        await body
    except asyncio.CancelledError:
        raise
    except Exception as e:
        raise _stage_error(stage, e) from e


async def _run_stages(
    stages: list[tuple[str, Awaitable[None]]],
    on_failure: Callable[[], None]
) -> None:
    """
    Run every stage concurrently and settle once.

    Returns when all stages finished. On the first failure the remaining
    stages are cancelled, on_failure() is called and the failure is raised.
    """
    tasks = [
        asyncio.create_task(_guard_stage(stage, body), name=f"audio-{stage}")
        for stage, body in stages
    ]
    failed = True
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        error = next(
            (
                t.exception() for t in tasks
                if t in done and not t.cancelled() and t.exception() is not None
            ),
            None,
        )
        if error is None:
            failed = False
            return
        raise error
    finally:
        pending = [t for t in tasks if not t.done()]
        for task in pending:
            task.cancel()
        if failed:
            on_failure()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
