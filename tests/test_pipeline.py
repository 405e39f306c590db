"""Test the streaming audio pipeline"""

import asyncio
import shutil
from pathlib import Path
from unittest.mock import MagicMock, patch

import ffmpeg
import pytest

from spot_pipeline.core.exceptions import DownloadError, StreamError
from spot_pipeline.download.models import Track
from spot_pipeline.download.pipeline import (
    AudioPipeline,
    FfmpegTranscoder,
    build_ffmpeg_command,
    yt_dlp_options,
)


class FakeTranscoder:
    """Upper-cases its input, in place of ffmpeg"""

    def __init__(self, fail_on_wait=None, fail_on_start=None):
        self._output = asyncio.Queue()
        self._finished = asyncio.Event()
        self.fail_on_wait = fail_on_wait
        self.fail_on_start = fail_on_start
        self.killed = False
        self.input_closed = False

    async def start(self):
        if self.fail_on_start is not None:
            raise self.fail_on_start

    async def write(self, chunk):
        await self._output.put(chunk.upper())

    async def close_input(self):
        self.input_closed = True
        await self._output.put(b"")
        self._finished.set()

    async def read(self, size):
        return await self._output.get()

    async def wait(self):
        await self._finished.wait()
        if self.fail_on_wait is not None:
            raise self.fail_on_wait

    async def exit_code(self):
        await self._finished.wait()
        return 1 if self.fail_on_wait is not None else 0

    def kill(self):
        self.killed = True


class FakePipeline(AudioPipeline):
    """AudioPipeline with in-memory source and transcoder"""

    def __init__(self, chunks=(), source_error=None, transcoder=None, **kwargs):
        super().__init__(**kwargs)
        self.chunks = list(chunks)
        self.source_error = source_error
        self.transcoder = transcoder or FakeTranscoder()
        self.opened_urls = []

    def _create_transcoder(self, title, artist):
        self.transcoder.title = title
        self.transcoder.artist = artist
        return self.transcoder

    async def _open_source(self, url):
        self.opened_urls.append(url)
        for chunk in self.chunks:
            await asyncio.sleep(0)
            yield chunk
        if self.source_error is not None:
            raise self.source_error


class SubprocessPipeline(FakePipeline):
    """In-memory source piped through a real subprocess instead of ffmpeg"""

    def __init__(self, command, **kwargs):
        super().__init__(**kwargs)
        self.command = command

    def _create_transcoder(self, title, artist):
        return FfmpegTranscoder(self.command)


def _track(**overrides):
    values = dict(
        artist="Artist",
        name="Song",
        index=1,
        spotify_url="https://open.spotify.com/track/t1",
        youtube_url="https://music.youtube.com/watch?v=abc123",
    )
    values.update(overrides)
    return Track(**values)


class TestAudioPipeline:
    """Test stage composition and failure handling"""

    @pytest.mark.asyncio
    async def test_download_writes_transcoded_file(self, temp_dir):
        """Test the file holds every transcoded chunk when download returns"""
        pipeline = FakePipeline(chunks=[b"abc", b"def", b"ghi"])

        path = await pipeline.download(_track(), temp_dir / "Playlist")

        assert path == temp_dir / "Playlist" / "1 - Artist - Song.mp3"
        assert path.read_bytes() == b"ABCDEFGHI"
        assert pipeline.opened_urls == ["https://music.youtube.com/watch?v=abc123"]
        assert pipeline.transcoder.input_closed
        assert not pipeline.transcoder.killed

    @pytest.mark.asyncio
    async def test_tags_passed_to_transcoder(self, temp_dir):
        """Test title and artist reach the transcoder"""
        pipeline = FakePipeline(chunks=[b"x"])

        await pipeline.download(_track(name="Title", artist="Someone"), temp_dir)

        assert pipeline.transcoder.title == "Title"
        assert pipeline.transcoder.artist == "Someone"

    @pytest.mark.asyncio
    async def test_file_name_uses_format_and_sanitized_parts(self, temp_dir):
        """Test the output name follows index, artist, title and format"""
        pipeline = FakePipeline(chunks=[b"x"], audio_format="m4a")

        path = await pipeline.download(_track(index=7, artist="AC/DC", name="What?"), temp_dir)

        assert path.name == "7 - AC_DC - What_.m4a"

    @pytest.mark.asyncio
    async def test_source_failure(self, temp_dir):
        """Test a broken stream raises StreamError for the source stage"""
        error = ConnectionError("connection reset")
        pipeline = FakePipeline(chunks=[b"abc"], source_error=error)

        with pytest.raises(StreamError) as exc_info:
            await asyncio.wait_for(pipeline.download(_track(), temp_dir), timeout=5)

        assert exc_info.value.stage == "source"
        assert exc_info.value.original_error is error
        assert exc_info.value.__cause__ is error
        assert pipeline.transcoder.killed

    @pytest.mark.asyncio
    async def test_transcoder_failure(self, temp_dir):
        """Test a failing transcoder raises StreamError for the transcode stage"""
        error = RuntimeError("ffmpeg exited with 1")
        pipeline = FakePipeline(chunks=[b"abc"], transcoder=FakeTranscoder(fail_on_wait=error))

        with pytest.raises(StreamError) as exc_info:
            await asyncio.wait_for(pipeline.download(_track(), temp_dir), timeout=5)

        assert exc_info.value.stage == "transcode"
        assert exc_info.value.original_error is error

    @pytest.mark.asyncio
    async def test_transcoder_cannot_start(self, temp_dir):
        """Test a missing ffmpeg binary is a transcode failure"""
        error = FileNotFoundError("ffmpeg")
        pipeline = FakePipeline(chunks=[b"abc"], transcoder=FakeTranscoder(fail_on_start=error))

        with pytest.raises(StreamError) as exc_info:
            await pipeline.download(_track(), temp_dir)

        assert exc_info.value.stage == "transcode"
        assert pipeline.opened_urls == []

    @pytest.mark.asyncio
    async def test_destination_failure(self, temp_dir):
        """Test an unwritable destination raises StreamError for the destination stage"""
        blocker = temp_dir / "blocker"
        blocker.write_text("not a directory")
        pipeline = FakePipeline(chunks=[b"abc", b"def"])

        with pytest.raises(StreamError) as exc_info:
            await asyncio.wait_for(pipeline.download(_track(), blocker / "Playlist"), timeout=5)

        assert exc_info.value.stage == "destination"
        assert isinstance(exc_info.value.original_error, OSError)
        assert pipeline.transcoder.killed

    @pytest.mark.asyncio
    async def test_failure_settles_while_other_stages_block(self, temp_dir):
        """Test a failing source does not hang on stages that would wait forever"""
        pipeline = FakePipeline(source_error=ValueError("bad stream"))

        with pytest.raises(StreamError):
            await asyncio.wait_for(pipeline.download(_track(), temp_dir), timeout=5)

        remaining = [t for t in asyncio.all_tasks() if t.get_name().startswith("audio-")]
        assert remaining == []

    @pytest.mark.asyncio
    async def test_missing_youtube_url(self, temp_dir):
        """Test a track must be matched before download"""
        pipeline = FakePipeline(chunks=[b"abc"])

        with pytest.raises(DownloadError) as exc_info:
            await pipeline.download(_track(youtube_url=None), temp_dir)

        assert not isinstance(exc_info.value, StreamError)


@pytest.mark.skipif(shutil.which("sh") is None, reason="needs a POSIX shell")
class TestFfmpegTranscoder:
    """Test the subprocess transcoder wiring"""

    @pytest.mark.asyncio
    async def test_output_matches_input(self, temp_dir):
        """Test every byte written to stdin comes back from stdout into the file"""
        chunks = [bytes([i]) * 64 * 1024 for i in range(200)]
        pipeline = SubprocessPipeline(["cat"], chunks=chunks)

        path = await asyncio.wait_for(pipeline.download(_track(), temp_dir), timeout=30)

        assert path.read_bytes() == b"".join(chunks)

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, temp_dir):
        """Test a failing process is a transcode failure carrying its stderr"""
        pipeline = SubprocessPipeline(
            ["sh", "-c", "echo 'Invalid data found' >&2; exit 3"], chunks=[b"abc"]
        )

        with pytest.raises(StreamError) as exc_info:
            await asyncio.wait_for(pipeline.download(_track(), temp_dir), timeout=30)

        assert exc_info.value.stage == "transcode"
        assert isinstance(exc_info.value.original_error, ffmpeg.Error)
        assert b"Invalid data found" in exc_info.value.original_error.stderr

    @pytest.mark.asyncio
    async def test_early_exit_reports_stderr(self, temp_dir):
        """Test a process that stops reading reports its stderr, not a broken pipe"""
        chunks = [b"x" * 64 * 1024] * 200
        pipeline = SubprocessPipeline(
            ["sh", "-c", "head -c 10 > /dev/null; echo 'Invalid data found' >&2; exit 3"],
            chunks=chunks,
        )

        with pytest.raises(StreamError) as exc_info:
            await asyncio.wait_for(pipeline.download(_track(), temp_dir), timeout=30)

        assert exc_info.value.stage == "transcode"
        assert isinstance(exc_info.value.original_error, ffmpeg.Error)
        assert b"Invalid data found" in exc_info.value.original_error.stderr


class TestFfmpegCommand:
    """Test ffmpeg argument construction"""

    def test_mp3(self):
        """Test pipe-to-pipe mp3 with title and artist tags"""
        args = build_ffmpeg_command("mp3", "Song", "Artist")

        assert args[0] == "ffmpeg"
        assert args[args.index("-i") + 1] == "pipe:0"
        assert args[args.index("-f") + 1] == "mp3"
        assert args[args.index("-metadata:g:0") + 1] == "title=Song"
        assert args[args.index("-metadata:g:1") + 1] == "artist=Artist"
        assert "-vn" in args
        assert "pipe:1" in args

    def test_m4a_is_fragmented_ipod(self):
        """Test m4a uses the ipod muxer with fragmented output"""
        args = build_ffmpeg_command("m4a", "Song", "Artist", ffmpeg_binary="/opt/ffmpeg")

        assert args[0] == "/opt/ffmpeg"
        assert args[args.index("-f") + 1] == "ipod"
        assert args[args.index("-movflags") + 1] == "frag_keyframe+empty_moov"


class TestStreamExtraction:
    """Test yt-dlp integration"""

    def test_options_with_cookies(self, temp_dir):
        """Test bestaudio format and optional cookie file"""
        cookies = temp_dir / "cookies.txt"

        assert yt_dlp_options()["format"] == "bestaudio"
        assert "cookiefile" not in yt_dlp_options()
        assert yt_dlp_options(cookies)["cookiefile"] == str(cookies)

    def test_missing_cookie_file_ignored(self, temp_dir):
        """Test a cookie file that doesn't exist is dropped with a warning"""
        pipeline = AudioPipeline(cookie_file=temp_dir / "missing.txt")

        assert pipeline._cookie_file is None

    def test_extract_stream(self):
        """Test the stream URL is taken from yt-dlp's info"""
        info = {'url': 'https://rr1.googlevideo.com/audio', 'http_headers': {'User-Agent': 'x'}}
        with patch("spot_pipeline.download.pipeline.YoutubeDL") as mock_ydl:
            ydl = MagicMock()
            ydl.extract_info.return_value = info
            mock_ydl.return_value.__enter__.return_value = ydl

            result = AudioPipeline()._extract_stream("https://www.youtube.com/watch?v=abc")

        assert result == info
        ydl.extract_info.assert_called_once_with("https://www.youtube.com/watch?v=abc", download=False)

    def test_extract_stream_without_url(self):
        """Test an info dict without a stream URL is a DownloadError"""
        with patch("spot_pipeline.download.pipeline.YoutubeDL") as mock_ydl:
            mock_ydl.return_value.__enter__.return_value.extract_info.return_value = {'id': 'abc'}

            with pytest.raises(DownloadError):
                AudioPipeline()._extract_stream("https://www.youtube.com/watch?v=abc")
