"""
Per-track processing for spot-pipeline.

Drives one Track through its lifecycle:

    NEW -> SEARCHING (SourceMatcher) -> DOWNLOADING (AudioPipeline) -> COMPLETED

Any failure marks the track ERROR with the reason, reports it in the
download failures log and is re-raised to the caller.
"""

from pathlib import Path

from spot_pipeline.core.exceptions import DownloadError, TrackInProgressError
from spot_pipeline.core.logger import get_logger, log_download_failure
from spot_pipeline.download.models import Track, TrackState
from spot_pipeline.download.pipeline import AudioPipeline
from spot_pipeline.spotify.models import PlaylistMetadata
from spot_pipeline.youtube.matcher import SourceMatcher

logger = get_logger(__name__)


def build_tracks(metadata: PlaylistMetadata, playlist_id: str | None = None) -> list[Track]:
    """
    Turn fetched metadata into NEW tracks, numbered from 1 in catalog order.

    Example:
        tracks = build_tracks(metadata)
        tracks[0].index  # 1
    """
    return [
        Track.from_catalog(catalog_track, index=index, playlist_id=playlist_id)
        for index, catalog_track in enumerate(metadata.tracks, start=1)
    ]


class TrackProcessor:
    """
    Matches and downloads tracks into one output folder.

    Attributes:
        _matcher: SourceMatcher for tracks without a YouTube URL.
        _pipeline: AudioPipeline producing the files.
        _output_folder: Destination folder.
        _in_flight: Output paths currently being produced.
    """

    def __init__(
        self,
        matcher: SourceMatcher,
        pipeline: AudioPipeline,
        output_folder: Path
    ) -> None:
        self._matcher = matcher
        self._pipeline = pipeline
        self._output_folder = output_folder
        self._in_flight: set[Path] = set()

    async def process(self, track: Track) -> Path:
        """
        Match (if needed) and download a track.

        Args:
            track: A non-terminal Track.

        Returns:
            Path of the written audio file.

        Raises:
            TrackInProgressError: If the same output file is already being
                                  produced. The track is left untouched.
            TrackStateError: If the track is already COMPLETED or ERROR.
            YouTubeError: If no source could be found (track marked ERROR).
            DownloadError: If the pipeline failed, or the track is past
                           SEARCHING without a YouTube URL (track marked ERROR).
        """
        destination = self._pipeline.output_path(track, self._output_folder)
        if destination in self._in_flight:
            raise TrackInProgressError(
                f"Already processing: {track.label}",
                details={"path": str(destination)}
            )

        self._in_flight.add(destination)
        try:
            return await self._run(track)
        finally:
            self._in_flight.discard(destination)

    async def _run(self, track: Track) -> Path:
        try:
            if not track.youtube_url:
                if not track.is_terminal and not track.status.can_transition_to(TrackState.SEARCHING):
                    raise DownloadError(
                        f"No YouTube URL for {track.status.name} track: {track.label}",
                        details={"track": track.label, "status": track.status.name}
                    )
                track.advance(TrackState.SEARCHING)
                track.youtube_url = await self._matcher.find_source(track.artist, track.name)

            track.advance(TrackState.DOWNLOADING)
            path = await self._pipeline.download(track, self._output_folder)
            track.advance(TrackState.COMPLETED)
        except Exception as e:
            if not track.is_terminal:
                track.fail(str(e))
                log_download_failure(
                    logger,
                    track_name=track.name,
                    artist=track.artist,
                    spotify_url=track.spotify_url,
                    error_message=str(e),
                    index=track.index
                )
            raise

        logger.info(f"Downloaded: {track.label}")
        return path
