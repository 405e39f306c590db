"""
Download module for spot-pipeline.

Components:
    - models: Track and the TrackState machine
    - pipeline: AudioPipeline (yt-dlp + aiohttp + ffmpeg)
    - processor: TrackProcessor and build_tracks()
"""

from spot_pipeline.download.models import Track, TrackState
from spot_pipeline.download.pipeline import AudioPipeline, FfmpegTranscoder, build_ffmpeg_command
from spot_pipeline.download.processor import TrackProcessor, build_tracks

__all__ = [
    "Track",
    "TrackState",
    "AudioPipeline",
    "FfmpegTranscoder",
    "build_ffmpeg_command",
    "TrackProcessor",
    "build_tracks",
]
