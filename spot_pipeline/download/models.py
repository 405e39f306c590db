"""
Track unit of work and its status machine.

Status Lifecycle:
    NEW -> SEARCHING -> QUEUED -> DOWNLOADING -> COMPLETED
    (any non-terminal state) -> ERROR

    - Transitions only move forward; intermediate states may be skipped
      (e.g. NEW -> DOWNLOADING when the YouTube URL is already known).
    - ERROR is reachable from every non-terminal state.
    - COMPLETED and ERROR are terminal: any further transition raises
      TrackStateError. A failed track is not retried automatically.
    - QUEUED is only ever set by the caller, never by the pipeline.
"""

from dataclasses import dataclass
from enum import IntEnum

from spot_pipeline.core.exceptions import TrackStateError
from spot_pipeline.spotify.models import CatalogTrack


class TrackState(IntEnum):
    """Processing status of a Track, ordered along the lifecycle."""

    NEW = 0
    SEARCHING = 1
    QUEUED = 2
    DOWNLOADING = 3
    COMPLETED = 4
    ERROR = 5

    @property
    def is_terminal(self) -> bool:
        return self in (TrackState.COMPLETED, TrackState.ERROR)

    def can_transition_to(self, target: "TrackState") -> bool:
        """
        Check whether moving from this state to target is allowed.

        Example:
            TrackState.NEW.can_transition_to(TrackState.DOWNLOADING)   # True
            TrackState.DOWNLOADING.can_transition_to(TrackState.NEW)   # False
            TrackState.COMPLETED.can_transition_to(TrackState.ERROR)   # False
        """
        if self.is_terminal:
            return False
        return target > self


@dataclass
class Track:
    """
    A track being turned into an audio file.

    Attributes:
        artist: Artist name(s), comma-separated.
        name: Track title.
        index: 1-based position in the playlist, used in the file name.
        spotify_url: Open-web Spotify URL of the track ("" if unknown).
        youtube_url: Matched source URL, None until matched.
        status: Current TrackState.
        playlist_id: Id of the playlist the track came from, if any.
        error: Reason of the last failure, set when status is ERROR.
    """
    artist: str
    name: str
    index: int
    spotify_url: str = ""
    youtube_url: str | None = None
    status: TrackState = TrackState.NEW
    playlist_id: str | None = None
    error: str | None = None

    @classmethod
    def from_catalog(
        cls,
        catalog_track: CatalogTrack,
        index: int,
        playlist_id: str | None = None
    ) -> "Track":
        """Create a NEW Track from a catalog entry."""
        return cls(
            artist=catalog_track.artist,
            name=catalog_track.name,
            index=index,
            spotify_url=catalog_track.spotify_url,
            playlist_id=playlist_id,
        )

    @property
    def label(self) -> str:
        """Human-readable "Artist - Title"."""
        return f"{self.artist} - {self.name}"

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def advance(self, target: TrackState) -> None:
        """
        Move the track to target.

        Raises:
            TrackStateError: If the transition is not allowed.
        """
        if not self.status.can_transition_to(target):
            raise TrackStateError(
                f"Illegal status transition for '{self.label}': "
                f"{self.status.name} -> {target.name}",
                details={"from": self.status.name, "to": target.name}
            )
        self.status = target

    def fail(self, reason: str) -> None:
        """
        Mark the track as failed and record the reason.

        Raises:
            TrackStateError: If the track is already COMPLETED or ERROR.
        """
        self.advance(TrackState.ERROR)
        self.error = reason
