"""Test the track status machine"""

import pytest

from spot_pipeline.core.exceptions import TrackStateError
from spot_pipeline.download.models import Track, TrackState
from spot_pipeline.spotify.models import CatalogTrack


def _track():
    return Track(artist="Artist", name="Song", index=1)


class TestTrackState:
    """Test allowed and forbidden transitions"""

    def test_full_lifecycle(self):
        """Test the normal forward path"""
        track = _track()

        for state in (TrackState.SEARCHING, TrackState.QUEUED,
                      TrackState.DOWNLOADING, TrackState.COMPLETED):
            track.advance(state)

        assert track.status == TrackState.COMPLETED
        assert track.is_terminal

    def test_states_can_be_skipped(self):
        """Test forward jumps are allowed"""
        track = _track()

        track.advance(TrackState.DOWNLOADING)

        assert track.status == TrackState.DOWNLOADING

    @pytest.mark.parametrize("state", [
        TrackState.NEW, TrackState.SEARCHING, TrackState.QUEUED, TrackState.DOWNLOADING,
    ])
    def test_error_from_any_non_terminal_state(self, state):
        """Test every non-terminal state can fail"""
        track = _track()
        track.status = state

        track.fail("network down")

        assert track.status == TrackState.ERROR
        assert track.error == "network down"

    def test_backwards_transition_rejected(self):
        """Test moving back raises TrackStateError"""
        track = _track()
        track.advance(TrackState.DOWNLOADING)

        with pytest.raises(TrackStateError):
            track.advance(TrackState.SEARCHING)

        assert track.status == TrackState.DOWNLOADING

    def test_same_state_rejected(self):
        """Test a state can't be entered twice"""
        track = _track()
        track.advance(TrackState.SEARCHING)

        with pytest.raises(TrackStateError):
            track.advance(TrackState.SEARCHING)

    @pytest.mark.parametrize("terminal", [TrackState.COMPLETED, TrackState.ERROR])
    @pytest.mark.parametrize("target", list(TrackState))
    def test_terminal_states_are_final(self, terminal, target):
        """Test nothing leaves COMPLETED or ERROR"""
        track = _track()
        track.status = terminal

        with pytest.raises(TrackStateError):
            track.advance(target)

    def test_completed_track_cannot_fail(self):
        """Test fail() on a completed track keeps it completed"""
        track = _track()
        track.advance(TrackState.COMPLETED)

        with pytest.raises(TrackStateError):
            track.fail("late error")

        assert track.status == TrackState.COMPLETED
        assert track.error is None


class TestTrack:
    """Test Track construction"""

    def test_from_catalog(self):
        """Test a catalog entry becomes a NEW track"""
        catalog_track = CatalogTrack(
            artist="Band, Guest",
            name="Song",
            duration=180000,
            preview_url=None,
            source_uri="spotify:track:abc123",
        )

        track = Track.from_catalog(catalog_track, index=4, playlist_id="pl1")

        assert track.status == TrackState.NEW
        assert track.index == 4
        assert track.spotify_url == "https://open.spotify.com/track/abc123"
        assert track.youtube_url is None
        assert track.playlist_id == "pl1"
        assert track.label == "Band, Guest - Song"
