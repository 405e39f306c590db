"""Test configuration and fixtures"""

import tempfile
from pathlib import Path

import pytest

from spot_pipeline.spotify.client import clear_token_caches


def make_track_data(name, artists=("Test Artist",), track_id="track123", duration_ms=210000):
    """Spotify API track object with the fields the resolver reads"""
    return {
        'id': track_id,
        'name': name,
        'artists': [{'id': f'artist_{i}', 'name': a} for i, a in enumerate(artists)],
        'duration_ms': duration_ms,
        'preview_url': None,
        'uri': f'spotify:track:{track_id}',
    }


class FakeSession:
    """
    In-memory stand-in for CatalogSession.

    Serves a playlist of `playlist_size` tracks in pages, plus one album
    and one artist, and records every call.
    """

    def __init__(self, playlist_size=3, playlist_name="Test Playlist"):
        self.playlist_name = playlist_name
        self.playlist_tracks = [
            make_track_data(f"Song {i}", track_id=f"pl{i}") for i in range(playlist_size)
        ]
        self.album_tracks = [
            make_track_data("Album Song 1", artists=("Band", "Guest"), track_id="al1"),
            make_track_data("Album Song 2", artists=("Band",), track_id="al2"),
        ]
        self.top_tracks = [
            make_track_data("Hit 1", artists=("Star",), track_id="top1"),
            make_track_data("Hit 2", artists=("Star",), track_id="top2"),
        ]
        self.calls = []

    async def playlist(self, playlist_id):
        self.calls.append(('playlist', playlist_id))
        return {'id': playlist_id, 'name': self.playlist_name}

    async def playlist_items(self, playlist_id, limit=100, offset=0):
        self.calls.append(('playlist_items', offset))
        page = self.playlist_tracks[offset:offset + limit]
        has_next = offset + limit < len(self.playlist_tracks)
        return {
            'items': [{'track': t} for t in page],
            'next': 'https://api.spotify.com/next' if has_next else None,
        }

    async def album(self, album_id):
        self.calls.append(('album', album_id))
        return {'id': album_id, 'name': 'Test Album', 'tracks': {'items': self.album_tracks}}

    async def artist(self, artist_id):
        self.calls.append(('artist', artist_id))
        return {'id': artist_id, 'name': 'Star'}

    async def artist_top_tracks(self, artist_id):
        self.calls.append(('artist_top_tracks', artist_id))
        return {'tracks': self.top_tracks}


class FakeClient:
    """CatalogClient stand-in handing out a FakeSession"""

    def __init__(self, session):
        self.session = session
        self.authentications = 0

    async def authenticate(self):
        self.authentications += 1
        return self.session


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def sample_track_data():
    """Sample Spotify track object for testing"""
    return make_track_data("Test Song", artists=("Test Artist", "Other Artist"), track_id="abc123")


@pytest.fixture
def session_factory():
    """Build FakeSession instances with a custom playlist size"""
    return FakeSession


@pytest.fixture
def client_factory():
    return FakeClient


@pytest.fixture
def track_data_factory():
    return make_track_data


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def fake_client(fake_session):
    return FakeClient(fake_session)


@pytest.fixture(autouse=True)
def _reset_token_caches():
    yield
    clear_token_caches()
