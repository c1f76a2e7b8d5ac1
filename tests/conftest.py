import logging

import pytest

from playlistall.models import AlbumRef, ArtistRef, Page, Playlist, TrackRef


ENV_KEYS = [
    "SPOTIPY_CLIENT_ID",
    "SPOTIPY_CLIENT_SECRET",
    "SPOTIPY_REDIRECT_URI",
    "SPOTIPY_REFRESH_TOKEN",
    "SPOTIPY_CACHE_PATH",
    "PLAYLISTALL_FLUSH_MODE",
    "PLAYLISTALL_SORT_ARTISTS",
    "PLAYLISTALL_SAVED_ALBUMS",
    "PLAYLISTALL_DEDUP_BY_TYPE",
    "PLAYLISTALL_ON_BATCH_FAILURE",
    "PLAYLISTALL_MAX_RETRIES",
    "PLAYLISTALL_BACKOFF_BASE",
    "PLAYLISTALL_PUBLIC",
    "SPOTIFY_API_DELAY",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """
    Ensure tests don't leak env or pick up a developer's .env file.
    """
    for k in ENV_KEYS:
        monkeypatch.delenv(k, raising=False)
    monkeypatch.chdir(tmp_path)

    yield

    logger = logging.getLogger("playlistall")
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


class FakeCatalog:
    """In-memory stand-in for SpotifyClient."""

    def __init__(self, artists=(), albums=None, tracks=None, saved=(), user_id="me"):
        self.artists = list(artists)
        self.albums = albums or {}
        self.tracks = tracks or {}
        self.saved = list(saved)
        self.user_id = user_id
        self.created = []
        self.appended = []
        self.calls = []

    def current_user_id(self):
        return self.user_id

    def followed_artists_page(self, after=None, limit=50):
        self.calls.append(("artists", after))
        start = 0
        if after is not None:
            start = [a.id for a in self.artists].index(after) + 1
        return Page(self.artists[start:start + limit], cursor=after)

    def artist_albums_page(self, artist_id, offset=0, limit=50):
        self.calls.append(("albums", artist_id, offset))
        return Page(self.albums.get(artist_id, [])[offset:offset + limit], cursor=offset)

    def album_tracks_page(self, album_id, offset=0, limit=50):
        self.calls.append(("tracks", album_id, offset))
        return Page(self.tracks.get(album_id, [])[offset:offset + limit], cursor=offset)

    def saved_albums_page(self, offset=0, limit=50):
        self.calls.append(("saved", offset))
        return Page(self.saved[offset:offset + limit], cursor=offset)

    def create_playlist(self, owner_id, name, description="", public=False, collaborative=False):
        playlist = Playlist(id=f"pl{len(self.created) + 1}", name=name)
        self.created.append((owner_id, name, description, public, collaborative))
        return playlist

    def append_tracks(self, playlist_id, track_ids):
        assert len(track_ids) <= 50
        self.appended.append((playlist_id, list(track_ids)))
        return {"snapshot_id": str(len(self.appended))}

    @property
    def written_ids(self):
        return [tid for _, ids in self.appended for tid in ids]


def make_tracks(prefix, names):
    return [TrackRef(id=f"{prefix}-t{i}", name=n) for i, n in enumerate(names, start=1)]


@pytest.fixture
def two_artist_catalog():
    artists = [ArtistRef("a2", "Zeta"), ArtistRef("a1", "Alpha")]
    albums = {
        "a1": [AlbumRef("al1", "First", "2001-01-01", "album")],
        "a2": [AlbumRef("al2", "Second", "2005", "album")],
    }
    tracks = {
        "al1": make_tracks("al1", ["One", "Two", "Three"]),
        "al2": make_tracks("al2", ["Four", "Five", "Six"]),
    }
    return FakeCatalog(artists, albums, tracks)


@pytest.fixture
def no_sleep():
    waits = []
    return waits.append, waits
