import threading

import pytest
from spotipy.exceptions import SpotifyException, SpotifyOauthError

from conftest import FakeCatalog, make_tracks
from playlistall.errors import AuthError, Cancelled, PartialBatchError
from playlistall.models import AlbumRef, ArtistRef, Playlist, TrackRef
from playlistall.ratelimit import RetryingCaller, RetryPolicy
from playlistall.walker import CatalogWalker, FlushMode, WalkState


def _walker(catalog, no_sleep, **kwargs):
    sleep, _ = no_sleep
    caller = RetryingCaller(RetryPolicy.fixed(1.0, max_retries=3), sleep=sleep)
    return CatalogWalker(catalog, caller=caller, **kwargs)


def test_two_artists_six_tracks_single_batch(two_artist_catalog, no_sleep):
    walker = _walker(two_artist_catalog, no_sleep)

    result = walker.run(Playlist("pl"))

    assert len(two_artist_catalog.appended) == 1
    playlist_id, ids = two_artist_catalog.appended[0]
    assert playlist_id == "pl"
    assert len(ids) == 6
    assert result.tracks_written == 6
    assert result.artists == 2
    assert walker.state is WalkState.DONE


def test_artists_sorted_by_name_by_default(two_artist_catalog, no_sleep):
    _walker(two_artist_catalog, no_sleep).run(Playlist("pl"))

    # Alpha (al1) before Zeta (al2)
    assert two_artist_catalog.written_ids[:3] == ["al1-t1", "al1-t2", "al1-t3"]


def test_api_order_when_sorting_disabled(two_artist_catalog, no_sleep):
    _walker(two_artist_catalog, no_sleep, sort_artists=False).run(Playlist("pl"))

    assert two_artist_catalog.written_ids[:3] == ["al2-t1", "al2-t2", "al2-t3"]


def test_eager_flush_writes_per_album(two_artist_catalog, no_sleep):
    result = _walker(two_artist_catalog, no_sleep, flush_mode=FlushMode.EAGER).run(Playlist("pl"))

    assert [len(ids) for _, ids in two_artist_catalog.appended] == [3, 3]
    assert result.report.calls == 2
    assert [r.index for r in result.report.written] == [0, 1]


def test_collect_mode_batches_across_albums(no_sleep):
    artists = [ArtistRef("a1", "A")]
    albums = {"a1": [AlbumRef(f"al{i}", f"Album {i}", "2000") for i in range(4)]}
    tracks = {f"al{i}": make_tracks(f"al{i}", [f"Song {j}" for j in range(20)]) for i in range(4)}
    catalog = FakeCatalog(artists, albums, tracks)

    _walker(catalog, no_sleep).run(Playlist("pl"))

    assert [len(ids) for _, ids in catalog.appended] == [50, 30]


def test_reissues_dropped_per_artist_only(no_sleep):
    artists = [ArtistRef("a1", "A"), ArtistRef("a2", "B")]
    albums = {
        "a1": [
            AlbumRef("x1", "Live", "2001-03-01"),
            AlbumRef("x2", "Live", "2001-07-15"),
        ],
        # same name and year under another artist is a different album
        "a2": [AlbumRef("y1", "Live", "2001")],
    }
    tracks = {
        "x1": [TrackRef("t1", "One")],
        "x2": [TrackRef("t2", "One")],
        "y1": [TrackRef("t3", "One")],
    }
    catalog = FakeCatalog(artists, albums, tracks)

    result = _walker(catalog, no_sleep).run(Playlist("pl"))

    assert catalog.written_ids == ["t1", "t3"]
    assert result.albums_seen == 3
    assert result.albums_kept == 2
    assert ("tracks", "x2", 0) not in catalog.calls


def test_remixes_and_unavailable_tracks_skipped(no_sleep):
    artists = [ArtistRef("a1", "A")]
    albums = {"a1": [AlbumRef("al", "Album", "2010")]}
    tracks = {"al": [
        TrackRef("t1", "Song"),
        TrackRef("t2", "Song (Remix)"),
        TrackRef("", "Local file"),
        TrackRef("t4", "Radio Rmx Edit"),
        TrackRef("t5", "Other Song"),
    ]}
    catalog = FakeCatalog(artists, albums, tracks)

    result = _walker(catalog, no_sleep).run(Playlist("pl"))

    assert catalog.written_ids == ["t1", "t5"]
    assert result.tracks_seen == 5
    assert result.tracks_filtered == 2
    assert result.tracks_unavailable == 1


def test_pages_through_everything(no_sleep):
    artists = [ArtistRef(f"a{i:02d}", f"Artist {i:02d}") for i in range(7)]
    albums = {a.id: [AlbumRef(f"{a.id}-al{j}", f"Album {j}", "2000") for j in range(3)] for a in artists}
    tracks = {al.id: make_tracks(al.id, ["x", "y"]) for als in albums.values() for al in als}
    catalog = FakeCatalog(artists, albums, tracks)

    result = _walker(catalog, no_sleep, page_size=2).run(Playlist("pl"))

    assert result.artists == 7
    assert result.albums_kept == 21
    assert len(catalog.written_ids) == 42
    assert len(set(catalog.written_ids)) == 42
    artist_cursors = [c[1] for c in catalog.calls if c[0] == "artists"]
    assert artist_cursors == [None, "a01", "a03", "a05", "a06"]


def test_saved_albums_feed_same_pipeline(two_artist_catalog, no_sleep):
    two_artist_catalog.saved = [
        AlbumRef("s1", "Saved", "2020-02-02"),
        AlbumRef("s2", "saved", "2020"),
    ]
    two_artist_catalog.tracks["s1"] = make_tracks("s1", ["Keep", "Club Mix"])

    result = _walker(two_artist_catalog, no_sleep, include_saved_albums=True).run(Playlist("pl"))

    assert two_artist_catalog.written_ids[-1] == "s1-t1"
    assert result.saved_albums_kept == 1
    assert result.tracks_written == 7
    assert len(two_artist_catalog.appended) == 1


def test_transient_page_errors_are_retried(two_artist_catalog, no_sleep):
    sleep, waits = no_sleep
    original = two_artist_catalog.album_tracks_page
    failures = [SpotifyException(429, -1, "slow down"), SpotifyException(502, -1, "bad gateway")]

    def flaky(album_id, offset=0, limit=50):
        if failures:
            raise failures.pop(0)
        return original(album_id, offset=offset, limit=limit)

    two_artist_catalog.album_tracks_page = flaky

    result = _walker(two_artist_catalog, no_sleep).run(Playlist("pl"))

    assert result.tracks_written == 6
    assert waits == [1.0, 1.0]


def test_build_playlist_creates_then_fills(two_artist_catalog, no_sleep):
    result = _walker(two_artist_catalog, no_sleep).build_playlist("2024-01-01 12:00")

    assert two_artist_catalog.created == [("me", "2024-01-01 12:00", "Play all", False, False)]
    assert result.playlist.id == "pl1"
    assert {pid for pid, _ in two_artist_catalog.appended} == {"pl1"}


def test_failed_write_surfaces_partial_batch(two_artist_catalog, no_sleep):
    def broken(playlist_id, ids):
        raise SpotifyException(403, -1, "forbidden")

    two_artist_catalog.append_tracks = broken

    with pytest.raises(PartialBatchError) as exc:
        _walker(two_artist_catalog, no_sleep, flush_mode=FlushMode.EAGER).run(Playlist("pl"))

    assert exc.value.failed_index == 0
    assert exc.value.report.written == []


def test_cancelled_walk_stops(two_artist_catalog):
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(Cancelled):
        CatalogWalker(two_artist_catalog, cancel=cancel).run(Playlist("pl"))

    assert two_artist_catalog.calls == []
    assert two_artist_catalog.appended == []


def _failing_after_first_append(catalog, error):
    original = catalog.append_tracks

    def append(playlist_id, ids):
        if catalog.appended:
            raise error
        return original(playlist_id, ids)

    catalog.append_tracks = append


def test_rejected_token_mid_run_keeps_written_report(two_artist_catalog, no_sleep):
    _failing_after_first_append(two_artist_catalog, SpotifyOauthError("invalid_grant", error="invalid_grant"))

    with pytest.raises(PartialBatchError) as exc:
        _walker(two_artist_catalog, no_sleep, flush_mode=FlushMode.EAGER).run(Playlist("pl"))

    assert [r.index for r in exc.value.report.written] == [0]
    assert exc.value.failed_index == 1
    assert isinstance(exc.value.cause, AuthError)
    assert two_artist_catalog.written_ids == ["al1-t1", "al1-t2", "al1-t3"]


def test_cancel_after_first_eager_flush(two_artist_catalog, no_sleep):
    sleep, _ = no_sleep
    cancel = threading.Event()
    original = two_artist_catalog.append_tracks

    def append(playlist_id, ids):
        response = original(playlist_id, ids)
        cancel.set()
        return response

    two_artist_catalog.append_tracks = append
    caller = RetryingCaller(RetryPolicy.fixed(1.0, max_retries=3), sleep=sleep)
    walker = CatalogWalker(two_artist_catalog, flush_mode=FlushMode.EAGER, caller=caller, cancel=cancel)

    with pytest.raises(Cancelled):
        walker.run(Playlist("pl"))

    assert len(two_artist_catalog.appended) == 1
    assert [r.index for r in walker.writer.report.written] == [0]
    assert ("tracks", "al2", 0) not in two_artist_catalog.calls
