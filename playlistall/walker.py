"""
Catalog walker: followed artists -> albums -> tracks -> playlist.

The walk is strictly sequential. For every followed artist the walker pages
through its albums and singles, drops reissues with a per-artist
``AlbumDeduplicator``, pages through each remaining album's tracks, drops
remixes, and hands the track IDs to the ``BatchWriter``.

Two flush modes:

- ``FlushMode.COLLECT`` gathers every track ID of the whole run and writes
  once at the end. Fewest append calls; nothing lands in the playlist until
  the catalog has been read completely.
- ``FlushMode.EAGER`` writes each album's tracks before moving to the next
  album. More calls, lower memory, and a failure leaves the playlist filled
  up to the failing album.

The user's saved albums can be fed through the same album -> track -> batch
path as an extra source.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from tqdm import tqdm

from .batch import ON_FAILURE_RAISE, BatchReport, BatchWriter
from .dedup import AlbumDeduplicator
from .filters import filter_tracks
from .models import AlbumRef, ArtistRef, Playlist
from .pagination import PAGE_SIZE, after_last_id, by_offset, paginate
from .ratelimit import RetryingCaller

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Play all"


class FlushMode(str, Enum):
    COLLECT = "collect"
    EAGER = "eager"


class WalkState(str, Enum):
    INIT = "init"
    ENUMERATE_ARTISTS = "enumerate_artists"
    ENUMERATE_ALBUMS = "enumerate_albums"
    ENUMERATE_TRACKS = "enumerate_tracks"
    FILTER = "filter"
    ACCUMULATE = "accumulate"
    FLUSH_BATCH = "flush_batch"
    DONE = "done"


@dataclass
class WalkResult:
    playlist: Optional[Playlist] = None
    artists: int = 0
    albums_seen: int = 0
    albums_kept: int = 0
    saved_albums_kept: int = 0
    tracks_seen: int = 0
    tracks_filtered: int = 0
    tracks_unavailable: int = 0
    report: BatchReport = field(default_factory=BatchReport)

    @property
    def tracks_written(self) -> int:
        return self.report.tracks_written

    @property
    def albums_dropped(self) -> int:
        return self.albums_seen - self.albums_kept - self.saved_albums_kept


class CatalogWalker:
    """Builds one playlist out of a user's followed-artist catalog.

    Args:
        client: Anything with the ``SpotifyClient`` page and write methods.
        flush_mode: When track IDs are written; see module docstring.
        sort_artists: Walk artists by name instead of API order.
        include_saved_albums: Also add the user's saved albums.
        dedup_by_type: Keep a single and an album with the same name/year.
        on_batch_failure: ``"raise"`` or ``"skip"``; see ``batch``.
        caller: Retry wrapper shared by every remote call.
        progress: Show a tqdm progress bar over artists.
        cancel: Event that stops the walk at the next remote call.
    """

    def __init__(self, client, flush_mode: FlushMode = FlushMode.COLLECT,
                 sort_artists: bool = True, include_saved_albums: bool = False,
                 dedup_by_type: bool = False, on_batch_failure: str = ON_FAILURE_RAISE,
                 caller: Optional[RetryingCaller] = None, batch_writer: Optional[BatchWriter] = None,
                 page_size: int = PAGE_SIZE, progress: bool = False,
                 cancel: Optional[threading.Event] = None):
        self.client = client
        self.flush_mode = FlushMode(flush_mode)
        self.sort_artists = sort_artists
        self.include_saved_albums = include_saved_albums
        self.dedup_by_type = dedup_by_type
        self.page_size = page_size
        self.progress = progress
        self.caller = caller or RetryingCaller(cancel=cancel)
        if cancel is not None and self.caller.cancel is None:
            self.caller.cancel = cancel
        self.writer = batch_writer or BatchWriter(
            client.append_tracks, on_failure=on_batch_failure, caller=self.caller
        )
        self._state = WalkState.INIT

    # -------------------------
    # State
    # -------------------------
    @property
    def state(self) -> WalkState:
        return self._state

    def _enter(self, state: WalkState) -> None:
        if state is not self._state:
            logger.debug(f"  state: {self._state.value} -> {state.value}")
            self._state = state

    # -------------------------
    # Listings
    # -------------------------
    def followed_artists(self) -> List[ArtistRef]:
        self._enter(WalkState.ENUMERATE_ARTISTS)
        artists = list(paginate(
            lambda after: self.caller(self.client.followed_artists_page, after=after, limit=self.page_size),
            None,
            after_last_id,
        ))
        if self.sort_artists:
            artists.sort(key=lambda a: a.name)
        return artists

    def artist_albums(self, artist: ArtistRef, result: Optional[WalkResult] = None) -> List[AlbumRef]:
        """Albums and singles of one artist, reissues removed."""
        self._enter(WalkState.ENUMERATE_ALBUMS)
        albums = paginate(
            lambda offset: self.caller(
                self.client.artist_albums_page, artist.id, offset=offset, limit=self.page_size
            ),
            0,
            by_offset,
        )
        return self._dedupe(albums, result)

    def saved_albums(self, result: Optional[WalkResult] = None) -> List[AlbumRef]:
        self._enter(WalkState.ENUMERATE_ALBUMS)
        albums = paginate(
            lambda offset: self.caller(self.client.saved_albums_page, offset=offset, limit=self.page_size),
            0,
            by_offset,
        )
        return self._dedupe(albums, result)

    def _dedupe(self, albums: Iterable[AlbumRef], result: Optional[WalkResult]) -> List[AlbumRef]:
        dedup = AlbumDeduplicator(include_type=self.dedup_by_type)
        kept = []
        for album in albums:
            if result is not None:
                result.albums_seen += 1
            if dedup.accept(album):
                kept.append(album)
            else:
                logger.debug(f"    duplicate {album.album_type} {album.name!r} ({album.release_date})")
        return kept

    def album_track_ids(self, album: AlbumRef, result: Optional[WalkResult] = None) -> List[str]:
        """IDs of an album's playable, non-remix tracks, in album order."""
        self._enter(WalkState.ENUMERATE_TRACKS)
        tracks = list(paginate(
            lambda offset: self.caller(
                self.client.album_tracks_page, album.id, offset=offset, limit=self.page_size
            ),
            0,
            by_offset,
        ))
        self._enter(WalkState.FILTER)
        available = [t for t in tracks if t.available]
        kept = filter_tracks(available)
        if result is not None:
            result.tracks_seen += len(tracks)
            result.tracks_unavailable += len(tracks) - len(available)
            result.tracks_filtered += len(available) - len(kept)
        return [t.id for t in kept]

    # -------------------------
    # Walk
    # -------------------------
    def _flush(self, playlist: Playlist, track_ids: List[str], result: WalkResult) -> None:
        if not track_ids:
            return
        self._enter(WalkState.FLUSH_BATCH)
        self.caller.check_cancelled()
        result.report.merge(self.writer.write(playlist.id, track_ids))

    def _add_albums(self, playlist: Playlist, albums: List[AlbumRef],
                    pending: List[str], result: WalkResult) -> None:
        for album in albums:
            ids = self.album_track_ids(album, result)
            self._enter(WalkState.ACCUMULATE)
            if self.flush_mode is FlushMode.EAGER:
                self._flush(playlist, ids, result)
            else:
                pending.extend(ids)

    def run(self, playlist: Playlist) -> WalkResult:
        """Walk the catalog and append everything found to ``playlist``."""
        result = WalkResult(playlist=playlist)
        pending: List[str] = []

        artists = self.followed_artists()
        result.artists = len(artists)
        logger.info(f"🎤 {len(artists)} followed artists")

        iterator = artists
        if self.progress and artists:
            iterator = tqdm(artists, desc="Walking artists", unit="artist")

        for counter, artist in enumerate(iterator, start=1):
            logger.info(f"artist #{counter:03d} ID: {artist.id}, Name: {artist.name}")
            albums = self.artist_albums(artist, result)
            result.albums_kept += len(albums)
            self._add_albums(playlist, albums, pending, result)

        if self.include_saved_albums:
            albums = self.saved_albums(result)
            result.saved_albums_kept = len(albums)
            logger.info(f"💿 {len(albums)} saved albums")
            self._add_albums(playlist, albums, pending, result)

        self._flush(playlist, pending, result)
        self._enter(WalkState.DONE)
        logger.info(
            f"✅ Done: {result.tracks_written} tracks in {result.report.calls} append calls "
            f"({result.tracks_filtered} remixes skipped, {result.albums_dropped} duplicate albums)"
        )
        if result.report.failed:
            logger.error(
                f"❌ {len(result.report.failed)} batches failed and were skipped: "
                f"{[r.index for r in result.report.failed]}"
            )
        return result

    def build_playlist(self, name: str, description: str = DEFAULT_DESCRIPTION,
                       owner_id: Optional[str] = None, public: bool = False,
                       collaborative: bool = False) -> WalkResult:
        """Create a new playlist and fill it."""
        if owner_id is None:
            owner_id = self.caller(self.client.current_user_id)
        playlist = self.caller(
            self.client.create_playlist,
            owner_id,
            name,
            description=description,
            public=public,
            collaborative=collaborative,
        )
        logger.info(f"🆕 Created playlist {name!r} ({playlist.id})")
        return self.run(playlist)
