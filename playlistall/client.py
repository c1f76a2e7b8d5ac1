"""
Spotify Web API access for playlistall.

``SpotifyClient`` maps the handful of endpoints the walker needs onto
``Page``/ref objects. It does no retrying itself; callers wrap each method in
a ``RetryingCaller`` so every page fetch shares one retry policy.
"""

from __future__ import annotations

from typing import Optional, Sequence

import spotipy

from .batch import BATCH_SIZE
from .models import AlbumRef, ArtistRef, Page, Playlist, TrackRef
from .pagination import PAGE_SIZE
from .utils import to_track_uri

DEFAULT_ALBUM_GROUPS = ("album", "single")


class SpotifyClient:
    """Catalog reads and playlist writes over an authenticated spotipy client."""

    def __init__(self, sp: spotipy.Spotify):
        self.sp = sp
        self._me_id: Optional[str] = None

    @classmethod
    def from_token(cls, access_token: str) -> "SpotifyClient":
        return cls(spotipy.Spotify(auth=access_token, requests_timeout=30))

    # -------------------------
    # Catalog reads
    # -------------------------
    def current_user_id(self) -> str:
        if self._me_id is None:
            self._me_id = self.sp.current_user()["id"]
        return self._me_id

    def followed_artists_page(self, after: Optional[str] = None, limit: int = PAGE_SIZE) -> Page[ArtistRef]:
        resp = self.sp.current_user_followed_artists(limit=limit, after=after)
        items = (resp.get("artists") or {}).get("items") or []
        return Page([ArtistRef.from_api(a) for a in items if a and a.get("id")], cursor=after)

    def artist_albums_page(self, artist_id: str, offset: int = 0, limit: int = PAGE_SIZE,
                           include_groups: Sequence[str] = DEFAULT_ALBUM_GROUPS) -> Page[AlbumRef]:
        resp = self.sp.artist_albums(
            artist_id,
            include_groups=",".join(include_groups),
            limit=limit,
            offset=offset,
        )
        items = resp.get("items") or []
        return Page([AlbumRef.from_api(a) for a in items if a and a.get("id")], cursor=offset)

    def album_tracks_page(self, album_id: str, offset: int = 0, limit: int = PAGE_SIZE) -> Page[TrackRef]:
        resp = self.sp.album_tracks(album_id, limit=limit, offset=offset)
        # local and unavailable tracks stay in the page so offsets line up
        return Page([TrackRef.from_api(t) for t in resp.get("items") or [] if t], cursor=offset)

    def saved_albums_page(self, offset: int = 0, limit: int = PAGE_SIZE) -> Page[AlbumRef]:
        resp = self.sp.current_user_saved_albums(limit=limit, offset=offset)
        items = resp.get("items") or []
        return Page(
            [AlbumRef.from_api(it) for it in items if it and (it.get("album") or {}).get("id")],
            cursor=offset,
        )

    # -------------------------
    # Playlist writes
    # -------------------------
    def create_playlist(self, owner_id: str, name: str, description: str = "",
                        public: bool = False, collaborative: bool = False) -> Playlist:
        resp = self.sp.user_playlist_create(
            owner_id,
            name,
            public=public,
            collaborative=collaborative,
            description=description,
        )
        return Playlist.from_api(resp)

    def append_tracks(self, playlist_id: str, track_ids: Sequence[str]) -> dict:
        if len(track_ids) > BATCH_SIZE:
            raise ValueError(f"At most {BATCH_SIZE} tracks per append call, got {len(track_ids)}")
        return self.sp.playlist_add_items(playlist_id, [to_track_uri(t) for t in track_ids])
