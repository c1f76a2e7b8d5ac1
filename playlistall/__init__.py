"""
playlistall - one playlist with every album and single of the artists you follow.

Usage:
    from playlistall import AuthSession, CatalogWalker, SpotifyClient

    session = AuthSession(client_id, client_secret)
    client = SpotifyClient(session.from_refresh_token(refresh_token))
    result = CatalogWalker(client).build_playlist("Everything")
"""

from .auth import AuthSession
from .batch import BATCH_SIZE, BatchReport, BatchResult, BatchWriter
from .client import SpotifyClient
from .config import Settings
from .dedup import AlbumDeduplicator, dedup_key, dedupe_albums
from .errors import (
    AuthError,
    Cancelled,
    ConfigError,
    PartialBatchError,
    PermanentRemoteError,
    PlaylistAllError,
    RetriesExhausted,
    StateMismatchError,
    TransientError,
)
from .filters import REMIX_KEYWORDS, filter_tracks, is_remix
from .models import AlbumRef, ArtistRef, Page, Playlist, TrackRef
from .pagination import PAGE_SIZE, after_last_id, by_offset, paginate
from .ratelimit import RetryingCaller, RetryPolicy, resilient_call
from .walker import CatalogWalker, FlushMode, WalkResult, WalkState

__version__ = "1.0.0"

__all__ = [
    # Main entry points
    "CatalogWalker",
    "SpotifyClient",
    "AuthSession",
    "Settings",
    # Pipeline stages
    "paginate",
    "after_last_id",
    "by_offset",
    "dedup_key",
    "dedupe_albums",
    "AlbumDeduplicator",
    "is_remix",
    "filter_tracks",
    "BatchWriter",
    "BatchReport",
    "BatchResult",
    "RetryPolicy",
    "RetryingCaller",
    "resilient_call",
    # Models
    "ArtistRef",
    "AlbumRef",
    "TrackRef",
    "Playlist",
    "Page",
    "FlushMode",
    "WalkState",
    "WalkResult",
    # Constants
    "PAGE_SIZE",
    "BATCH_SIZE",
    "REMIX_KEYWORDS",
    # Errors
    "PlaylistAllError",
    "ConfigError",
    "TransientError",
    "RetriesExhausted",
    "PermanentRemoteError",
    "AuthError",
    "StateMismatchError",
    "PartialBatchError",
    "Cancelled",
]
