"""Small helpers shared across modules."""

from __future__ import annotations

from typing import Iterator, Sequence, TypeVar

T = TypeVar("T")

TRACK_URI_PREFIX = "spotify:track:"


def chunks(seq: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of ``seq`` holding at most ``size`` items."""
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    for i in range(0, len(seq), size):
        yield list(seq[i:i + size])


def to_track_uri(track_id: str) -> str:
    """Convert a bare track ID to a Spotify URI."""
    track_id = str(track_id)
    if track_id.startswith(TRACK_URI_PREFIX) or ":" in track_id:
        return track_id
    return f"{TRACK_URI_PREFIX}{track_id}"
