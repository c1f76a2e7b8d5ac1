"""
Album deduplication.

Reissues, deluxe editions and regional variants usually share a name and a
release year. Two albums of one artist with the same lowercased name and
release year are treated as the same release; the first one seen wins.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List, Set

from .models import AlbumRef

YEAR_LENGTH = 4


def dedup_key(album: AlbumRef, include_type: bool = False) -> str:
    """Normalized identity of an album.

    Release dates shorter than four characters are used as-is.
    With ``include_type`` a single and an album of the same name and year
    get different keys.
    """
    year = album.release_date[:min(YEAR_LENGTH, len(album.release_date))]
    key = (album.name + year).lower()
    if include_type:
        key = f"{key}|{album.album_type.lower()}"
    return key


class AlbumDeduplicator:
    """Stateful filter that remembers keys across pages of one artist."""

    def __init__(self, include_type: bool = False):
        self.include_type = include_type
        self._seen: Set[str] = set()
        self.dropped = 0

    def __len__(self) -> int:
        return len(self._seen)

    def accept(self, album: AlbumRef) -> bool:
        key = dedup_key(album, self.include_type)
        if key in self._seen:
            self.dropped += 1
            return False
        self._seen.add(key)
        return True

    def filter(self, albums: Iterable[AlbumRef]) -> Iterator[AlbumRef]:
        for album in albums:
            if self.accept(album):
                yield album


def dedupe_albums(albums: Iterable[AlbumRef], include_type: bool = False) -> List[AlbumRef]:
    """Drop albums whose key was already seen, keeping first-seen order."""
    return list(AlbumDeduplicator(include_type).filter(albums))
