"""
Value types passed between pipeline stages.

Refs are built from Web API payloads by ``from_api`` and carry only the
fields the walker needs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Optional, Tuple, TypeVar, Union

T = TypeVar("T")

Cursor = Union[str, int, None]


@dataclass(frozen=True)
class ArtistRef:
    id: str
    name: str

    @classmethod
    def from_api(cls, item: dict) -> "ArtistRef":
        return cls(id=item["id"], name=item.get("name") or "")


@dataclass(frozen=True)
class AlbumRef:
    id: str
    name: str
    release_date: str = ""
    album_type: str = "album"

    @classmethod
    def from_api(cls, item: dict) -> "AlbumRef":
        # saved-album items wrap the album object
        album = item.get("album", item)
        return cls(
            id=album["id"],
            name=album.get("name") or "",
            release_date=album.get("release_date") or "",
            album_type=(album.get("album_type") or "album").lower(),
        )


@dataclass(frozen=True)
class TrackRef:
    id: str
    name: str

    @property
    def available(self) -> bool:
        return bool(self.id)

    @classmethod
    def from_api(cls, item: dict) -> "TrackRef":
        # local and unavailable tracks come back without an ID
        return cls(id=item.get("id") or "", name=item.get("name") or "")


@dataclass(frozen=True)
class Playlist:
    id: str
    name: str = ""
    url: Optional[str] = None

    @classmethod
    def from_api(cls, item: dict) -> "Playlist":
        return cls(
            id=item["id"],
            name=item.get("name") or "",
            url=(item.get("external_urls") or {}).get("spotify"),
        )


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a paginated listing. Empty ``items`` means end of stream."""

    items: Tuple[T, ...] = field(default_factory=tuple)
    cursor: Cursor = None

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))

    def __len__(self) -> int:
        return len(self.items)

    @property
    def last(self) -> Any:
        return self.items[-1] if self.items else None
