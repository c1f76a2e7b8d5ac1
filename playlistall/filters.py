"""
Remix exclusion.

A substring heuristic, not a classifier: any track whose lowercased name
contains one of ``REMIX_KEYWORDS`` is dropped. That also drops titles such as
"Remixology" or "Mixed Feelings"; this is accepted.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

from .models import TrackRef

logger = logging.getLogger(__name__)

REMIX_KEYWORDS = ("mix", "rmx")


def is_remix(track: TrackRef, keywords: Sequence[str] = REMIX_KEYWORDS) -> bool:
    name = track.name.lower()
    return any(k in name for k in keywords)


def filter_tracks(tracks: Iterable[TrackRef], keywords: Sequence[str] = REMIX_KEYWORDS) -> List[TrackRef]:
    """Return the tracks that are not remixes, in their original order."""
    kept = []
    for track in tracks:
        if is_remix(track, keywords):
            logger.debug(f"  skipping {track.id} {track.name!r}")
            continue
        kept.append(track)
    return kept
