"""
Batched playlist writes.

The Web API accepts at most 50 tracks per append call, so a track list is
split into consecutive chunks and each chunk is sent as one call, in order.
What happens when a chunk fails is an explicit choice:

- ``"raise"``: stop and raise ``PartialBatchError`` with the report of what
  was already written.
- ``"skip"``: record the failed chunk in the report, log it and go on.

Already written chunks are never rolled back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .errors import Cancelled, PartialBatchError
from .ratelimit import RetryingCaller
from .utils import chunks

logger = logging.getLogger(__name__)

BATCH_SIZE = 50

ON_FAILURE_RAISE = "raise"
ON_FAILURE_SKIP = "skip"

AppendFn = Callable[[str, List[str]], object]


@dataclass
class BatchResult:
    index: int
    track_ids: List[str]
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchReport:
    written: List[BatchResult] = field(default_factory=list)
    failed: List[BatchResult] = field(default_factory=list)

    @property
    def calls(self) -> int:
        return len(self.written) + len(self.failed)

    @property
    def tracks_written(self) -> int:
        return sum(len(r.track_ids) for r in self.written)

    @property
    def written_ids(self) -> List[str]:
        return [tid for r in self.written for tid in r.track_ids]

    @property
    def failed_ids(self) -> List[str]:
        return [tid for r in self.failed for tid in r.track_ids]

    def merge(self, other: "BatchReport") -> "BatchReport":
        self.written.extend(other.written)
        self.failed.extend(other.failed)
        return self


class BatchWriter:
    """Append track IDs to a playlist in fixed-size chunks.

    Chunk indices keep counting across ``write`` calls on the same writer, so
    a report stays unambiguous when the walker flushes once per album.
    """

    def __init__(self, append: AppendFn, batch_size: int = BATCH_SIZE,
                 on_failure: str = ON_FAILURE_RAISE, caller: Optional[RetryingCaller] = None):
        if batch_size <= 0 or batch_size > BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {BATCH_SIZE}, got {batch_size}")
        if on_failure not in (ON_FAILURE_RAISE, ON_FAILURE_SKIP):
            raise ValueError(f"on_failure must be 'raise' or 'skip', got {on_failure!r}")
        self.append = append
        self.batch_size = batch_size
        self.on_failure = on_failure
        self.caller = caller or RetryingCaller()
        self.report = BatchReport()
        self._next_index = 0

    def write(self, playlist_id: str, track_ids: Sequence[str]) -> BatchReport:
        """Write ``track_ids`` and return the report for this call only."""
        report = BatchReport()
        for chunk in chunks(list(track_ids), self.batch_size):
            index = self._next_index
            self._next_index += 1
            try:
                self.caller(self.append, playlist_id, chunk)
            except Cancelled:
                self.report.merge(report)
                raise
            except Exception as e:
                report.failed.append(BatchResult(index, chunk, e))
                if self.on_failure == ON_FAILURE_RAISE:
                    self.report.merge(report)
                    raise PartialBatchError(self.report, index, chunk, e) from e
                logger.error(f"❌ Batch #{index} ({len(chunk)} tracks) failed, skipping: {e}")
                continue
            report.written.append(BatchResult(index, chunk))
            logger.debug(f"  batch #{index}: appended {len(chunk)} tracks")
        self.report.merge(report)
        return report
