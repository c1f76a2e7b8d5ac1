"""
Exception hierarchy for playlistall.

Transient errors are absorbed by the retry wrapper in ``ratelimit``; every
other error surfaces to the top level and ends the run with a non-zero exit.
"""

from __future__ import annotations

from typing import Optional, Sequence


class PlaylistAllError(Exception):
    """Base class for every error raised by playlistall."""


class ConfigError(PlaylistAllError):
    """Missing credentials or an unparseable setting."""


class TransientError(PlaylistAllError):
    """A remote failure expected to succeed on retry (timeout, 429, 5xx)."""


class RetriesExhausted(TransientError):
    """The retry policy gave up on a transient failure."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


class PermanentRemoteError(PlaylistAllError):
    """Remote rejected the request (auth, not found, malformed); never retried."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class AuthError(PermanentRemoteError):
    """Token exchange failed or the user denied access."""


class StateMismatchError(PlaylistAllError):
    """OAuth state returned by the redirect differs from the issued one."""

    def __init__(self, expected: str, received: Optional[str]):
        self.expected = expected
        self.received = received
        super().__init__(f"State mismatch: {received!r} != {expected!r}")


class Cancelled(PlaylistAllError):
    """A stop request was observed at a suspension point."""


class PartialBatchError(PlaylistAllError):
    """A playlist append failed after zero or more chunks were already written.

    ``report`` lists the chunks that made it into the playlist, so the caller
    can resume from ``failed_index`` or remove what was written.
    """

    def __init__(self, report, failed_index: int, failed_ids: Sequence[str], cause: BaseException):
        self.report = report
        self.failed_index = failed_index
        self.failed_ids = list(failed_ids)
        self.cause = cause
        written = [r.index for r in report.written]
        super().__init__(
            f"Batch #{failed_index} ({len(self.failed_ids)} tracks) failed: {cause}; "
            f"already written batches: {written}"
        )
