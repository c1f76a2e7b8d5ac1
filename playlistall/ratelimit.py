"""
Retry wrapper for Spotify Web API calls.

Every remote read and playlist write goes through ``RetryingCaller``. Rate
limits (429), server errors (5xx) and network failures are retried according
to a ``RetryPolicy``; any other failure of the call is raised immediately as
``PermanentRemoteError`` (``AuthError`` for a rejected token).
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import requests
from spotipy.exceptions import SpotifyException, SpotifyOauthError

from .errors import (
    AuthError,
    Cancelled,
    PermanentRemoteError,
    PlaylistAllError,
    RetriesExhausted,
    TransientError,
)

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_DELAY = 0.0

# Fixed policy: wait one second and try again, forever
FIXED_BACKOFF_SECONDS = 1.0

_TRANSIENT_NETWORK_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.ChunkedEncodingError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how long to wait between retries.

    Args:
        max_retries: Retries allowed after the first attempt. None retries
            forever.
        backoff: Maps the retry number (1-based) to a wait in seconds.
    """

    max_retries: Optional[int]
    backoff: Callable[[int], float]

    @classmethod
    def fixed(cls, seconds: float = FIXED_BACKOFF_SECONDS,
              max_retries: Optional[int] = None) -> "RetryPolicy":
        return cls(max_retries=max_retries, backoff=lambda attempt: seconds)

    @classmethod
    def exponential(cls, base: float = 1.0, factor: float = 2.0,
                    max_delay: float = 30.0, max_retries: Optional[int] = 6) -> "RetryPolicy":
        def backoff(attempt: int) -> float:
            return min(max_delay, base * (factor ** (attempt - 1)))
        return cls(max_retries=max_retries, backoff=backoff)

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        if settings.max_retries == 0:
            return cls.fixed(FIXED_BACKOFF_SECONDS, max_retries=None)
        return cls.exponential(base=settings.backoff_base, max_retries=settings.max_retries)

    def allows(self, retry_number: int) -> bool:
        return self.max_retries is None or retry_number <= self.max_retries


DEFAULT_POLICY = RetryPolicy.exponential()


# -------------------------
# Error classification
# -------------------------

def http_status(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "http_status", None) or getattr(exc, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def retry_after(exc: BaseException) -> Optional[float]:
    """Seconds requested by a Retry-After header, if the error carries one."""
    headers = getattr(exc, "headers", None)
    if not headers or not isinstance(headers, Mapping):
        return None
    value = headers.get("Retry-After") or headers.get("retry-after")
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, TransientError):
        return not isinstance(exc, RetriesExhausted)
    if isinstance(exc, _TRANSIENT_NETWORK_ERRORS):
        return True
    if isinstance(exc, SpotifyException):
        status = http_status(exc)
        # spotipy reports exhausted urllib3 retries with status -1 or None
        if status is None or status < 0:
            return True
        return status == 429 or status >= 500
    return False


def is_permanent(exc: BaseException) -> bool:
    """Any failure of a remote call that is neither transient nor already ours."""
    return not is_transient(exc) and not isinstance(exc, PlaylistAllError)


def as_permanent(exc: BaseException, fn_name: str = "call") -> PermanentRemoteError:
    if isinstance(exc, SpotifyOauthError):
        return AuthError(f"{fn_name}() auth rejected: {exc}")
    return PermanentRemoteError(f"{fn_name}() rejected: {exc}", status=http_status(exc))


# -------------------------
# Caller
# -------------------------

class RetryingCaller:
    """Calls a function, retrying transient failures per ``policy``.

    ``waits`` records every backoff wait in seconds, in order.
    """

    def __init__(self, policy: RetryPolicy = DEFAULT_POLICY,
                 sleep: Optional[Callable[[float], None]] = None,
                 cancel: Optional[threading.Event] = None,
                 request_delay: float = DEFAULT_REQUEST_DELAY):
        self.policy = policy
        self.cancel = cancel
        self.request_delay = request_delay
        self._sleep = sleep
        self.waits: List[float] = []

    def check_cancelled(self) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise Cancelled("Stop requested")

    def wait(self, seconds: float) -> None:
        if seconds <= 0:
            return
        if self._sleep is not None:
            self._sleep(seconds)
        elif self.cancel is not None:
            if self.cancel.wait(seconds):
                raise Cancelled("Stop requested during backoff")
        else:
            time.sleep(seconds)

    def __call__(self, fn: Callable, *args, **kwargs) -> Any:
        fn_name = getattr(fn, "__name__", repr(fn))
        retry = 0
        while True:
            self.check_cancelled()
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                if not is_transient(e):
                    if is_permanent(e):
                        raise as_permanent(e, fn_name) from e
                    raise

                retry += 1
                if not self.policy.allows(retry):
                    raise RetriesExhausted(retry, e) from e

                delay = self.policy.backoff(retry)
                requested = retry_after(e)
                if requested is not None:
                    delay = max(delay, requested)
                limit = self.policy.max_retries if self.policy.max_retries is not None else "∞"
                logger.warning(
                    f"Transient/rate error in {fn_name}(): {e} - retrying in {delay:.1f}s "
                    f"(retry {retry}/{limit})"
                )
                self.waits.append(delay)
                self.wait(delay)
                continue

            if self.request_delay:
                self.wait(self.request_delay)
            return result


def resilient_call(fn: Callable, *args, policy: RetryPolicy = DEFAULT_POLICY,
                   sleep: Optional[Callable[[float], None]] = None,
                   cancel: Optional[threading.Event] = None,
                   request_delay: float = DEFAULT_REQUEST_DELAY, **kwargs) -> Any:
    """One-off retrying call; see ``RetryingCaller``."""
    return RetryingCaller(policy, sleep=sleep, cancel=cancel,
                          request_delay=request_delay)(fn, *args, **kwargs)
