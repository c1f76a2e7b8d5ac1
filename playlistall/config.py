"""
Configuration for playlistall.

All environment variables and defaults are defined here. A ``.env`` file in
the working directory is loaded first when python-dotenv finds one.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8080/callback"

SCOPES = (
    "user-read-private user-follow-read user-library-read "
    "playlist-modify-public playlist-modify-private"
)

FLUSH_MODES = ("collect", "eager")
BATCH_FAILURE_POLICIES = ("raise", "skip")

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


# ============================================================================
# ENV HELPERS
# ============================================================================

def parse_bool_env(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def parse_int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def parse_float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def parse_str_env(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def parse_choice_env(name: str, default: str, choices: tuple) -> str:
    value = parse_str_env(name, default).lower()
    if value not in choices:
        raise ConfigError(f"{name} must be one of {', '.join(choices)}, got {value!r}")
    return value


def load_env_file(path: str = ".env") -> bool:
    """Load a .env file if it exists. Existing variables win."""
    if os.path.exists(path):
        return load_dotenv(path, override=False)
    return False


# ============================================================================
# SETTINGS
# ============================================================================

@dataclass(frozen=True)
class Settings:
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    redirect_uri: str = DEFAULT_REDIRECT_URI
    refresh_token: Optional[str] = None
    cache_path: Optional[str] = None

    flush_mode: str = "collect"
    sort_artists: bool = True
    include_saved_albums: bool = True
    dedup_by_type: bool = False
    on_batch_failure: str = "raise"

    # 0 means the unbounded fixed 1s retry loop
    max_retries: int = 6
    backoff_base: float = 1.0
    request_delay: float = 0.0

    public: bool = False
    collaborative: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        max_retries = parse_int_env("PLAYLISTALL_MAX_RETRIES", 6)
        if max_retries < 0:
            raise ConfigError("PLAYLISTALL_MAX_RETRIES must be >= 0")
        return cls(
            client_id=parse_str_env("SPOTIPY_CLIENT_ID"),
            client_secret=parse_str_env("SPOTIPY_CLIENT_SECRET"),
            redirect_uri=parse_str_env("SPOTIPY_REDIRECT_URI", DEFAULT_REDIRECT_URI),
            refresh_token=parse_str_env("SPOTIPY_REFRESH_TOKEN"),
            cache_path=parse_str_env("SPOTIPY_CACHE_PATH"),
            flush_mode=parse_choice_env("PLAYLISTALL_FLUSH_MODE", "collect", FLUSH_MODES),
            sort_artists=parse_bool_env("PLAYLISTALL_SORT_ARTISTS", True),
            include_saved_albums=parse_bool_env("PLAYLISTALL_SAVED_ALBUMS", True),
            dedup_by_type=parse_bool_env("PLAYLISTALL_DEDUP_BY_TYPE", False),
            on_batch_failure=parse_choice_env(
                "PLAYLISTALL_ON_BATCH_FAILURE", "raise", BATCH_FAILURE_POLICIES
            ),
            max_retries=max_retries,
            backoff_base=parse_float_env("PLAYLISTALL_BACKOFF_BASE", 1.0),
            request_delay=parse_float_env("SPOTIFY_API_DELAY", 0.0),
            public=parse_bool_env("PLAYLISTALL_PUBLIC", False),
        )

    def require_credentials(self) -> None:
        if not (self.client_id and self.client_secret):
            raise ConfigError(
                "Missing SPOTIPY_CLIENT_ID or SPOTIPY_CLIENT_SECRET. "
                "Set them in environment variables or .env file."
            )

    def override(self, **changes) -> "Settings":
        """Return a copy with every non-None value in ``changes`` applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
