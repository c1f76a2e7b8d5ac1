"""
OAuth session for playlistall.

``AuthSession`` owns everything about the authorization-code handshake: the
spotipy ``SpotifyOAuth`` manager, the state value sent to Spotify, and a
one-shot handoff that the callback endpoint resolves with an authenticated
client. The walker only ever sees that client.
"""

from __future__ import annotations

import logging
import secrets
from concurrent.futures import Future
from typing import Optional

import spotipy
from spotipy.cache_handler import CacheFileHandler
from spotipy.exceptions import SpotifyOauthError
from spotipy.oauth2 import SpotifyOAuth

from .config import DEFAULT_REDIRECT_URI, SCOPES, Settings
from .errors import AuthError, StateMismatchError

logger = logging.getLogger(__name__)

REQUESTS_TIMEOUT = 30


class AuthSession:
    """One authorization attempt.

    The session issues a random ``state`` once and rejects any redirect that
    comes back with a different one.
    """

    def __init__(self, client_id: str, client_secret: str,
                 redirect_uri: str = DEFAULT_REDIRECT_URI, scope: str = SCOPES,
                 cache_path: Optional[str] = None, state: Optional[str] = None):
        self.state = state or secrets.token_urlsafe(16)
        self.redirect_uri = redirect_uri
        self.oauth = SpotifyOAuth(
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=redirect_uri,
            scope=scope,
            state=self.state,
            cache_handler=CacheFileHandler(cache_path=cache_path) if cache_path else None,
            open_browser=False,
        )
        self.token_info: Optional[dict] = None
        self._handoff: Future = Future()

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthSession":
        settings.require_credentials()
        return cls(
            settings.client_id,
            settings.client_secret,
            redirect_uri=settings.redirect_uri,
            cache_path=settings.cache_path,
        )

    # -------------------------
    # Handshake
    # -------------------------
    def auth_url(self) -> str:
        return self.oauth.get_authorize_url(state=self.state)

    def check_state(self, received: Optional[str]) -> None:
        if not received or not secrets.compare_digest(received, self.state):
            raise StateMismatchError(self.state, received)

    def exchange_token(self, code: str, state: Optional[str]) -> dict:
        """Trade an authorization code for a token after checking ``state``."""
        self.check_state(state)
        try:
            token_info = self.oauth.get_access_token(code, as_dict=True, check_cache=False)
        except SpotifyOauthError as e:
            raise AuthError(f"Couldn't get token: {e}") from e
        if not token_info or "access_token" not in token_info:
            raise AuthError("Token response has no access_token")
        self.token_info = token_info
        return token_info

    def client_for(self, token_info: dict) -> spotipy.Spotify:
        """Authenticated client that refreshes ``token_info`` on expiry."""
        self.oauth.cache_handler.save_token_to_cache(token_info)
        # retries are handled by ratelimit.RetryingCaller
        return spotipy.Spotify(
            auth_manager=self.oauth,
            requests_timeout=REQUESTS_TIMEOUT,
            retries=0,
            status_retries=0,
        )

    def from_refresh_token(self, refresh_token: str) -> spotipy.Spotify:
        """Headless login with a stored refresh token."""
        try:
            token_info = self.oauth.refresh_access_token(refresh_token)
        except SpotifyOauthError as e:
            raise AuthError(f"Refresh token rejected: {e}") from e
        self.token_info = token_info
        return self.client_for(token_info)

    # -------------------------
    # One-shot handoff
    # -------------------------
    @property
    def completed(self) -> bool:
        return self._handoff.done()

    def complete(self, code: str, state: Optional[str]) -> spotipy.Spotify:
        """Finish the handshake and hand the client to whoever is waiting.

        Any failure is also delivered through the handoff, then re-raised.
        """
        if self.completed:
            raise AuthError("Authorization already completed")
        try:
            client = self.client_for(self.exchange_token(code, state))
        except Exception as e:
            self.fail(e)
            raise
        self._handoff.set_result(client)
        return client

    def fail(self, error: BaseException) -> None:
        if not self.completed:
            self._handoff.set_exception(error)

    def wait_for_client(self, timeout: Optional[float] = None) -> spotipy.Spotify:
        """Block until the callback delivers a client or an error."""
        return self._handoff.result(timeout=timeout)
