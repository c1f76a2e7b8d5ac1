"""
Local HTTP listener for the OAuth redirect.

A tiny flask app with a single meaningful route. ``CallbackServer`` runs it
on a background thread for the duration of the handshake only.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional
from urllib.parse import urlparse

from flask import Flask, request
from werkzeug.serving import make_server

from .auth import AuthSession
from .errors import AuthError, PlaylistAllError, StateMismatchError

logger = logging.getLogger(__name__)


def create_app(session: AuthSession, callback_path: str = "/callback") -> Flask:
    app = Flask(__name__)

    @app.route(callback_path, methods=["GET"])
    def callback():
        error = request.args.get("error")
        if error:
            session.fail(AuthError(f"Authorization denied: {error}"))
            logger.error(f"❌ Authorization denied: {error}")
            return "Authorization denied", 403

        try:
            session.complete(request.args.get("code", ""), request.args.get("state"))
        except StateMismatchError as e:
            logger.error(f"❌ {e}")
            return "Not found", 404
        except PlaylistAllError as e:
            logger.error(f"❌ {e}")
            return "Couldn't get token", 403

        logger.info("🔑 Login completed")
        return "Login Completed!"

    @app.route("/", defaults={"path": ""})
    @app.route("/<path:path>")
    def unhandled(path):
        logger.info(f"Got request for: {request.full_path}")
        return "Not found", 404

    return app


class CallbackServer:
    """Serve ``create_app(session)`` on the redirect URI's host and port."""

    def __init__(self, session: AuthSession, host: Optional[str] = None, port: Optional[int] = None):
        parsed = urlparse(session.redirect_uri)
        self.host = host or parsed.hostname or "127.0.0.1"
        self.port = port or parsed.port or 8080
        self.app = create_app(session, parsed.path or "/callback")
        self._server = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "CallbackServer":
        self._server = make_server(self.host, self.port, self.app, threaded=True)
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="oauth-callback", daemon=True
        )
        self._thread.start()
        logger.debug(f"  callback listener on http://{self.host}:{self.port}")
        return self

    def stop(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def __enter__(self) -> "CallbackServer":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
