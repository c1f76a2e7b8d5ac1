"""
Command line entry point.

Usage:
    playlistall                         # new playlist named after the current time
    playlistall --name "Everything"     # custom name
    playlistall --playlist-id ID        # append to an existing playlist
    playlistall --flush-mode eager      # write after every album
    playlistall token                   # print a refresh token for headless runs

Environment variables are documented in ``playlistall.config``; a ``.env``
file in the working directory is loaded automatically.
"""

from __future__ import annotations

import argparse
import logging
import threading
import webbrowser
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime
from typing import Callable, Optional

import spotipy

from .auth import AuthSession
from .batch import BatchReport
from .client import SpotifyClient
from .config import FLUSH_MODES, Settings, load_env_file
from .errors import AuthError, Cancelled, ConfigError, PartialBatchError, PlaylistAllError
from .logging_utils import setup_logging
from .models import Playlist
from .ratelimit import RetryingCaller, RetryPolicy
from .server import CallbackServer
from .walker import DEFAULT_DESCRIPTION, CatalogWalker, FlushMode, WalkResult

logger = logging.getLogger("playlistall.cli")

NAME_FORMAT = "%Y-%m-%d %H:%M"
LOGIN_TIMEOUT = 300

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG = 2
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="playlistall",
        description="Build one playlist from every album and single of the artists you follow.",
    )
    parser.add_argument("command", nargs="?", choices=("run", "token"), default="run")
    parser.add_argument("--name", help=f"Playlist name (default: current time, {NAME_FORMAT})")
    parser.add_argument("--description", default=DEFAULT_DESCRIPTION)
    parser.add_argument("--playlist-id", help="Append to this playlist instead of creating one")
    parser.add_argument("--flush-mode", choices=FLUSH_MODES)
    parser.add_argument("--no-sort", action="store_true", help="Keep API order of artists")
    parser.add_argument("--no-saved-albums", action="store_true", help="Skip your saved albums")
    parser.add_argument("--skip-failed-batches", action="store_true",
                        help="Log failed appends and continue instead of aborting")
    parser.add_argument("--port", type=int, help="Port of the local callback listener")
    parser.add_argument("--no-progress", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    return Settings.from_env().override(
        flush_mode=args.flush_mode,
        sort_artists=False if args.no_sort else None,
        include_saved_albums=False if args.no_saved_albums else None,
        on_batch_failure="skip" if args.skip_failed_batches else None,
    )


# -------------------------
# Login
# -------------------------
def interactive_login(session: AuthSession, port: Optional[int] = None,
                      timeout: float = LOGIN_TIMEOUT) -> spotipy.Spotify:
    """Run the callback listener until the redirect hands over a client."""
    with CallbackServer(session, port=port):
        url = session.auth_url()
        logger.info(f"Please log in to Spotify by visiting the following page in your browser: {url}")
        try:
            webbrowser.open(url)
        except webbrowser.Error:
            pass
        try:
            return session.wait_for_client(timeout=timeout)
        except FutureTimeout:
            raise AuthError(f"No login within {timeout:.0f}s") from None


def login(settings: Settings, port: Optional[int] = None) -> spotipy.Spotify:
    """Authenticated client, headless when a refresh token is set."""
    session = AuthSession.from_settings(settings)
    if settings.refresh_token:
        logger.info("🔑 Using refresh token")
        return session.from_refresh_token(settings.refresh_token)
    return interactive_login(session, port=port)


# -------------------------
# Walk
# -------------------------
def run_in_worker(fn: Callable[[], WalkResult], cancel: threading.Event) -> WalkResult:
    """Run the walk on a worker thread; Ctrl-C sets ``cancel`` and waits for it to stop."""
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="walker") as pool:
        future = pool.submit(fn)
        while True:
            try:
                return future.result(timeout=0.5)
            except FutureTimeout:
                continue
            except KeyboardInterrupt:
                logger.warning("⏹  Stop requested, finishing current call...")
                cancel.set()


def make_walker(client: SpotifyClient, settings: Settings, cancel: threading.Event,
                progress: bool = True) -> CatalogWalker:
    caller = RetryingCaller(
        RetryPolicy.from_settings(settings),
        cancel=cancel,
        request_delay=settings.request_delay,
    )
    return CatalogWalker(
        client,
        flush_mode=FlushMode(settings.flush_mode),
        sort_artists=settings.sort_artists,
        include_saved_albums=settings.include_saved_albums,
        dedup_by_type=settings.dedup_by_type,
        on_batch_failure=settings.on_batch_failure,
        caller=caller,
        progress=progress,
        cancel=cancel,
    )


def walk(walker: CatalogWalker, settings: Settings, name: str, description: str,
         playlist_id: Optional[str] = None) -> WalkResult:
    if playlist_id:
        return walker.run(Playlist(id=playlist_id, name=name))
    logger.info(f"creating playlist: {name}")
    return walker.build_playlist(
        name,
        description=description,
        public=settings.public,
        collaborative=settings.collaborative,
    )


def log_written(report: BatchReport, level: int = logging.WARNING) -> None:
    """Log which chunks already made it into the playlist."""
    logger.log(level, f"   written batches: {[r.index for r in report.written]}")
    logger.log(level, f"   tracks already in playlist: {report.tracks_written}")


def cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    sp = login(settings, port=args.port)
    client = SpotifyClient(sp)
    cancel = threading.Event()
    walker = make_walker(client, settings, cancel, progress=not args.no_progress)
    name = args.name or datetime.now().strftime(NAME_FORMAT)

    try:
        result = run_in_worker(
            lambda: walk(walker, settings, name, args.description, args.playlist_id), cancel
        )
    except Cancelled:
        log_written(walker.writer.report)
        raise
    if result.playlist is not None and result.playlist.url:
        logger.info(f"🔗 {result.playlist.url}")
    return EXIT_ERROR if result.report.failed else EXIT_OK


def cmd_token(args: argparse.Namespace, settings: Settings) -> int:
    session = AuthSession.from_settings(settings)
    interactive_login(session, port=args.port)
    refresh_token = (session.token_info or {}).get("refresh_token")
    if not refresh_token:
        logger.error("ERROR: No refresh token received")
        return EXIT_ERROR
    print()
    print("Add this to your .env file:")
    print(f"  SPOTIPY_REFRESH_TOKEN={refresh_token}")
    print()
    return EXIT_OK


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    load_env_file()
    setup_logging(verbose=args.verbose)

    try:
        settings = settings_from_args(args)
        settings.require_credentials()
        if args.command == "token":
            return cmd_token(args, settings)
        return cmd_run(args, settings)
    except ConfigError as e:
        logger.error(f"❌ Configuration error: {e}")
        return EXIT_CONFIG
    except Cancelled as e:
        logger.warning(f"⏹  Cancelled: {e}")
        return EXIT_CANCELLED
    except PartialBatchError as e:
        logger.error(f"❌ {e}")
        log_written(e.report, level=logging.ERROR)
        return EXIT_ERROR
    except PlaylistAllError as e:
        logger.error(f"❌ {type(e).__name__}: {e}")
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.warning("⏹  Interrupted")
        return EXIT_CANCELLED
