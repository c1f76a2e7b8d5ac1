"""
Log output for playlistall.

Lines are timestamped and written through ``tqdm.write()`` so they never
interfere with an active progress bar.
"""

from __future__ import annotations

import logging

from tqdm import tqdm

LOGGER_NAME = "playlistall"
LOG_FORMAT = "[%(asctime)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class TqdmHandler(logging.Handler):
    """Logging handler that prints via tqdm.write()."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record))
        except Exception:
            self.handleError(record)


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure the package logger.

    Args:
        verbose: If True, also show DEBUG lines (filtered tracks, retries,
            state transitions).

    Calling this more than once replaces the previous handler.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, TqdmHandler):
            logger.removeHandler(h)

    handler = TqdmHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
    return logger
