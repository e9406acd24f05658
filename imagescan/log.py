"""Console logging: errors go to stderr, everything below error to stdout."""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import Callable, TextIO

_LOGGER_NAME = "imagescan"
_FORMAT = "%(asctime)s\t%(levelname)s\t%(message)s"

_logger: logging.Logger
_debug_option = False


def _stdout() -> TextIO:
    return sys.stdout


def _stderr() -> TextIO:
    return sys.stderr


class _ConsoleHandler(logging.StreamHandler):
    """Stream handler that resolves its target stream on every write."""

    def __init__(self, resolve: Callable[[], TextIO]) -> None:
        self._resolve = resolve
        super().__init__()

    @property
    def stream(self):  # type: ignore[override]
        return self._resolve()

    @stream.setter
    def stream(self, value) -> None:
        # The target stream is always resolved lazily.
        pass


class _ISOFormatter(logging.Formatter):
    def formatTime(self, record, datefmt=None):  # noqa: N802
        moment = datetime.fromtimestamp(record.created).astimezone()
        return moment.isoformat(timespec="milliseconds")


def _below_error(record: logging.LogRecord) -> bool:
    return record.levelno < logging.ERROR


def new_logger(debug: bool, disable: bool) -> logging.Logger:
    """Build a logger; debug enables DEBUG output, disable drops non-error output."""
    logger = logging.Logger(_LOGGER_NAME, logging.DEBUG if debug else logging.INFO)
    logger.propagate = False
    formatter = _ISOFormatter(_FORMAT)

    errors = _ConsoleHandler(_stderr)
    errors.setLevel(logging.ERROR)
    errors.setFormatter(formatter)
    logger.addHandler(errors)

    if disable:
        logger.addHandler(logging.NullHandler())
    else:
        logs = _ConsoleHandler(_stdout)
        logs.setLevel(logging.DEBUG if debug else logging.INFO)
        logs.addFilter(_below_error)
        logs.setFormatter(formatter)
        logger.addHandler(logs)
    return logger


def init_logger(debug: bool, disable: bool) -> logging.Logger:
    """Replace the package-wide logger and return it."""
    global _logger, _debug_option
    _debug_option = debug
    _logger = new_logger(debug, disable)
    return _logger


def get_logger() -> logging.Logger:
    """Return the package-wide logger."""
    return _logger


def fatal(err: BaseException | str) -> None:
    """Log a fatal error and exit with status 1."""
    if _debug_option and isinstance(err, BaseException):
        _logger.critical("%s", err, exc_info=err)
    else:
        _logger.critical("%s", err)
    raise SystemExit(1)


_logger = new_logger(False, False)