"""Retrying RPC calls with exponential backoff while the server is unavailable."""

from __future__ import annotations

import itertools
import random
import time
from collections.abc import Callable
from enum import Enum
from typing import TypeVar

from ..log import get_logger

MAX_RETRIES = 10

_INITIAL_INTERVAL = 0.5
_MULTIPLIER = 1.5
_RANDOMIZATION = 0.5
_MAX_INTERVAL = 60.0
_MAX_ELAPSED = 15 * 60.0

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Error codes an RPC server can report."""

    CANCELED = "canceled"
    UNKNOWN = "unknown"
    INVALID_ARGUMENT = "invalid_argument"
    MALFORMED = "malformed"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    NOT_FOUND = "not_found"
    BAD_ROUTE = "bad_route"
    ALREADY_EXISTS = "already_exists"
    PERMISSION_DENIED = "permission_denied"
    UNAUTHENTICATED = "unauthenticated"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    FAILED_PRECONDITION = "failed_precondition"
    ABORTED = "aborted"
    OUT_OF_RANGE = "out_of_range"
    UNIMPLEMENTED = "unimplemented"
    INTERNAL = "internal"
    UNAVAILABLE = "unavailable"
    DATA_LOSS = "data_loss"


class RPCError(Exception):
    """An error reported by an RPC server."""

    def __init__(self, code: ErrorCode | str, msg: str) -> None:
        super().__init__(msg)
        self.code = ErrorCode(code)
        self.msg = msg

    def __str__(self) -> str:
        return f"twirp error {self.code.value}: {self.msg}"


def _retryable(err: Exception) -> bool:
    return isinstance(err, RPCError) and err.code is ErrorCode.UNAVAILABLE


def retry(func: Callable[[], T]) -> T:
    """Call ``func``, retrying up to MAX_RETRIES times while it raises an unavailable RPCError."""
    interval = _INITIAL_INTERVAL
    start = time.monotonic()
    for attempt in itertools.count():
        try:
            return func()
        except Exception as err:
            if not _retryable(err) or attempt >= MAX_RETRIES:
                raise
            if time.monotonic() - start > _MAX_ELAPSED:
                raise
            delay = interval * (1 + random.uniform(-_RANDOMIZATION, _RANDOMIZATION))
            interval = min(interval * _MULTIPLIER, _MAX_INTERVAL)
            logger = get_logger()
            logger.warning("%s", err)
            logger.info("Retrying HTTP request...")
            time.sleep(delay)
    raise AssertionError("unreachable")