"""Scoped completion timer for adapter operations."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional


@dataclass
class Elapsed:
    """Handle yielded by :func:`elapsed`; set ``message`` before the block ends."""

    message: Optional[str] = None
    seconds: float = 0.0


@contextmanager
def elapsed(
    log: logging.Logger,
    level: int = logging.INFO,
    *,
    clock: Callable[[], float] = time.monotonic,
) -> Iterator[Elapsed]:
    """Log ``message`` with the time spent when the block completes normally.

    Exceptions propagate unchanged and nothing is logged for them; the
    transport already reported the failure.
    """
    tracker = Elapsed()
    start = clock()
    yield tracker
    tracker.seconds = clock() - start
    if tracker.message:
        log.log(level, "%s in %.2fs", tracker.message, tracker.seconds)


__all__ = ["Elapsed", "elapsed"]
