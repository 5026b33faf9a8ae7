from __future__ import annotations

"""
retry.py – Bounded retry for calls into the automation host.

The host (an IDE process) rejects calls while it is busy, so open/save/close
are repeated with a fixed pause. The last error propagates unchanged once the
budget is spent; there is no separate "exhausted" error.
"""

import logging
import threading
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 10
DEFAULT_DELAY_SEC = 3.0


def attempt_to(
    operation: Callable[[], T],
    attempts_remaining: int = DEFAULT_ATTEMPTS,
    delay: float = DEFAULT_DELAY_SEC,
    cancel: Optional[threading.Event] = None,
    sleep: Optional[Callable[[float], None]] = None,
    describe: Optional[str] = None,
) -> T:
    """
    Run ``operation`` up to ``attempts_remaining + 1`` times.

    Between attempts waits ``delay`` seconds. The wait is done on ``cancel``
    (if given) so a set event stops further attempts; the last error is then
    re-raised. ``sleep`` replaces the wait entirely (tests).
    """
    label = describe or getattr(operation, "__name__", "operation")
    remaining = attempts_remaining
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except Exception as e:
            if remaining <= 0:
                logger.error(f"{label} failed after {attempt} attempt(s): {e}")
                raise
            if cancel is not None and cancel.is_set():
                logger.warning(f"{label} canceled after {attempt} attempt(s)")
                raise
            logger.warning(f"{label} failed (attempt {attempt}, {remaining} retries left): {e}")
            remaining -= 1

            if sleep is not None:
                sleep(delay)
            elif cancel is not None:
                if cancel.wait(delay):
                    logger.warning(f"{label} canceled while waiting to retry")
                    raise
            elif delay > 0:
                threading.Event().wait(delay)
