"""Timer and worker helpers used by the controller."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

logger = logging.getLogger(__name__)


class ThreadingScheduler:
    """
    Schedules callbacks on daemon :class:`threading.Timer` threads.

    Usage:
        scheduler = ThreadingScheduler()
        handle = scheduler.call_later(1.0, lambda: print("done"))
        handle.cancel()
    """

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(max(0.0, delay), _guarded(callback))
        timer.daemon = True
        timer.start()
        return timer


def transcription_executor() -> ThreadPoolExecutor:
    """Single worker so at most one transcription runs per controller."""
    return ThreadPoolExecutor(max_workers=1, thread_name_prefix="transcribe")


def _guarded(callback: Callable[[], None]) -> Callable[[], None]:
    def run() -> None:
        try:
            callback()
        except Exception:  # pragma: no cover - timer threads have no caller to propagate to
            logger.exception("Scheduled callback %r failed", callback)

    return run
