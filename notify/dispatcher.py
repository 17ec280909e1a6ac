"""
notify/dispatcher.py -- Bounded fire-and-forget execution for notifications.

Welcome and password-reset emails must never delay or fail the auth response
that triggered them. NotificationDispatcher runs them on a fixed-size thread
pool and routes any exception to the log instead of back to the caller.

Contract:
  - submit() returns immediately and never raises.
  - No retry, no ordering guarantee, no cancellation.
  - After shutdown() further submissions are dropped with a warning.

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor

logger = logging.getLogger("socialapp.notify")


class NotificationDispatcher:
    """Thread-pool backed queue for side effects whose outcome nobody waits on."""

    def __init__(self, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, fn: Callable[..., object], *args: object) -> Future | None:
        """Schedule fn(*args). Returns the Future, or None if the job was dropped."""
        name = getattr(fn, "__name__", repr(fn))
        with self._lock:
            if self._closed:
                logger.warning("Dispatcher is shut down; dropping notification %s", name)
                return None
            try:
                future = self._executor.submit(fn, *args)
            except RuntimeError:
                logger.warning("Executor refused notification %s", name)
                return None
        future.add_done_callback(lambda f: _log_failure(name, f))
        return future

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs. With wait=True, let queued jobs finish first."""
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)


def _log_failure(name: str, future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Notification %s failed", name, exc_info=(type(exc), exc, exc.__traceback__))
