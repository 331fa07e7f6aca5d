"""Debounced regeneration trigger fed through a queue by the change watcher."""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import TYPE_CHECKING

from symgraph.infrastructure.config import DEFAULT_REGEN_DELAY_SECONDS, DEFAULT_REGEN_THRESHOLD

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

# Queue messages.
_CHANGE = "change"
_STOP = "stop"


def log_regeneration(pending_changes: int) -> None:
    """Default downstream hook: only records that a regeneration is due."""
    logger.info("Regeneration triggered after %d change(s)", pending_changes)


class RegenerationScheduler:
    """Fire *callback* once enough changes accumulate or the stream goes quiet.

    Every :meth:`notify` counts one change.  Reaching *threshold* pending
    changes fires ``callback(pending)`` immediately; otherwise each change
    restarts an idle window of *delay_s* seconds, after which the callback
    fires for whatever is pending.  The counter resets after each firing.

    All counting happens on one worker thread; callers only enqueue.
    """

    def __init__(
        self,
        callback: Callable[[int], None] = log_regeneration,
        *,
        threshold: int = DEFAULT_REGEN_THRESHOLD,
        delay_s: float = DEFAULT_REGEN_DELAY_SECONDS,
    ) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self._callback = callback
        self._threshold = threshold
        self._delay_s = delay_s
        self._queue: queue.Queue[str] = queue.Queue()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._pending = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def pending(self) -> int:
        return self._pending

    def start(self) -> None:
        if self.running:
            return
        self._queue = queue.Queue()
        self._stop_event.clear()
        self._pending = 0
        self._thread = threading.Thread(
            target=self._run, name="symgraph-regenerate", daemon=True
        )
        self._thread.start()

    def notify(self) -> None:
        """Record one store mutation."""
        self._queue.put(_CHANGE)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Cancel the idle timer, drop pending changes, and join the worker."""
        thread = self._thread
        if thread is None:
            return
        self._stop_event.set()
        self._queue.put(_STOP)
        thread.join(timeout)
        self._thread = None
        self._pending = 0

    def _fire(self) -> None:
        pending, self._pending = self._pending, 0
        logger.debug("Regenerating after %d pending change(s)", pending)
        try:
            self._callback(pending)
        except Exception:  # a failing hook must not kill the worker
            logger.exception("Regeneration callback failed")

    def _run(self) -> None:
        deadline: float | None = None
        while not self._stop_event.is_set():
            timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                message = self._queue.get(timeout=timeout)
            except queue.Empty:
                # Idle window elapsed.
                deadline = None
                if self._pending and not self._stop_event.is_set():
                    self._fire()
                continue

            if message == _STOP:
                break

            self._pending += 1
            if self._pending >= self._threshold:
                deadline = None
                self._fire()
            else:
                deadline = time.monotonic() + self._delay_s
