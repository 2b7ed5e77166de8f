"""Recurring timer used to drive periodic ticks.

A single daemon thread sleeps on a ``threading.Event`` for the configured
interval and then invokes the callback. Ticks run one at a time on that
thread, so they never overlap.
"""

import logging
import threading
from typing import Callable, Optional

from idlewatch.core.errors import SchedulingFailure

logger = logging.getLogger(__name__)


class RecurringTimer:
    """Runs *callback* every *interval* seconds on a background thread."""

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        name: str = "idlewatch-timer",
    ) -> None:
        self.interval = interval
        self._callback = callback
        self._name = name
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def active(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Arm the timer.

        Raises:
            SchedulingFailure: If the worker thread cannot be started.
        """
        if self._thread is not None:
            raise SchedulingFailure("Timer has already been started")

        thread = threading.Thread(target=self._run, daemon=True, name=self._name)
        try:
            thread.start()
        except RuntimeError as exc:
            raise SchedulingFailure(f"Could not start timer thread: {exc}") from exc
        self._thread = thread

    def cancel(self) -> None:
        """Stop the timer and wait for an in-flight callback to finish.

        Safe to call more than once, and from inside the callback itself
        (in which case the join is skipped).
        """
        self._cancelled.set()
        thread = self._thread
        if thread is None:
            return
        if thread is not threading.current_thread():
            thread.join()
        self._thread = None

    def _run(self) -> None:
        while not self._cancelled.wait(self.interval):
            try:
                self._callback()
            except Exception:
                logger.exception("Error in %s callback", self._name)
