"""Bridges a platform ActivitySource to an IdleMonitor.

The OS only tells us how long it has been since the last input event. The
poller samples that value periodically; if the last input happened after
the previous sample, new activity occurred and is forwarded to the monitor.
"""

import logging
import time
from datetime import datetime
from typing import Callable, Optional

from idlewatch.core.monitor import IdleMonitor
from idlewatch.core.scheduler import RecurringTimer
from idlewatch.platform.base import ActivitySource

logger = logging.getLogger(__name__)


class InputPoller:
    """Polls an ActivitySource and calls ``monitor.record_activity()`` on input.

    When *on_app_change* is given, the frontmost application is also checked
    whenever input is seen, and the callback fires with ``(app, now)`` each
    time it differs from the last one reported.
    """

    def __init__(
        self,
        source: ActivitySource,
        monitor: IdleMonitor,
        interval: float = 1.0,
        on_app_change: Optional[Callable[[str, datetime], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: Callable[[float, Callable[[], None]], RecurringTimer] = RecurringTimer,
    ) -> None:
        self.source = source
        self.monitor = monitor
        self.interval = interval
        self._on_app_change = on_app_change
        self._clock = clock
        self._timer_factory = timer_factory
        self._timer: Optional[RecurringTimer] = None
        self._last_sample: Optional[float] = None
        self._last_app: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        """Start polling. No-op if already running."""
        if self._timer is not None:
            return
        self._last_sample = None
        timer = self._timer_factory(self.interval, self.poll_once)
        timer.start()
        self._timer = timer
        logger.info("Input poller started (interval=%.1fs)", self.interval)

    def stop(self) -> None:
        """Stop polling and wait for an in-flight poll to finish."""
        timer = self._timer
        if timer is None:
            return
        self._timer = None
        timer.cancel()

    def poll_once(self) -> bool:
        """Sample the source once. Returns True if new activity was seen."""
        now = self._clock()
        window = self.interval if self._last_sample is None else now - self._last_sample

        try:
            idle_seconds = self.source.get_idle_seconds()
        except Exception:
            logger.exception("Failed to read idle time; skipping this cycle")
            return False

        if idle_seconds is None:
            logger.debug("Idle time unavailable; skipping this cycle")
            return False

        self._last_sample = now
        if idle_seconds >= window:
            return False

        self.monitor.record_activity()
        self._check_frontmost_app()
        return True

    def _check_frontmost_app(self) -> None:
        if self._on_app_change is None:
            return

        try:
            app = self.source.get_frontmost_app()
        except Exception:
            logger.debug("Failed to read frontmost app", exc_info=True)
            return

        if app is None or app == self._last_app:
            return
        self._last_app = app

        try:
            self._on_app_change(app, datetime.now())
        except Exception:
            logger.exception("Error in app change callback")
