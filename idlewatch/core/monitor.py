"""Idle monitor for IdleWatch.

Keeps a single idle/active flag up to date by re-evaluating the time since
the last recorded activity on a recurring tick, and notifies observers when
the flag changes.

Transitions into idle are only ever made by a tick. Transitions back to
active happen immediately inside ``record_activity()``, so a returning user
does not have to wait for the next poll. A tick that finds the flag set but
the inactivity gap below the threshold clears it as well, which covers clock
adjustments and any missed transition.
"""

import logging
import math
import threading
import time
from datetime import timedelta
from typing import Callable, Optional, Union

from idlewatch.core.errors import InvalidConfiguration, SchedulingFailure
from idlewatch.core.models import MonitorState
from idlewatch.core.scheduler import RecurringTimer

logger = logging.getLogger(__name__)

TransitionCallback = Callable[[bool, bool], None]
Duration = Union[int, float, timedelta]

DEFAULT_THRESHOLD_SECONDS = 300
DEFAULT_POLL_INTERVAL_SECONDS = 5


def duration_seconds(value: Duration, name: str) -> float:
    """Validate a duration and return it as a float number of seconds."""
    if isinstance(value, timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    else:
        raise InvalidConfiguration(f"{name} must be a number of seconds, got {value!r}")

    if not math.isfinite(seconds) or seconds <= 0:
        raise InvalidConfiguration(f"{name} must be greater than zero, got {value!r}")
    return seconds


class Subscription:
    """Handle returned by ``IdleMonitor.on_transition``; cancel to deregister."""

    def __init__(self, monitor: "IdleMonitor", callback: TransitionCallback) -> None:
        self._monitor = monitor
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._monitor._remove_observer(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cancel()


class IdleMonitor:
    """Maintains and broadcasts the system idle/active state.

    *clock* must return monotonically increasing seconds (``time.monotonic``
    by default). *timer_factory* is called as ``timer_factory(interval,
    callback)`` and must return an object with ``start()`` and ``cancel()``;
    it defaults to :class:`RecurringTimer`.
    """

    def __init__(
        self,
        threshold: Duration = DEFAULT_THRESHOLD_SECONDS,
        poll_interval: Duration = DEFAULT_POLL_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: Callable[[float, Callable[[], None]], RecurringTimer] = RecurringTimer,
    ) -> None:
        self._clock = clock
        self._timer_factory = timer_factory
        self._lock = threading.Lock()  # guards _idle, _last_activity, _observers
        self._lifecycle_lock = threading.Lock()
        self._delivery_lock = threading.Lock()  # held by the thread delivering notifications
        self._timer: Optional[RecurringTimer] = None
        self._threshold = 0.0
        self._poll_interval = 0.0
        self.configure(threshold, poll_interval)

        self._idle = False
        self._delivered_idle = False  # idle flag as last reported to observers
        self._last_activity = clock()
        self._stopping: Optional[RecurringTimer] = None
        self._stop_callers = 0
        self._state = MonitorState.STOPPED
        self._observers: list[Subscription] = []

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(self, threshold: Duration, poll_interval: Duration) -> None:
        """Store a new threshold and poll interval.

        A running monitor keeps using its current settings until the next
        ``start()``. On a stopped monitor the new threshold applies to
        direct ``tick()`` calls straight away.

        Raises:
            InvalidConfiguration: If either value is not a positive duration.
        """
        threshold_s = duration_seconds(threshold, "threshold")
        poll_s = duration_seconds(poll_interval, "poll_interval")
        if poll_s > threshold_s:
            logger.warning(
                "Poll interval (%.1fs) exceeds idle threshold (%.1fs); "
                "idle detection may lag by up to one interval",
                poll_s, threshold_s,
            )
        with self._lifecycle_lock:
            self._threshold = threshold_s
            self._poll_interval = poll_s
            if self._timer is None:
                with self._lock:
                    self._active_threshold = threshold_s

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is MonitorState.RUNNING

    def start(self) -> None:
        """Begin ticking every ``poll_interval`` seconds. No-op if running.

        Starting does not count as activity: the inactivity window restarts
        from now unless the monitor is already idle, in which case it stays
        idle until real activity is recorded.

        Raises:
            SchedulingFailure: If the recurring tick could not be armed. The
                monitor is left stopped.
        """
        with self._lifecycle_lock:
            if self._timer is not None:
                return

            with self._lock:
                previous_activity = self._last_activity
                if not self._idle:
                    self._last_activity = self._clock()
                self._active_threshold = self._threshold

            try:
                timer = self._timer_factory(self._poll_interval, self.tick)
                timer.start()
            except Exception as exc:
                with self._lock:
                    self._last_activity = previous_activity
                logger.error("Failed to schedule idle monitor tick: %s", exc)
                if isinstance(exc, SchedulingFailure):
                    raise
                raise SchedulingFailure(f"Could not schedule idle monitor tick: {exc}") from exc

            self._timer = timer
            self._state = MonitorState.RUNNING

        logger.info(
            "Idle monitor started (threshold=%.1fs, poll_interval=%.1fs)",
            self._active_threshold, self._poll_interval,
        )

    def stop(self) -> None:
        """Cancel the recurring tick. Safe to call repeatedly.

        Blocks until an in-flight tick has finished, so no tick runs after
        this returns, whichever caller got there first. The idle flag and
        last activity time stay readable.
        """
        with self._lifecycle_lock:
            timer = self._timer
            first = timer is not None
            if first:
                self._timer = None
                self._state = MonitorState.STOPPED
                self._stopping = timer
            else:
                timer = self._stopping
                if timer is None:
                    return
            self._stop_callers += 1

        # The join happens outside the lock so an observer may call stop()
        # from the tick thread.
        try:
            timer.cancel()
        finally:
            with self._lifecycle_lock:
                self._stop_callers -= 1
                if self._stop_callers == 0 and self._stopping is timer:
                    self._stopping = None

        if first:
            logger.info("Idle monitor stopped")

    def __enter__(self) -> "IdleMonitor":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def is_idle(self) -> bool:
        """Return the current idle flag."""
        return self._idle

    @property
    def last_activity(self) -> float:
        """Clock reading of the most recent activity (or start)."""
        return self._last_activity

    @property
    def idle_seconds(self) -> float:
        """Seconds since the last activity, never negative."""
        with self._lock:
            return max(0.0, self._clock() - self._last_activity)

    def record_activity(self) -> None:
        """Note that qualifying activity just happened.

        Thread-safe. If the monitor is idle, it becomes active right away and
        observers are notified before this returns, unless another thread is
        mid-delivery, in which case that thread reports it next.
        """
        with self._lock:
            self._last_activity = self._clock()
            was_idle = self._idle
            self._idle = False

        if was_idle:
            logger.debug("Activity recorded while idle; now active")
            self._notify()

    def tick(self) -> None:
        """Re-evaluate the idle condition once."""
        with self._lock:
            now = self._clock()
            elapsed = now - self._last_activity
            if elapsed < 0:
                logger.warning(
                    "Clock moved backwards by %.3fs; treating as fresh activity", -elapsed
                )
                self._last_activity = now
                elapsed = 0.0

            old = self._idle
            if elapsed >= self._active_threshold and not old:
                self._idle = True
            elif elapsed < self._active_threshold and old:
                self._idle = False
            new = self._idle

        if old != new:
            logger.debug("Tick changed idle state %s -> %s (elapsed=%.1fs)", old, new, elapsed)
            self._notify()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def on_transition(self, callback: TransitionCallback) -> Subscription:
        """Register *callback(old_idle, new_idle)* to run on every transition."""
        subscription = Subscription(self, callback)
        with self._lock:
            self._observers.append(subscription)
        return subscription

    def _remove_observer(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._observers:
                self._observers.remove(subscription)

    def _notify(self) -> None:
        """Report the idle flag to observers until they have caught up.

        Only one thread delivers at a time. A thread that finds delivery
        already in progress returns at once and the delivering thread picks
        up its change, so observers always see transitions in order and
        alternating. A flip that is undone before delivery is reported as
        nothing at all.
        """
        while self._delivery_lock.acquire(blocking=False):
            try:
                while True:
                    with self._lock:
                        old, new = self._delivered_idle, self._idle
                        if old == new:
                            break
                        self._delivered_idle = new
                        observers = list(self._observers)
                    self._deliver(observers, old, new)
            finally:
                self._delivery_lock.release()

            # A change may have landed between the last check and the release.
            with self._lock:
                if self._delivered_idle == self._idle:
                    return

    def _deliver(self, observers: list[Subscription], old: bool, new: bool) -> None:
        for subscription in observers:
            if not subscription.active:
                continue
            try:
                subscription.callback(old, new)
            except Exception:
                logger.exception("Error in idle transition observer %r", subscription.callback)
