"""Host application for IdleWatch.

Owns the IdleMonitor and everything that feeds it: the platform input
poller, the optional macOS workspace observer, and the in-memory session
timeline. Transitions and workspace events are logged in the event-log
wording so a log handler pointed at a file produces a readable trail.
"""

import logging
import sys
import threading
from datetime import datetime, timedelta
from typing import Any, Optional

from idlewatch.core.config import monitor_settings
from idlewatch.core.models import EventType, TimelineEvent, Transition
from idlewatch.core.monitor import IdleMonitor, Subscription
from idlewatch.core.timeline import DEFAULT_LOCKED_APP_IDS, SessionTimeline
from idlewatch.platform.base import ActivitySource
from idlewatch.platform.factory import create_activity_source
from idlewatch.platform.input_poller import InputPoller
from idlewatch.reporting.formatter import TextFormatter
from idlewatch.reporting.log_parser import format_event

logger = logging.getLogger(__name__)


class IdleWatchApp:
    """Wires the idle monitor to the platform and keeps a session timeline."""

    def __init__(
        self,
        config: dict[str, Any],
        activity_source: Optional[ActivitySource] = None,
        monitor: Optional[IdleMonitor] = None,
    ) -> None:
        self.config = config
        if monitor is None:
            threshold, poll_interval = monitor_settings(config)
            monitor = IdleMonitor(threshold, poll_interval)
        self.monitor = monitor
        self.timeline = SessionTimeline(config.get("locked_app_ids", DEFAULT_LOCKED_APP_IDS))
        self._activity_source = activity_source
        self._poller: Optional[InputPoller] = None
        self._workspace_observer = None  # MacOSWorkspaceObserver on macOS
        self._subscription: Optional[Subscription] = None
        self._timeline_lock = threading.Lock()
        self._shutdown = threading.Event()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._subscription is not None

    def start(self) -> None:
        """Start the monitor, then the activity sources. No-op if running.

        Raises:
            SchedulingFailure: If the monitor tick could not be scheduled.
        """
        if self._subscription is not None:
            return

        self.on_event(TimelineEvent(timestamp=datetime.now(), type=EventType.STARTED))
        self._subscription = self.monitor.on_transition(self._on_transition)
        try:
            self.monitor.start()
            self._start_activity_sources()
        except Exception:
            self.stop()
            raise

    def stop(self) -> None:
        """Stop everything in reverse start order. Safe to call repeatedly."""
        if self._poller is not None:
            self._poller.stop()
            self._poller = None
        if self._workspace_observer is not None:
            self._workspace_observer.stop()
            self._workspace_observer = None

        self.monitor.stop()

        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
            with self._timeline_lock:
                self.timeline.close(datetime.now())

    def run_forever(self) -> None:
        """Start, block until Ctrl-C or ``request_shutdown()``, then stop."""
        self.start()
        try:
            # Short waits keep the main thread responsive to KeyboardInterrupt.
            while not self._shutdown.wait(0.5):
                pass
        except KeyboardInterrupt:
            logger.info("Interrupted; shutting down")
        finally:
            self.stop()

    def request_shutdown(self) -> None:
        self._shutdown.set()

    def on_event(self, event: TimelineEvent) -> None:
        """Log a workspace/lifecycle event and feed it to the timeline."""
        logger.info("%s", format_event(event))
        with self._timeline_lock:
            self.timeline.apply(event)

    def report(self) -> str:
        """Return the per-day report for the session so far."""
        min_minutes = self.config.get("report_min_minutes", 5)
        with self._timeline_lock:
            self.timeline.close(datetime.now())
            durations = self.timeline.durations()
        return TextFormatter.format_days(durations, timedelta(minutes=min_minutes))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _on_transition(self, old_idle: bool, new_idle: bool) -> None:
        transition = Transition(old_idle=old_idle, new_idle=new_idle, at=datetime.now())
        event_type = EventType.IDLE if transition.became_idle else EventType.NOT_IDLE
        logger.info("%s", format_event(TimelineEvent(timestamp=transition.at, type=event_type)))
        with self._timeline_lock:
            self.timeline.record_transition(transition)

    def _on_app_change(self, app: str, now: datetime) -> None:
        self.on_event(TimelineEvent(timestamp=now, type=EventType.APP, app=app))

    def _start_activity_sources(self) -> None:
        source = self._activity_source
        if source is None:
            try:
                source = create_activity_source()
            except OSError as exc:
                logger.warning("%s Idle state will only change via record_activity().", exc)
                return

        on_app_change = None
        if self.config.get("track_applications", True):
            if sys.platform == "darwin":
                self._start_workspace_observer()
            if self._workspace_observer is None:
                on_app_change = self._on_app_change

        self._poller = InputPoller(
            source,
            self.monitor,
            interval=self.config.get("input_poll_interval_seconds", 1),
            on_app_change=on_app_change,
        )
        self._poller.start()

    def _start_workspace_observer(self) -> None:
        try:
            from idlewatch.platform.macos_observer import MacOSWorkspaceObserver
        except ImportError:
            return

        observer = MacOSWorkspaceObserver(on_event=self.on_event)
        if observer.start():
            self._workspace_observer = observer
