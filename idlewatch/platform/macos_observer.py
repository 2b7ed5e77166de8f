"""Event-driven macOS workspace observer using NSWorkspace notifications.

Reports application activation, system sleep/wake and display sleep/wake as
timeline events. Requires pyobjc; when it is not installed ``start()``
returns False and callers fall back to polling the frontmost app.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from idlewatch.core.models import EventType, TimelineEvent

logger = logging.getLogger(__name__)

# NSWorkspace notification name -> timeline event type
NOTIFICATION_EVENTS = {
    "NSWorkspaceDidActivateApplicationNotification": EventType.APP,
    "NSWorkspaceWillSleepNotification": EventType.SLEEP,
    "NSWorkspaceDidWakeNotification": EventType.WAKE_UP,
    "NSWorkspaceScreensDidSleepNotification": EventType.SCREEN_SLEEP,
    "NSWorkspaceScreensDidWakeNotification": EventType.SCREEN_WAKE_UP,
}


class MacOSWorkspaceObserver:
    """Forwards NSWorkspace notifications to *on_event* as TimelineEvents.

    Notifications are pumped by a background run loop thread, so *on_event*
    is invoked on that thread.
    """

    def __init__(self, on_event: Callable[[TimelineEvent], None]) -> None:
        self._on_event = on_event
        self._running = False
        self._handler = None
        self._notification_center = None
        self._runloop_thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """Subscribe to workspace notifications. Returns False if unavailable."""
        if self._running:
            return True

        self._running = True
        if self._setup_ns_observer():
            logger.info("Using NSWorkspace notifications for app and sleep events")
            return True

        self._running = False
        return False

    def stop(self) -> None:
        """Unsubscribe and stop the run loop thread."""
        self._running = False
        self._teardown_ns_observer()
        if self._runloop_thread is not None:
            self._runloop_thread.join(timeout=5)
            self._runloop_thread = None

    def handle_notification(self, name: str, bundle_id: Optional[str] = None) -> None:
        """Translate one notification into a TimelineEvent and forward it."""
        event_type = NOTIFICATION_EVENTS.get(name)
        if event_type is None:
            return
        if event_type is EventType.APP and not bundle_id:
            return

        event = TimelineEvent(
            timestamp=datetime.now(),
            type=event_type,
            app=bundle_id if event_type is EventType.APP else None,
        )
        try:
            self._on_event(event)
        except Exception:
            logger.exception("Error in workspace event callback")

    # ------------------------------------------------------------------
    # pyobjc plumbing
    # ------------------------------------------------------------------

    def _setup_ns_observer(self) -> bool:
        """Register an NSObject handler for each workspace notification."""
        try:
            from AppKit import NSWorkspace
            from Foundation import NSObject
            import objc

            observer = self

            class _WorkspaceHandler(NSObject):
                def workspaceNotification_(self, notification):
                    bundle_id = None
                    info = notification.userInfo()
                    if info is not None:
                        app = info.get("NSWorkspaceApplicationKey")
                        if app is not None:
                            bundle_id = app.bundleIdentifier()
                    observer.handle_notification(str(notification.name()), bundle_id)

            handler = _WorkspaceHandler.alloc().init()
            nc = NSWorkspace.sharedWorkspace().notificationCenter()
            for name in NOTIFICATION_EVENTS:
                nc.addObserver_selector_name_object_(
                    handler,
                    objc.selector(handler.workspaceNotification_, signature=b"v@:@"),
                    name,
                    None,
                )
            self._handler = handler
            self._notification_center = nc

            def _run_loop():
                from AppKit import NSDate, NSDefaultRunLoopMode, NSRunLoop
                while self._running:
                    NSRunLoop.currentRunLoop().runMode_beforeDate_(
                        NSDefaultRunLoopMode,
                        NSDate.dateWithTimeIntervalSinceNow_(0.5),
                    )

            self._runloop_thread = threading.Thread(
                target=_run_loop, daemon=True, name="idlewatch-nsrunloop"
            )
            self._runloop_thread.start()
            return True

        except ImportError:
            logger.debug("AppKit/pyobjc not available for NSWorkspace notifications")
            return False
        except Exception:
            logger.debug("Failed to set up NSWorkspace observer", exc_info=True)
            return False

    def _teardown_ns_observer(self) -> None:
        """Remove the NSWorkspace notification observer."""
        if self._handler is None:
            return
        try:
            self._notification_center.removeObserver_(self._handler)
        except Exception:
            logger.debug("Failed to remove NSWorkspace observer", exc_info=True)
        self._handler = None
        self._notification_center = None
