"""Session timeline for IdleWatch.

Turns a stream of presence events (app switches, idle/not-idle, sleep and
wake) into time spent per application per day for the current session.
Everything is held in memory; nothing is written to disk.
"""

from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from idlewatch.core.models import EventType, PresenceState, TimelineEvent, Transition

IDLE_BUCKET = "**IDLE**"
SLEEPING_BUCKET = "**SLEEPING**"
LOCKED_BUCKET = "**LOCKED**"
UNKNOWN_BUCKET = "**UNKNOWN**"

DEFAULT_LOCKED_APP_IDS = ("com.apple.loginwindow", "loginwindow", "LockApp")

# (state, event) -> next state.  APP events are handled separately since
# they also carry the new application.
_TRANSITIONS: dict[PresenceState, dict[EventType, PresenceState]] = {
    PresenceState.ACTIVE: {
        EventType.IDLE: PresenceState.IDLE,
        EventType.SCREEN_WAKE_UP: PresenceState.IDLE,
        EventType.WAKE_UP: PresenceState.IDLE,
        EventType.NOT_IDLE: PresenceState.ACTIVE,
        EventType.SCREEN_SLEEP: PresenceState.SLEEPING,
        EventType.SLEEP: PresenceState.SLEEPING,
    },
    PresenceState.IDLE: {
        EventType.IDLE: PresenceState.IDLE,
        EventType.NOT_IDLE: PresenceState.ACTIVE,
        EventType.SCREEN_SLEEP: PresenceState.SLEEPING,
        EventType.SCREEN_WAKE_UP: PresenceState.IDLE,
        EventType.SLEEP: PresenceState.SLEEPING,
        EventType.WAKE_UP: PresenceState.IDLE,
    },
    PresenceState.SLEEPING: {
        EventType.IDLE: PresenceState.SLEEPING,
        EventType.NOT_IDLE: PresenceState.SLEEPING,
        EventType.SCREEN_SLEEP: PresenceState.SLEEPING,
        EventType.SLEEP: PresenceState.SLEEPING,
        EventType.SCREEN_WAKE_UP: PresenceState.IDLE,
        EventType.WAKE_UP: PresenceState.IDLE,
    },
}


def next_state(
    state: PresenceState, app: Optional[str], event: TimelineEvent
) -> tuple[PresenceState, Optional[str]]:
    """Return the ``(state, app)`` pair that follows *event*."""
    if event.type is EventType.APP:
        if state is PresenceState.SLEEPING:
            # switch app, but keep sleeping
            return state, event.app
        return PresenceState.ACTIVE, event.app

    if state is PresenceState.UNKNOWN:
        # can't leave UNKNOWN until we know which app is in front
        return state, app

    return _TRANSITIONS[state].get(event.type, state), app


class SessionTimeline:
    """Accumulates time per bucket (application or presence marker) per day."""

    def __init__(self, locked_app_ids: Iterable[str] = DEFAULT_LOCKED_APP_IDS) -> None:
        self.locked_app_ids = frozenset(locked_app_ids)
        self.state = PresenceState.UNKNOWN
        self.app: Optional[str] = None
        self.since: Optional[datetime] = None  # when the current span began
        self._durations: dict[date, dict[str, timedelta]] = defaultdict(
            lambda: defaultdict(timedelta)
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def apply(self, event: TimelineEvent) -> bool:
        """Feed one event. Returns True if the state or app changed."""
        if event.type is EventType.STARTED:
            return False

        new_state, new_app = next_state(self.state, self.app, event)
        if new_state is self.state and new_app == self.app:
            return False

        self._credit_span(event.timestamp)
        self.state, self.app = new_state, new_app
        self.since = event.timestamp
        return True

    def extend(self, events: Iterable[TimelineEvent]) -> None:
        for event in events:
            self.apply(event)

    def record_transition(self, transition: Transition) -> bool:
        """Feed an idle monitor transition as an IDLE / NOT_IDLE event."""
        event_type = EventType.IDLE if transition.new_idle else EventType.NOT_IDLE
        return self.apply(TimelineEvent(timestamp=transition.at, type=event_type))

    def close(self, now: datetime) -> None:
        """Credit the open span up to *now*; the current state is kept."""
        if self.since is None or now <= self.since:
            return
        self._credit_span(now)
        self.since = now

    def durations(self) -> dict[date, dict[str, timedelta]]:
        """Return a plain-dict copy of the accumulated durations."""
        return {day: dict(buckets) for day, buckets in self._durations.items()}

    def total(self, day: date) -> timedelta:
        return sum(self._durations.get(day, {}).values(), timedelta(0))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _bucket(self) -> Optional[str]:
        """Name of the bucket that the current span counts towards."""
        if self.state is PresenceState.ACTIVE:
            if self.app in self.locked_app_ids:
                return LOCKED_BUCKET
            return self.app
        if self.state is PresenceState.IDLE:
            return IDLE_BUCKET
        if self.state is PresenceState.SLEEPING:
            return SLEEPING_BUCKET
        return UNKNOWN_BUCKET if self.since is not None else None

    def _credit_span(self, end: datetime) -> None:
        bucket = self._bucket()
        if bucket is None or self.since is None or end <= self.since:
            return

        start = self.since
        while start < end:
            midnight = datetime.combine(start.date() + timedelta(days=1), time.min, start.tzinfo)
            chunk_end = min(end, midnight)
            self._durations[start.date()][bucket] += chunk_end - start
            start = chunk_end
