"""Core data models for IdleWatch.

Defines the dataclasses and enums shared across the application:
- Monitor lifecycle: MonitorState, Transition
- Session timeline: EventType, PresenceState, TimelineEvent
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


# ---------------------------------------------------------------------------
# Idle monitor
# ---------------------------------------------------------------------------

class MonitorState(Enum):
    """Lifecycle state of an IdleMonitor."""
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class Transition:
    """A change of the idle flag, as delivered to observers."""
    old_idle: bool
    new_idle: bool
    at: datetime

    @property
    def became_idle(self) -> bool:
        return self.new_idle and not self.old_idle


# ---------------------------------------------------------------------------
# Session timeline
# ---------------------------------------------------------------------------

class EventType(Enum):
    """Kinds of events that move the session timeline."""
    STARTED = "started"
    APP = "app"
    IDLE = "idle"
    NOT_IDLE = "not_idle"
    SCREEN_SLEEP = "screen_sleep"
    SCREEN_WAKE_UP = "screen_wake_up"
    SLEEP = "sleep"
    WAKE_UP = "wake_up"


class PresenceState(Enum):
    """Where the user is, as far as the timeline can tell."""
    UNKNOWN = "unknown"
    ACTIVE = "active"
    IDLE = "idle"
    SLEEPING = "sleeping"


@dataclass(frozen=True)
class TimelineEvent:
    """A single timestamped observation fed into the session timeline."""
    timestamp: datetime
    type: EventType
    app: Optional[str] = None  # only set for EventType.APP
