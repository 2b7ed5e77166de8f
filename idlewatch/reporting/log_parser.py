"""Parser for the IdleWatch event log.

Each line starts with a local timestamp and names one event::

    2024-03-04 09:15:02.1234 Started
    2024-03-04 09:15:03.0001 Application activated com.apple.Terminal
    2024-03-04 09:20:03.0001 Idle
    2024-03-04 09:31:40.5120 Not idle @ 2024-03-04 09:31:39.9000
    2024-03-04 12:02:11.0000 Screen sleep

``Not idle`` lines carry the time the activity actually happened after the
``@``; that time is used as the event timestamp.
"""

import re
from datetime import datetime
from typing import Iterable, Iterator, Optional

from idlewatch.core.errors import LogParseError
from idlewatch.core.models import EventType, TimelineEvent
from idlewatch.core.timeline import SessionTimeline

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

_TS = r"\d+-\d+-\d+ \d+:\d+:\d+\.\d+"
LINE_RE = re.compile(
    rf"^(?P<ts>{_TS}) "
    r"(?:(?P<simple>Started|Screen sleep|Idle timer|Idle|Sleep|Screen wake up|Wake up)"
    rf"|Not idle @ (?P<not_idle_ts>{_TS})"
    r"|Application activated (?P<app>[a-zA-Z0-9.-]+))$"
)

_SIMPLE_EVENTS = {
    "Started": EventType.STARTED,
    "Idle": EventType.IDLE,
    "Sleep": EventType.SLEEP,
    "Wake up": EventType.WAKE_UP,
    "Screen sleep": EventType.SCREEN_SLEEP,
    "Screen wake up": EventType.SCREEN_WAKE_UP,
}

_MESSAGES = {event_type: text for text, event_type in _SIMPLE_EVENTS.items()}


def parse_timestamp(text: str) -> datetime:
    """Parse a log timestamp; fractional digits past the sixth are dropped."""
    head, dot, fraction = text.partition(".")
    return datetime.strptime(f"{head}{dot}{fraction[:6]}", TIMESTAMP_FORMAT)


def format_timestamp(ts: datetime) -> str:
    """Format *ts* the way log lines do (four fractional digits)."""
    return ts.strftime(TIMESTAMP_FORMAT)[:-2]


def format_event(event: TimelineEvent) -> str:
    """Return the message part of a log line for *event* (without timestamp)."""
    if event.type is EventType.APP:
        return f"Application activated {event.app}"
    if event.type is EventType.NOT_IDLE:
        return f"Not idle @ {format_timestamp(event.timestamp)}"
    return _MESSAGES[event.type]


def parse_line(line: str, line_number: Optional[int] = None) -> Optional[TimelineEvent]:
    """Parse one log line.

    Returns ``None`` for lines that carry no event (``Idle timer``).

    Raises:
        LogParseError: If the line does not match the log format.
    """
    text = line.rstrip("\r\n")
    match = LINE_RE.match(text)
    if match is None:
        raise LogParseError(text, line_number)

    try:
        ts = parse_timestamp(match.group("ts"))
        if match.group("not_idle_ts") is not None:
            return TimelineEvent(
                timestamp=parse_timestamp(match.group("not_idle_ts")),
                type=EventType.NOT_IDLE,
            )
    except ValueError as exc:
        raise LogParseError(text, line_number) from exc

    if match.group("app") is not None:
        return TimelineEvent(timestamp=ts, type=EventType.APP, app=match.group("app"))

    simple = match.group("simple")
    if simple == "Idle timer":
        return None
    return TimelineEvent(timestamp=ts, type=_SIMPLE_EVENTS[simple])


def parse_lines(lines: Iterable[str]) -> Iterator[TimelineEvent]:
    """Yield events from *lines*, skipping blank and event-less lines."""
    for number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        event = parse_line(line, number)
        if event is not None:
            yield event


def build_timeline(lines: Iterable[str], timeline: Optional[SessionTimeline] = None) -> SessionTimeline:
    """Feed every event in *lines* into *timeline* (a new one by default)."""
    if timeline is None:
        timeline = SessionTimeline()
    timeline.extend(parse_lines(lines))
    return timeline
