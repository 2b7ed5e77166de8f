"""Exception classes for IdleWatch."""


class IdleWatchError(Exception):
    """Base exception for IdleWatch errors."""
    pass


class InvalidConfiguration(IdleWatchError, ValueError):
    """Raised when the idle threshold or poll interval is not a positive number."""
    pass


class SchedulingFailure(IdleWatchError, RuntimeError):
    """Raised when the recurring tick could not be allocated or armed."""
    pass


class LogParseError(IdleWatchError, ValueError):
    """Raised when an event-log line does not match the expected format."""

    def __init__(self, line: str, line_number: int | None = None) -> None:
        self.line = line
        self.line_number = line_number
        where = f" at line {line_number}" if line_number is not None else ""
        super().__init__(f"Unrecognised event-log line{where}: {line!r}")
