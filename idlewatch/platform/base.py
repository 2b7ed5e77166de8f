"""Abstract base class for platform-specific activity sources."""

from abc import ABC, abstractmethod
from typing import Optional


class ActivitySource(ABC):
    """Common interface for reading OS-level user input activity.

    Each supported platform (macOS, Windows) provides a concrete
    implementation that uses OS-specific APIs behind this interface.
    """

    @abstractmethod
    def get_idle_seconds(self) -> Optional[float]:
        """Return seconds since the last keyboard/mouse input, or None if unknown."""
        pass

    def get_frontmost_app(self) -> Optional[str]:
        """Return the identifier of the frontmost application, or None."""
        return None
