"""Factory for creating the appropriate ActivitySource for the current OS."""

import sys

from idlewatch.platform.base import ActivitySource


def create_activity_source() -> ActivitySource:
    """Detect the current OS and return the matching ActivitySource.

    Uses lazy imports so platform-specific modules are only loaded on
    the OS where they are actually needed.

    Raises:
        OSError: If the current platform is not supported.
    """
    if sys.platform == "darwin":
        from idlewatch.platform.macos import MacOSActivitySource
        return MacOSActivitySource()

    if sys.platform == "win32":
        from idlewatch.platform.windows import WindowsActivitySource
        return WindowsActivitySource()

    raise OSError(
        f"Unsupported platform: {sys.platform!r}. "
        "IdleWatch reads input activity on macOS (darwin) and Windows (win32)."
    )
