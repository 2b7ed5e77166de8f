"""macOS activity source using ioreg and AppleScript (osascript)."""

import logging
import re
import subprocess
from typing import Optional

from idlewatch.platform.base import ActivitySource

logger = logging.getLogger(__name__)

_HID_IDLE_RE = re.compile(r'"HIDIdleTime"\s*=\s*(\d+)')


class MacOSActivitySource(ActivitySource):
    """Read the HID idle time and the frontmost application on macOS.

    Uses ``ioreg`` to read ``HIDIdleTime`` from ``IOHIDSystem`` and
    ``osascript`` to ask System Events for the frontmost process.
    """

    def get_idle_seconds(self) -> Optional[float]:
        """Query ``ioreg`` for the HID idle time and return it in seconds.

        The HID idle time is reported in nanoseconds.  Returns ``None``
        when the value cannot be determined.
        """
        try:
            result = subprocess.run(
                ["ioreg", "-c", "IOHIDSystem"],
                capture_output=True,
                text=True,
                timeout=5,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as exc:
            logger.debug("ioreg execution failed: %s", exc)
            return None

        if result.returncode != 0:
            logger.debug("ioreg returned %d", result.returncode)
            return None

        match = _HID_IDLE_RE.search(result.stdout)
        if match is None:
            logger.debug("HIDIdleTime not found in ioreg output")
            return None

        return int(match.group(1)) / 1_000_000_000

    def get_frontmost_app(self) -> Optional[str]:
        """Return the bundle identifier of the frontmost application process."""
        script = (
            'tell application "System Events" to get bundle identifier of first '
            "application process whose frontmost is true"
        )
        return self._run_osascript(script)

    def _run_osascript(self, script: str) -> Optional[str]:
        """Execute an AppleScript snippet via ``osascript`` and return stdout.

        Returns ``None`` on any error.
        """
        try:
            result = subprocess.run(
                ["osascript", "-e", script],
                capture_output=True,
                text=True,
                timeout=5,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as exc:
            logger.debug("osascript execution failed: %s", exc)
            return None

        if result.returncode != 0:
            logger.debug(
                "osascript returned %d: %s", result.returncode, result.stderr.strip()
            )
            return None
        output = result.stdout.strip()
        return output if output else None
