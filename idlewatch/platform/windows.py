"""Windows activity source using ctypes with user32.dll and kernel32.dll."""

import ctypes
import ctypes.wintypes
import logging
from typing import Optional

from idlewatch.platform.base import ActivitySource

logger = logging.getLogger(__name__)

# Buffer size for process image path retrieval.
_PATH_BUFFER_SIZE = 512

# GetTickCount wraps around every ~49.7 days.
_TICK_WRAP = 0xFFFFFFFF + 1

PROCESS_QUERY_LIMITED_INFORMATION = 0x1000


class LASTINPUTINFO(ctypes.Structure):
    """Win32 LASTINPUTINFO structure for idle detection."""
    _fields_ = [
        ("cbSize", ctypes.wintypes.UINT),
        ("dwTime", ctypes.wintypes.DWORD),
    ]


class WindowsActivitySource(ActivitySource):
    """Read the time since last input and the foreground app on Windows.

    Uses ``GetLastInputInfo`` / ``GetTickCount`` for idle time and the
    foreground window's process image name for the frontmost app.
    """

    def __init__(self) -> None:
        try:
            self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]
            self._kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
        except (AttributeError, OSError) as exc:
            logger.warning("Win32 DLLs unavailable: %s", exc)
            self._user32 = None
            self._kernel32 = None

    # ------------------------------------------------------------------
    # ActivitySource interface
    # ------------------------------------------------------------------

    def get_idle_seconds(self) -> Optional[float]:
        """Return seconds since the last input event, or ``None`` on failure."""
        if self._user32 is None or self._kernel32 is None:
            return None

        try:
            lii = LASTINPUTINFO()
            lii.cbSize = ctypes.sizeof(LASTINPUTINFO)

            if not self._user32.GetLastInputInfo(ctypes.byref(lii)):
                logger.debug("GetLastInputInfo failed")
                return None

            current_tick = self._kernel32.GetTickCount()
            idle_ms = current_tick - lii.dwTime
            if idle_ms < 0:
                idle_ms += _TICK_WRAP

            return idle_ms / 1000.0
        except OSError as exc:
            logger.debug("Idle time query failed: %s", exc)
            return None

    def get_frontmost_app(self) -> Optional[str]:
        """Return the executable name (without ``.exe``) of the foreground window."""
        if self._user32 is None or self._kernel32 is None:
            return None

        try:
            hwnd = self._user32.GetForegroundWindow()
            if not hwnd:
                return None
            return self._get_app_name(hwnd)
        except OSError as exc:
            logger.debug("Failed to get foreground app: %s", exc)
            return None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get_app_name(self, hwnd: int) -> Optional[str]:
        """Retrieve the executable name for the process owning the window."""
        pid = ctypes.wintypes.DWORD()
        self._user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
        if pid.value == 0:
            return None

        handle = self._kernel32.OpenProcess(
            PROCESS_QUERY_LIMITED_INFORMATION, False, pid.value
        )
        if not handle:
            return None

        try:
            buf = ctypes.create_unicode_buffer(_PATH_BUFFER_SIZE)
            buf_size = ctypes.wintypes.DWORD(_PATH_BUFFER_SIZE)
            success = self._kernel32.QueryFullProcessImageNameW(
                handle, 0, buf, ctypes.byref(buf_size)
            )
            if not success or not buf.value:
                return None
            return _executable_name(buf.value)
        finally:
            self._kernel32.CloseHandle(handle)


def _executable_name(path: str) -> str:
    """Strip the directory and a trailing ``.exe`` from an image path."""
    sep_idx = max(path.rfind("\\"), path.rfind("/"))
    name = path[sep_idx + 1:] if sep_idx >= 0 else path
    if name.lower().endswith(".exe"):
        name = name[:-4]
    return name
