"""Unit tests for the platform activity sources and factory.

All OS calls are mocked: DLLs are injected for Windows and
``subprocess.run`` is patched for macOS, so these run on any platform.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from idlewatch.platform.base import ActivitySource
from idlewatch.platform.factory import create_activity_source
from idlewatch.platform.macos import MacOSActivitySource
from idlewatch.platform.windows import WindowsActivitySource, _executable_name


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_windows_source(user32=None, kernel32=None):
    """Build a WindowsActivitySource with injected mock DLLs."""
    with patch.object(WindowsActivitySource, "__init__", lambda self: None):
        source = WindowsActivitySource()
    source._user32 = user32 if user32 is not None else MagicMock()
    source._kernel32 = kernel32 if kernel32 is not None else MagicMock()
    return source


def _completed(stdout: str = "", stderr: str = "", returncode: int = 0):
    """Build a fake ``subprocess.CompletedProcess``."""
    return subprocess.CompletedProcess(
        args=[], returncode=returncode, stdout=stdout, stderr=stderr,
    )


# ---------------------------------------------------------------------------
# ActivitySource
# ---------------------------------------------------------------------------

def test_base_frontmost_app_defaults_to_none():
    class OnlyIdle(ActivitySource):
        def get_idle_seconds(self):
            return 1.0

    assert OnlyIdle().get_frontmost_app() is None


def test_base_is_abstract():
    with pytest.raises(TypeError):
        ActivitySource()


# ---------------------------------------------------------------------------
# Windows
# ---------------------------------------------------------------------------

class TestWindowsIdleSeconds:
    def _source_with_ticks(self, last_input_ms, now_ms, ok=True):
        user32 = MagicMock()
        kernel32 = MagicMock()

        def fake_get_last_input_info(ref):
            ref._obj.dwTime = last_input_ms
            return ok

        user32.GetLastInputInfo.side_effect = fake_get_last_input_info
        kernel32.GetTickCount.return_value = now_ms
        return _make_windows_source(user32, kernel32)

    def test_returns_seconds_since_input(self):
        source = self._source_with_ticks(last_input_ms=10_000, now_ms=25_500)
        assert source.get_idle_seconds() == pytest.approx(15.5)

    def test_handles_tick_wraparound(self):
        source = self._source_with_ticks(last_input_ms=0xFFFFFFFF - 999, now_ms=1_000)
        assert source.get_idle_seconds() == pytest.approx(2.0)

    def test_returns_none_when_call_fails(self):
        source = self._source_with_ticks(last_input_ms=0, now_ms=0, ok=False)
        assert source.get_idle_seconds() is None

    def test_returns_none_without_dlls(self):
        source = _make_windows_source()
        source._user32 = None
        assert source.get_idle_seconds() is None

    def test_returns_none_on_os_error(self):
        user32 = MagicMock()
        user32.GetLastInputInfo.side_effect = OSError("access denied")
        source = _make_windows_source(user32=user32)
        assert source.get_idle_seconds() is None


class TestWindowsFrontmostApp:
    def test_returns_app_name(self):
        source = _make_windows_source()
        source._user32.GetForegroundWindow.return_value = 1234
        with patch.object(source, "_get_app_name", return_value="notepad"):
            assert source.get_frontmost_app() == "notepad"

    def test_returns_none_without_foreground_window(self):
        source = _make_windows_source()
        source._user32.GetForegroundWindow.return_value = 0
        assert source.get_frontmost_app() is None

    def test_returns_none_without_dlls(self):
        source = _make_windows_source()
        source._kernel32 = None
        assert source.get_frontmost_app() is None

    @pytest.mark.parametrize("path,expected", [
        (r"C:\Windows\System32\notepad.exe", "notepad"),
        ("C:/Program Files/App/App.EXE", "App"),
        ("explorer", "explorer"),
    ])
    def test_executable_name(self, path, expected):
        assert _executable_name(path) == expected


# ---------------------------------------------------------------------------
# macOS
# ---------------------------------------------------------------------------

IOREG_OUTPUT = """\
  | |   "HIDIdleTime" = 2500000000
  | |   "HIDKeyboardModifierMappingPairs" = ()
"""


class TestMacOSIdleSeconds:
    @patch("idlewatch.platform.macos.subprocess.run")
    def test_parses_hid_idle_time(self, mock_run):
        mock_run.return_value = _completed(stdout=IOREG_OUTPUT)
        assert MacOSActivitySource().get_idle_seconds() == pytest.approx(2.5)
        assert mock_run.call_args[0][0] == ["ioreg", "-c", "IOHIDSystem"]

    @patch("idlewatch.platform.macos.subprocess.run")
    def test_missing_value_returns_none(self, mock_run):
        mock_run.return_value = _completed(stdout="nothing here")
        assert MacOSActivitySource().get_idle_seconds() is None

    @patch("idlewatch.platform.macos.subprocess.run")
    def test_non_zero_exit_returns_none(self, mock_run):
        mock_run.return_value = _completed(returncode=1)
        assert MacOSActivitySource().get_idle_seconds() is None

    @patch("idlewatch.platform.macos.subprocess.run")
    def test_timeout_returns_none(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="ioreg", timeout=5)
        assert MacOSActivitySource().get_idle_seconds() is None

    @patch("idlewatch.platform.macos.subprocess.run")
    def test_missing_binary_returns_none(self, mock_run):
        mock_run.side_effect = FileNotFoundError("ioreg")
        assert MacOSActivitySource().get_idle_seconds() is None


class TestMacOSFrontmostApp:
    @patch("idlewatch.platform.macos.subprocess.run")
    def test_returns_bundle_identifier(self, mock_run):
        mock_run.return_value = _completed(stdout="com.apple.Safari\n")
        assert MacOSActivitySource().get_frontmost_app() == "com.apple.Safari"
        assert mock_run.call_args[0][0][0] == "osascript"

    @patch("idlewatch.platform.macos.subprocess.run")
    def test_empty_output_returns_none(self, mock_run):
        mock_run.return_value = _completed(stdout="\n")
        assert MacOSActivitySource().get_frontmost_app() is None

    @patch("idlewatch.platform.macos.subprocess.run")
    def test_osascript_error_returns_none(self, mock_run):
        mock_run.return_value = _completed(returncode=1, stderr="not authorized")
        assert MacOSActivitySource().get_frontmost_app() is None


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

class TestFactory:
    def test_macos(self, monkeypatch):
        monkeypatch.setattr("idlewatch.platform.factory.sys.platform", "darwin")
        assert isinstance(create_activity_source(), MacOSActivitySource)

    def test_windows(self, monkeypatch):
        monkeypatch.setattr("idlewatch.platform.factory.sys.platform", "win32")
        assert isinstance(create_activity_source(), WindowsActivitySource)

    def test_unsupported_platform_raises(self, monkeypatch):
        monkeypatch.setattr("idlewatch.platform.factory.sys.platform", "sunos5")
        with pytest.raises(OSError, match="Unsupported platform"):
            create_activity_source()
