"""Unit tests for InputPoller."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from idlewatch.core.monitor import IdleMonitor
from idlewatch.platform.base import ActivitySource
from idlewatch.platform.input_poller import InputPoller


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _make_poller(idle_values, app="com.apple.Terminal", on_app_change=None, interval=1.0):
    """Build an InputPoller over a mocked source returning *idle_values* in turn."""
    source = MagicMock(spec=ActivitySource)
    source.get_idle_seconds.side_effect = list(idle_values)
    source.get_frontmost_app.return_value = app
    monitor = MagicMock(spec=IdleMonitor)
    clock = FakeClock()
    timer = MagicMock()
    timer_factory = MagicMock(return_value=timer)
    poller = InputPoller(
        source,
        monitor,
        interval=interval,
        on_app_change=on_app_change,
        clock=clock,
        timer_factory=timer_factory,
    )
    return poller, source, monitor, clock, timer_factory, timer


# ---------------------------------------------------------------------------
# poll_once
# ---------------------------------------------------------------------------

class TestPollOnce:
    def test_recent_input_on_first_sample_is_activity(self):
        poller, _, monitor, _, _, _ = _make_poller([0.2])
        assert poller.poll_once() is True
        monitor.record_activity.assert_called_once()

    def test_old_input_on_first_sample_is_not_activity(self):
        poller, _, monitor, _, _, _ = _make_poller([30.0])
        assert poller.poll_once() is False
        monitor.record_activity.assert_not_called()

    def test_no_input_since_previous_sample(self):
        poller, _, monitor, clock, _, _ = _make_poller([10.0, 11.0])
        poller.poll_once()
        clock.now = 1.0
        assert poller.poll_once() is False
        monitor.record_activity.assert_not_called()

    def test_input_since_previous_sample(self):
        poller, _, monitor, clock, _, _ = _make_poller([10.0, 0.7])
        poller.poll_once()
        clock.now = 1.0
        assert poller.poll_once() is True
        monitor.record_activity.assert_called_once()

    def test_input_just_after_previous_sample_is_detected(self):
        """Idle time grows slower than the clock when input landed between samples."""
        poller, _, monitor, clock, _, _ = _make_poller([5.0, 0.9])
        poller.poll_once()
        clock.now = 1.0
        assert poller.poll_once() is True

    def test_unavailable_idle_time_is_skipped(self):
        poller, _, monitor, _, _, _ = _make_poller([None])
        assert poller.poll_once() is False
        monitor.record_activity.assert_not_called()

    def test_source_errors_are_logged(self, caplog):
        poller, source, monitor, _, _, _ = _make_poller([])
        source.get_idle_seconds.side_effect = OSError("ioreg missing")
        assert poller.poll_once() is False
        assert "Failed to read idle time" in caplog.text
        monitor.record_activity.assert_not_called()


# ---------------------------------------------------------------------------
# Frontmost app reporting
# ---------------------------------------------------------------------------

class TestAppChanges:
    def test_reports_app_on_activity(self):
        seen = []
        poller, _, _, _, _, _ = _make_poller([0.1], on_app_change=lambda a, t: seen.append(a))
        poller.poll_once()
        assert seen == ["com.apple.Terminal"]

    def test_same_app_reported_once(self):
        seen = []
        poller, _, _, clock, _, _ = _make_poller(
            [0.1, 0.1], on_app_change=lambda a, t: seen.append(a)
        )
        poller.poll_once()
        clock.now = 1.0
        poller.poll_once()
        assert seen == ["com.apple.Terminal"]

    def test_callback_receives_wall_clock_time(self):
        seen = []
        poller, _, _, _, _, _ = _make_poller([0.1], on_app_change=lambda a, t: seen.append(t))
        poller.poll_once()
        assert isinstance(seen[0], datetime)

    def test_not_checked_without_activity(self):
        callback = MagicMock()
        poller, source, _, _, _, _ = _make_poller([60.0], on_app_change=callback)
        poller.poll_once()
        source.get_frontmost_app.assert_not_called()
        callback.assert_not_called()

    def test_unknown_app_is_not_reported(self):
        callback = MagicMock()
        poller, _, _, _, _, _ = _make_poller([0.1], app=None, on_app_change=callback)
        poller.poll_once()
        callback.assert_not_called()

    def test_callback_errors_do_not_propagate(self, caplog):
        def broken(app, now):
            raise RuntimeError("boom")

        poller, _, monitor, _, _, _ = _make_poller([0.1], on_app_change=broken)
        assert poller.poll_once() is True
        assert "Error in app change callback" in caplog.text


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:
    def test_start_creates_timer(self):
        poller, _, _, _, timer_factory, timer = _make_poller([], interval=2.0)
        poller.start()
        timer_factory.assert_called_once_with(2.0, poller.poll_once)
        timer.start.assert_called_once()
        assert poller.running is True

    def test_start_is_idempotent(self):
        poller, _, _, _, timer_factory, _ = _make_poller([])
        poller.start()
        poller.start()
        timer_factory.assert_called_once()

    def test_stop_cancels_timer(self):
        poller, _, _, _, _, timer = _make_poller([])
        poller.start()
        poller.stop()
        poller.stop()
        timer.cancel.assert_called_once()
        assert poller.running is False


# ---------------------------------------------------------------------------
# Integration with a real monitor
# ---------------------------------------------------------------------------

def test_activity_wakes_real_monitor():
    clock = FakeClock()
    monitor = IdleMonitor(5, 1, clock=clock, timer_factory=MagicMock())
    clock.now = 10.0
    monitor.tick()
    assert monitor.is_idle() is True

    source = MagicMock(spec=ActivitySource)
    source.get_idle_seconds.return_value = 0.05
    poller = InputPoller(source, monitor, clock=clock, timer_factory=MagicMock())
    poller.poll_once()

    assert monitor.is_idle() is False
