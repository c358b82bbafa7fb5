"""Tests for rate-limited progress reporting."""

import pytest

from s3_tools.core.exceptions import ValidationError
from s3_tools.progress import ThrottledReporter

from conftest import FakeClock


class TestThrottledReporter:
    """Test the debounce-with-maximum-latency scheduler."""

    def test_steady_stream_fires_within_bounds(self):
        """Test 1 ms events for 10 s fire between 10/max_delay and 10/min_delay times."""
        clock = FakeClock()
        fired = []
        reporter = ThrottledReporter(fired.append, 0.1, 0.2, clock=clock)

        for i in range(10_000):
            clock.advance(0.001)
            reporter.schedule(i)

        assert 50 <= len(fired) <= 100

    def test_max_delay_met_on_fractional_clock(self):
        """Test a clock computed in float steps still reports every max_delay."""
        now = [0.0]
        fired = []
        reporter = ThrottledReporter(fired.append, 0.1, 0.2, clock=lambda: now[0])

        for i in range(1, 10_001):
            now[0] = i / 1000
            reporter.schedule(i)

        assert fired[:5] == [200, 400, 600, 800, 1000]
        assert len(fired) == 50

    def test_never_fires_faster_than_min_delay(self):
        clock = FakeClock()
        times = []
        reporter = ThrottledReporter(lambda _: times.append(clock()), 0.5, 1.0, clock=clock)

        for _ in range(1000):
            clock.advance(0.01)
            reporter.schedule()

        gaps = [b - a for a, b in zip(times, times[1:])]
        assert gaps and min(gaps) >= 0.5 - 1e-9

    def test_quiet_stream_fires_at_min_delay(self):
        """Test an event after a quiet spell reports once min_delay has passed."""
        clock = FakeClock()
        fired = []
        reporter = ThrottledReporter(fired.append, 1.0, 2.0, clock=clock)

        clock.advance(0.5)
        assert not reporter.schedule("early")
        clock.advance(1.0)
        assert reporter.schedule("quiet")
        assert fired == ["quiet"]

    def test_no_report_without_events(self):
        clock = FakeClock()
        fired = []
        reporter = ThrottledReporter(fired.append, 0.1, clock=clock)

        clock.advance(60)
        assert fired == []

    def test_halt_fires_exactly_once(self):
        clock = FakeClock()
        fired = []
        reporter = ThrottledReporter(fired.append, 1.0, clock=clock)

        reporter.schedule("pending")
        reporter.halt()
        reporter.halt("ignored")
        clock.advance(10)

        assert fired == ["pending"]
        assert reporter.halted
        assert not reporter.schedule("after")
        assert fired == ["pending"]

    def test_halt_with_snapshot_and_override(self):
        clock = FakeClock()
        fired = []
        final = []
        reporter = ThrottledReporter(fired.append, 1.0, clock=clock)

        reporter.halt("final", report_func=final.append)

        assert fired == []
        assert final == ["final"]
        assert reporter.reports_fired == 1

    def test_max_delay_defaults_to_twice_min(self):
        reporter = ThrottledReporter(lambda _: None, 1.5, clock=FakeClock())
        assert reporter.max_delay == 3.0

    def test_zero_delay_reports_every_event(self):
        clock = FakeClock()
        fired = []
        reporter = ThrottledReporter(fired.append, 0.0, clock=clock)

        for i in range(5):
            clock.advance(0.001)
            reporter.schedule(i)

        assert fired == [0, 1, 2, 3, 4]

    def test_negative_min_delay(self):
        with pytest.raises(ValidationError, match="min_delay"):
            ThrottledReporter(lambda _: None, -1)

    def test_max_below_min(self):
        with pytest.raises(ValidationError, match="max_delay"):
            ThrottledReporter(lambda _: None, 2.0, 1.0)
