"""Rate-limited progress reporting.

The ``ThrottledReporter`` sits between a producer of work events (keys
listed, batches deleted, bytes written, parts uploaded) and whatever prints
progress. Producers call ``schedule()`` for every unit of work; the report
function runs only when enough time has passed:

* at most once per ``min_delay``,
* at least once per ``max_delay`` for as long as events keep arriving,
* never on its own once events stop, until ``halt()`` forces the final
  report.

The reporter has no timers and no threads. Decisions are taken when
``schedule()`` is called, against an injectable clock, which keeps it
deterministic under test and cheap in hot loops.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from s3_tools.core import get_logger
from s3_tools.core.exceptions import ValidationError

logger = get_logger(__name__)

CLOCK_TOLERANCE = 1e-9

ReportFunc = Callable[[Any], None]


@dataclass
class ProgressState:
    """Mutable scheduling state owned by a single reporter."""

    last_report_time: float
    last_event_time: Optional[float] = None
    pending_snapshot: Any = None
    pending: bool = False
    reports_fired: int = 0
    halted: bool = False


class ThrottledReporter:
    """Debounce-with-maximum-latency scheduler for progress reports."""

    def __init__(
        self,
        report_func: ReportFunc,
        min_delay: float,
        max_delay: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_delay is None:
            max_delay = min_delay * 2

        if min_delay < 0:
            raise ValidationError(f"min_delay must be non-negative, got: {min_delay}")
        if max_delay < min_delay:
            raise ValidationError(
                f"max_delay ({max_delay}) must not be less than min_delay ({min_delay})"
            )

        self.report_func = report_func
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.clock = clock
        self.state = ProgressState(last_report_time=clock())

    @property
    def halted(self) -> bool:
        return self.state.halted

    @property
    def reports_fired(self) -> int:
        return self.state.reports_fired

    def schedule(self, snapshot: Any = None) -> bool:
        """Record one unit of work and report if the delays allow it.

        Returns:
            True if the report function ran for this event
        """
        state = self.state
        if state.halted:
            return False

        now = self.clock()
        # Absorbs float drift from clocks that advance in fractional steps
        since_report = now - state.last_report_time + CLOCK_TOLERANCE
        quiet = (
            state.last_event_time is None
            or now - state.last_event_time + CLOCK_TOLERANCE >= self.min_delay
        )

        state.last_event_time = now
        state.pending_snapshot = snapshot
        state.pending = True

        if since_report >= self.max_delay or (quiet and since_report >= self.min_delay):
            self._fire(now)
            return True

        return False

    def halt(self, snapshot: Any = None, report_func: Optional[ReportFunc] = None) -> None:
        """Fire one final report and disable the reporter.

        Args:
            snapshot: Final state to report; defaults to the last scheduled one
            report_func: Optional replacement for the final report only
        """
        state = self.state
        if state.halted:
            return

        if snapshot is not None:
            state.pending_snapshot = snapshot

        state.halted = True
        self._fire(self.clock(), report_func or self.report_func)

    def _fire(self, now: float, report_func: Optional[ReportFunc] = None) -> None:
        state = self.state
        snapshot = state.pending_snapshot

        state.last_report_time = now
        state.pending = False
        state.reports_fired += 1

        (report_func or self.report_func)(snapshot)


def noop_report(snapshot: Any) -> None:
    """Report function for quiet runs."""
    logger.debug("Progress report suppressed")
