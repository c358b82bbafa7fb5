"""Progress reporting shared by every streaming command."""

from .throttle import ProgressState, ThrottledReporter, noop_report

__all__ = ["ProgressState", "ThrottledReporter", "noop_report"]
