"""Per-invocation state threaded through every component of a command."""

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional

from s3_tools.progress import ThrottledReporter, noop_report

from .config import settings
from .formatting import format_duration
from .records import RecordWriter

if TYPE_CHECKING:
    from s3_tools.objectstorage.provider import StorageProvider


@dataclass
class RunContext:
    """Everything one command invocation shares between components.

    Attributes:
        provider: Object-storage provider used for every request
        clock: Monotonic clock in seconds, injectable for tests
        report_interval: Minimum seconds between progress reports
        progress: Sink for human-readable progress lines (None for quiet runs)
        records: NDJSON writer for matched/affected resources
    """

    provider: "StorageProvider"
    clock: Callable[[], float] = time.monotonic
    report_interval: float = settings.report_frequency
    progress: Optional[Callable[[str], None]] = None
    records: Optional[RecordWriter] = None
    started_at: float = field(init=False)

    def __post_init__(self) -> None:
        self.started_at = self.clock()

    def elapsed(self) -> str:
        return format_duration(self.clock() - self.started_at)

    def emit(self, message: str) -> None:
        """Send one progress line to the progress sink, if any."""
        if self.progress is not None:
            self.progress(message)

    def reporter(self, describe: Callable[[Any], str]) -> ThrottledReporter:
        """Create a reporter whose snapshots are rendered with ``describe``."""
        if self.progress is None:
            return ThrottledReporter(
                noop_report, self.report_interval, clock=self.clock
            )

        return ThrottledReporter(
            lambda snapshot: self.emit(describe(snapshot)),
            self.report_interval,
            clock=self.clock,
        )

    def record(self, record: Any) -> None:
        if self.records is not None:
            self.records.write(record)
