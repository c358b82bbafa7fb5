"""Stream the content of every matching key under a prefix to one sink."""

from dataclasses import dataclass
from typing import BinaryIO, Optional

from s3_tools.core import get_logger, settings
from s3_tools.core.context import RunContext
from s3_tools.core.formatting import format_bytes
from s3_tools.objectstorage.filters import compile_key_filter, key_matches
from s3_tools.objectstorage.listing import ObjectWalker
from s3_tools.objectstorage.locator import format_uri
from s3_tools.schemas import ObjectRecord
from s3_tools.transfer.pipe import StreamingTransferPipe, TransferSession

logger = get_logger(__name__)


@dataclass
class ScanSummary:
    """Counters for one content scan."""

    bucket: str
    prefix: str
    scanned: int = 0
    skipped: int = 0
    bytes: int = 0
    last_key: Optional[str] = None
    terminated_early: bool = False
    elapsed: str = ""

    def describe(self) -> str:
        total = self.scanned + self.skipped
        line = (
            f"Scanned {self.scanned:,} of {total:,} keys => "
            f"{format_bytes(self.bytes)} in {self.elapsed}"
        )
        if self.last_key:
            line += f" [{self.last_key}]"
        return line


class ContentScanner:
    """Writes the bodies of matching keys to a sink, one key after another."""

    def __init__(
        self,
        context: RunContext,
        bucket: str,
        prefix: str = "",
        key_regex: Optional[str] = None,
        decompress: Optional[bool] = False,
        chunk_size: int = settings.chunk_size,
        channel_depth: int = settings.channel_depth,
    ):
        self.context = context
        self.bucket = bucket
        self.prefix = prefix or ""
        self.key_regex = key_regex
        self.key_filter = compile_key_filter(key_regex)
        self.pipe = StreamingTransferPipe(
            context,
            chunk_size=chunk_size,
            channel_depth=channel_depth,
            decompress=decompress,
        )

    def run(self, sink: BinaryIO, sink_is_stdout: bool = False) -> ScanSummary:
        """Scan every matching key into ``sink``.

        A closed stdout ends the scan early without error.

        Raises:
            EnumerationError: If listing fails
            ProviderError: If an object cannot be opened
            TransferError: If streaming an object fails
        """
        summary = ScanSummary(bucket=self.bucket, prefix=self.prefix)
        reporter = self.context.reporter(ScanSummary.describe)

        def on_progress(session: TransferSession, written: int) -> None:
            summary.bytes += written
            summary.elapsed = self.context.elapsed()
            reporter.schedule(summary)

        match = f" matching regex /{self.key_regex}/" if self.key_regex else ""
        self.context.emit(
            f"Scanning object content at {format_uri(self.bucket, self.prefix)}{match}"
        )

        walker = ObjectWalker(self.context.provider, self.bucket, prefix=self.prefix)

        try:
            for descriptor in walker.objects():
                if not key_matches(self.key_filter, descriptor.key):
                    summary.skipped += 1
                    summary.elapsed = self.context.elapsed()
                    reporter.schedule(summary)
                    continue

                summary.scanned += 1
                summary.last_key = descriptor.key

                body = self.context.provider.get_object(self.bucket, descriptor.key)
                try:
                    session = self.pipe.run(
                        body.stream,
                        sink,
                        content_encoding=body.content_encoding,
                        sink_is_stdout=sink_is_stdout,
                        on_progress=on_progress,
                    )
                finally:
                    body.close()

                self.context.record(
                    ObjectRecord(
                        bucket=self.bucket,
                        key=descriptor.key,
                        uri=format_uri(self.bucket, descriptor.key),
                        size=descriptor.size_bytes,
                        last_modified=descriptor.last_modified,
                        action="scanned",
                    )
                )

                summary.elapsed = self.context.elapsed()
                reporter.schedule(summary)

                if session.terminated_early:
                    summary.terminated_early = True
                    break
        finally:
            summary.elapsed = self.context.elapsed()
            reporter.halt(summary)

        logger.info(
            "Content scan finished",
            bucket=self.bucket,
            prefix=self.prefix,
            scanned=summary.scanned,
            skipped=summary.skipped,
            bytes=summary.bytes,
            terminated_early=summary.terminated_early,
        )
        return summary
