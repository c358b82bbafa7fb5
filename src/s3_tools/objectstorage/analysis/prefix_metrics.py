"""S3 prefix analysis for calculating object counts and total sizes."""

from dataclasses import dataclass
from typing import Optional

from s3_tools.core import get_logger
from s3_tools.core.context import RunContext
from s3_tools.core.formatting import format_bytes
from s3_tools.objectstorage.filters import compile_key_filter, key_matches
from s3_tools.objectstorage.listing import ObjectWalker
from s3_tools.objectstorage.locator import format_uri
from s3_tools.objectstorage.provider import MAX_PAGE_SIZE
from s3_tools.schemas import ObjectRecord

logger = get_logger(__name__)


@dataclass(frozen=True)
class PrefixMetrics:
    """Metrics about objects under an S3 prefix.

    Attributes:
        object_count: Number of objects matching the key filter
        total_bytes: Total size in bytes of the matching objects
        bucket: S3 bucket name
        prefix: S3 prefix/path (empty string for bucket root)
        scanned: Number of objects listed, matching or not
        last_key: Last matching key
    """

    object_count: int
    total_bytes: int
    bucket: str
    prefix: str
    scanned: int = 0
    last_key: Optional[str] = None

    def describe(self, elapsed: str = "") -> str:
        line = (
            f"{self.object_count:,} of {self.scanned:,} keys => "
            f"{format_bytes(self.total_bytes)} ({self.total_bytes:,} bytes)"
        )
        if elapsed:
            line += f" in {elapsed}"
        if self.last_key:
            line += f" [{self.last_key}]"
        return line


@dataclass
class _Tally:
    scanned: int = 0
    count: int = 0
    size: int = 0
    last_key: Optional[str] = None


class PrefixAnalyzer:
    """Analyzes S3 prefixes for object counts and total sizes."""

    def __init__(self, context: RunContext, page_size: int = MAX_PAGE_SIZE):
        """Initialize the prefix analyzer.

        Args:
            context: Run context of the invocation
            page_size: Keys requested per listing page
        """
        self.context = context
        self.page_size = page_size

    def analyze_prefix(
        self, bucket: str, prefix: str = "", key_regex: Optional[str] = None
    ) -> PrefixMetrics:
        """Count the objects and bytes under a prefix.

        Args:
            bucket: S3 bucket name
            prefix: Key prefix (empty for the whole bucket)
            key_regex: Only count keys matching this regular expression

        Returns:
            PrefixMetrics containing object count and total size

        Raises:
            ValidationError: If the regex is invalid
            EnumerationError: If listing fails
        """
        key_filter = compile_key_filter(key_regex)
        prefix = prefix or ""
        tally = _Tally()

        def snapshot() -> PrefixMetrics:
            return PrefixMetrics(
                object_count=tally.count,
                total_bytes=tally.size,
                bucket=bucket,
                prefix=prefix,
                scanned=tally.scanned,
                last_key=tally.last_key,
            )

        logger.info(
            "Analyzing S3 prefix",
            uri=format_uri(bucket, prefix),
            key_regex=key_regex,
        )

        reporter = self.context.reporter(
            lambda _: snapshot().describe(self.context.elapsed())
        )
        walker = ObjectWalker(
            self.context.provider, bucket, prefix=prefix, page_size=self.page_size
        )

        try:
            for descriptor in walker.objects():
                tally.scanned += 1
                matched = key_matches(key_filter, descriptor.key)

                if matched:
                    tally.count += 1
                    tally.size += descriptor.size_bytes
                    tally.last_key = descriptor.key
                    self.context.record(
                        ObjectRecord(
                            bucket=bucket,
                            key=descriptor.key,
                            uri=format_uri(bucket, descriptor.key),
                            size=descriptor.size_bytes,
                            last_modified=descriptor.last_modified,
                            action="counted",
                        )
                    )

                logger.debug(
                    "Key sized",
                    key=descriptor.key,
                    bytes=descriptor.size_bytes,
                    counted=matched,
                )
                reporter.schedule(tally)
        finally:
            reporter.halt(tally)

        metrics = snapshot()
        logger.info(
            "S3 prefix analysis completed",
            bucket=bucket,
            prefix=prefix,
            object_count=metrics.object_count,
            total_bytes=metrics.total_bytes,
            scanned=metrics.scanned,
        )
        return metrics
