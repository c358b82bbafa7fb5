"""Sampling of key paths in JSON-lines objects.

Every line of every matching object is parsed as a JSON record and each
key path found in it, down to a maximum depth, is counted together with
the type of its value::

    {"a": {"b": "v"}}   ->   paths:a=OBJECT, paths:a.b=STRING

Array items are only descended into when array inspection is enabled;
they appear in paths as ``$_ARRAY_ITEM_$``. String values found at one of
the ``parse_paths`` are decoded as JSON before being sampled, and show up
in paths with a ``$`` in front of their key.
"""

import json
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from s3_tools.core import get_logger, settings
from s3_tools.core.context import RunContext
from s3_tools.objectstorage.filters import compile_key_filter, key_matches
from s3_tools.objectstorage.listing import ObjectWalker
from s3_tools.objectstorage.locator import format_uri
from s3_tools.transfer.pipe import StreamingTransferPipe

logger = get_logger(__name__)

ARRAY_ITEM = "$_ARRAY_ITEM_$"


def value_type(value: Any) -> str:
    """Name the JSON type of a decoded value."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "BOOLEAN"
    if isinstance(value, (int, float)):
        return "NUMBER"
    if isinstance(value, str):
        return "STRING"
    if isinstance(value, list):
        return "ARRAY"
    return "OBJECT"


def walk_record(
    record: Any,
    counts: Optional[Counter] = None,
    depth: int = 3,
    inspect_arrays: bool = False,
    parse_paths: Iterable[str] = (),
) -> Counter:
    """Count the typed key paths of one record.

    Args:
        record: Decoded JSON record; the root itself is not counted
        counts: Counter to add to (a new one is created when omitted)
        depth: Deepest path level to count
        inspect_arrays: Descend into array items
        parse_paths: Dotted paths whose string values are decoded as JSON

    Returns:
        The updated counter
    """
    if counts is None:
        counts = Counter()
    parse = set(parse_paths)

    def children(value: Any) -> list[tuple[str, Any]]:
        if isinstance(value, dict):
            return list(value.items())
        if isinstance(value, list) and inspect_arrays:
            return [(ARRAY_ITEM, item) for item in value]
        return []

    def visit(value: Any, level: int, keys: list[str], display: list[str]) -> None:
        if isinstance(value, str) and ".".join(keys) in parse:
            try:
                value = json.loads(value)
                display = [*display[:-1], f"${display[-1]}"]
            except ValueError:
                logger.warning("Failed to parse JSON from record", path=".".join(keys))

        counts[f"paths:{'.'.join(display)}={value_type(value)}"] += 1

        if level >= depth:
            return

        for key, child in children(value):
            visit(child, level + 1, [*keys, str(key)], [*display, str(key)])

    for key, child in children(record):
        if depth > 0:
            visit(child, 1, [str(key)], [str(key)])

    return counts


@dataclass
class SampleSummary:
    """Counters for one sampling run."""

    bucket: str
    prefix: str
    metrics: Counter = field(default_factory=Counter)
    last_key: Optional[str] = None
    elapsed: str = ""

    def as_dict(self) -> dict[str, int]:
        return dict(sorted(self.metrics.items()))

    def describe(self) -> str:
        return (
            f"{self.elapsed} elapsed [last-key => {self.last_key}]\n"
            f"{json.dumps(self.as_dict(), indent=2)}"
        )


class _LineSink:
    """Writable sink that hands every complete line to a callback."""

    def __init__(self, on_line):
        self.on_line = on_line
        self._partial = b""

    def write(self, data: bytes) -> int:
        lines = (self._partial + data).split(b"\n")
        self._partial = lines.pop()
        for line in lines:
            self.on_line(line)
        return len(data)

    def flush(self) -> None:
        if self._partial:
            line, self._partial = self._partial, b""
            self.on_line(line)


class RecordSampler:
    """Samples JSON-lines records from every matching object under a prefix."""

    def __init__(
        self,
        context: RunContext,
        bucket: str,
        prefix: str = "",
        key_regex: Optional[str] = None,
        depth: int = 3,
        inspect_arrays: bool = False,
        parse_paths: Iterable[str] = (),
        chunk_size: int = settings.chunk_size,
        channel_depth: int = settings.channel_depth,
    ):
        self.context = context
        self.bucket = bucket
        self.prefix = prefix or ""
        self.key_filter = compile_key_filter(key_regex)
        self.depth = depth
        self.inspect_arrays = inspect_arrays
        self.parse_paths = list(parse_paths)
        # Gzip objects are detected and decompressed transparently
        self.pipe = StreamingTransferPipe(
            context, chunk_size=chunk_size, channel_depth=channel_depth, decompress=None
        )

    def run(self) -> SampleSummary:
        """Sample every matching object.

        Raises:
            EnumerationError: If listing fails
            ProviderError: If an object cannot be opened
            TransferError: If streaming an object fails
        """
        summary = SampleSummary(bucket=self.bucket, prefix=self.prefix)
        metrics = summary.metrics
        reporter = self.context.reporter(SampleSummary.describe)

        def sample_line(line: bytes) -> None:
            if not line.strip():
                return
            metrics["scan.lines"] += 1
            try:
                record = json.loads(line)
            except ValueError as e:
                metrics["scan.records.invalid"] += 1
                logger.warning("Invalid JSON record", key=summary.last_key, error=str(e))
            else:
                metrics["scan.records.valid"] += 1
                walk_record(
                    record,
                    metrics,
                    depth=self.depth,
                    inspect_arrays=self.inspect_arrays,
                    parse_paths=self.parse_paths,
                )
            summary.elapsed = self.context.elapsed()
            reporter.schedule(summary)

        logger.info(
            "Sampling records",
            uri=format_uri(self.bucket, self.prefix),
            depth=self.depth,
            parse_paths=self.parse_paths,
        )

        walker = ObjectWalker(self.context.provider, self.bucket, prefix=self.prefix)

        try:
            for descriptor in walker.objects():
                summary.last_key = descriptor.key
                if not key_matches(self.key_filter, descriptor.key):
                    metrics["s3.keys.filtered"] += 1
                    continue

                metrics["s3.keys.sampled"] += 1
                body = self.context.provider.get_object(self.bucket, descriptor.key)
                try:
                    self.pipe.run(
                        body.stream,
                        _LineSink(sample_line),
                        content_encoding=body.content_encoding,
                        on_progress=lambda session, written: None,
                    )
                finally:
                    body.close()
        finally:
            summary.elapsed = self.context.elapsed()
            reporter.halt(summary)

        logger.info(
            "Sampling finished",
            bucket=self.bucket,
            prefix=self.prefix,
            lines=metrics["scan.lines"],
            keys=metrics["s3.keys.sampled"],
        )
        return summary
