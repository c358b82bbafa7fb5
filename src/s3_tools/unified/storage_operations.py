"""Command-level storage operations.

Each function here implements one command on top of the core components:
it resolves the target, wires the run context into the walker, mutator,
pipe or coordinator, and runs inside a tracing span. The CLI is a thin
layer over these functions, and they can be called directly as a library.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Callable, Iterable, Optional

from s3_tools.core import get_logger, get_tracer, settings
from s3_tools.core.context import RunContext
from s3_tools.core.exceptions import ValidationError
from s3_tools.core.records import RecordWriter
from s3_tools.objectstorage.analysis import (
    ContentScanner,
    PrefixAnalyzer,
    PrefixMetrics,
    RecordSampler,
    SampleSummary,
    ScanSummary,
)
from s3_tools.objectstorage.clients import S3ClientConfig, create_provider
from s3_tools.objectstorage.listing import MultipartUploadWalker, ObjectWalker
from s3_tools.objectstorage.locator import ResourceLocation, format_uri, resolve_resource
from s3_tools.objectstorage.mutation import BatchDeleter, BatchDeleteSummary
from s3_tools.objectstorage.provider import MAX_DELETE_KEYS
from s3_tools.schemas import MultipartUploadRecord, S3StorageConfig
from s3_tools.transfer import (
    MultipartUploadCoordinator,
    TransferSession,
    UploadResult,
    fetch_object,
    parse_header_pairs,
    parse_metadata_pairs,
)
from s3_tools.transfer.multipart import MIB

logger = get_logger(__name__)
tracer = get_tracer(__name__)


@dataclass(frozen=True)
class BucketInfo:
    """A bucket with its creation time and region."""

    name: str
    region: str
    created: Optional[datetime] = None


def open_context(
    config: S3StorageConfig,
    progress: Optional[Callable[[str], None]] = None,
    records: Optional[RecordWriter] = None,
    report_interval: float = settings.report_frequency,
    max_pool_connections: int = 10,
) -> RunContext:
    """Create the run context for one command invocation.

    Args:
        config: Storage connection settings
        progress: Sink for progress lines (None for quiet runs)
        records: NDJSON record writer
        report_interval: Minimum seconds between progress reports
        max_pool_connections: HTTP connection pool size of the S3 client

    Returns:
        RunContext holding a provider for ``config``
    """
    provider = create_provider(
        S3ClientConfig.from_storage_config(
            config, max_pool_connections=max_pool_connections
        )
    )
    return RunContext(
        provider=provider,
        progress=progress,
        records=records,
        report_interval=report_interval,
    )


def _require_key(location: ResourceLocation) -> str:
    if not location.key:
        raise ValidationError(f"A key is required: {location.uri}")
    return location.key


def list_buckets(context: RunContext) -> list[BucketInfo]:
    """List every bucket visible to the credentials, with its region."""
    with tracer.start_as_current_span("list_buckets"):
        buckets = [
            BucketInfo(
                name=bucket["name"],
                region=context.provider.get_bucket_region(bucket["name"]),
                created=bucket.get("created"),
            )
            for bucket in context.provider.list_buckets()
        ]
        logger.info("Buckets listed", count=len(buckets))
        return buckets


def list_objects(
    context: RunContext,
    uri_or_bucket: str,
    prefix: Optional[str] = None,
    delimiter: Optional[str] = None,
    start_after: Optional[str] = None,
    limit: Optional[int] = 100,
    page_size: int = settings.page_size,
) -> ObjectWalker:
    """Create a lazy walker over the keys (and common prefixes) under a prefix.

    Pass ``limit=None`` for an unlimited listing. Nothing is fetched until
    the walker is iterated; ``walker.more_available`` tells afterwards
    whether the listing was partial.
    """
    location = resolve_resource(uri_or_bucket, prefix)
    return ObjectWalker(
        context.provider,
        location.bucket,
        prefix=location.key or "",
        delimiter=delimiter,
        page_size=page_size,
        limit=limit,
        start_after=start_after,
    )


def clean_prefix(
    context: RunContext,
    uri_or_bucket: str,
    prefix: Optional[str] = None,
    key_regex: Optional[str] = None,
    dry_run: bool = False,
    batch_size: int = MAX_DELETE_KEYS,
    confirm: Optional[Callable[[str], bool]] = None,
    force: bool = False,
) -> BatchDeleteSummary:
    """Delete every key under a prefix, optionally filtered by a regex.

    Raises:
        ValidationError: If the locator, regex or batch size is invalid
        EnumerationError: If listing fails
        ProviderError: If a bulk delete request fails outright
    """
    location = resolve_resource(uri_or_bucket, prefix)

    with tracer.start_as_current_span("clean_prefix") as span:
        span.set_attribute("s3.bucket", location.bucket)
        span.set_attribute("s3.prefix", location.key or "")
        span.set_attribute("dry_run", dry_run)

        deleter = BatchDeleter(
            context,
            location.bucket,
            prefix=location.key or "",
            key_regex=key_regex,
            dry_run=dry_run,
            batch_size=batch_size,
            confirm=confirm,
            force=force,
        )
        summary = deleter.run()

        span.set_attribute("deleted", summary.deleted)
        span.set_attribute("failed", len(summary.failures))
        return summary


def measure_prefix(
    context: RunContext,
    uri_or_bucket: str,
    prefix: Optional[str] = None,
    key_regex: Optional[str] = None,
) -> PrefixMetrics:
    """Count the objects and bytes under a prefix."""
    location = resolve_resource(uri_or_bucket, prefix)

    with tracer.start_as_current_span("measure_prefix") as span:
        span.set_attribute("s3.bucket", location.bucket)
        span.set_attribute("s3.prefix", location.key or "")

        metrics = PrefixAnalyzer(context).analyze_prefix(
            location.bucket, location.key or "", key_regex=key_regex
        )

        span.set_attribute("object_count", metrics.object_count)
        span.set_attribute("total_bytes", metrics.total_bytes)
        return metrics


def scan_prefix(
    context: RunContext,
    uri_or_bucket: str,
    sink: BinaryIO,
    prefix: Optional[str] = None,
    key_regex: Optional[str] = None,
    decompress: Optional[bool] = False,
    sink_is_stdout: bool = False,
) -> ScanSummary:
    """Stream the content of every matching key into ``sink``."""
    location = resolve_resource(uri_or_bucket, prefix)

    with tracer.start_as_current_span("scan_prefix") as span:
        span.set_attribute("s3.bucket", location.bucket)
        span.set_attribute("s3.prefix", location.key or "")

        scanner = ContentScanner(
            context,
            location.bucket,
            prefix=location.key or "",
            key_regex=key_regex,
            decompress=decompress,
        )
        summary = scanner.run(sink, sink_is_stdout=sink_is_stdout)

        span.set_attribute("scanned", summary.scanned)
        span.set_attribute("bytes", summary.bytes)
        return summary


def sample_prefix(
    context: RunContext,
    uri_or_bucket: str,
    prefix: Optional[str] = None,
    key_regex: Optional[str] = None,
    depth: int = 3,
    inspect_arrays: bool = False,
    parse_paths: Iterable[str] = (),
) -> SampleSummary:
    """Count typed key paths across the JSON-lines objects under a prefix."""
    if depth < 1:
        raise ValidationError(f"depth must be at least 1, got: {depth}")

    location = resolve_resource(uri_or_bucket, prefix)

    with tracer.start_as_current_span("sample_prefix") as span:
        span.set_attribute("s3.bucket", location.bucket)
        span.set_attribute("s3.prefix", location.key or "")

        sampler = RecordSampler(
            context,
            location.bucket,
            prefix=location.key or "",
            key_regex=key_regex,
            depth=depth,
            inspect_arrays=inspect_arrays,
            parse_paths=parse_paths,
        )
        return sampler.run()


def download_object(
    context: RunContext,
    uri_or_bucket: str,
    sink: BinaryIO,
    key: Optional[str] = None,
    byte_range: Optional[str] = None,
    decompress: Optional[bool] = False,
    sink_is_stdout: bool = False,
) -> TransferSession:
    """Stream one object into ``sink``.

    Raises:
        ValidationError: If the locator has no key or the range is malformed
        ProviderError: If the object cannot be opened
        TransferError: If streaming fails
    """
    location = resolve_resource(uri_or_bucket, key)
    object_key = _require_key(location)

    with tracer.start_as_current_span("download_object") as span:
        span.set_attribute("s3.bucket", location.bucket)
        span.set_attribute("s3.key", object_key)

        session = fetch_object(
            context,
            location.bucket,
            object_key,
            sink,
            byte_range=byte_range,
            decompress=decompress,
            sink_is_stdout=sink_is_stdout,
        )

        span.set_attribute("bytes", session.bytes_transferred)
        return session


def upload_object(
    context: RunContext,
    uri_or_bucket: str,
    source: BinaryIO,
    key: Optional[str] = None,
    total_bytes: Optional[int] = None,
    headers: Optional[Iterable[str]] = None,
    metadata: Optional[Iterable[str]] = None,
    publish: bool = False,
    part_size_mib: int = settings.part_size_mib,
    queue_size: int = settings.queue_size,
) -> UploadResult:
    """Upload a byte stream as one object.

    Args:
        context: Run context of the invocation
        uri_or_bucket: Destination URI, or bucket when ``key`` is given
        source: Readable byte stream
        key: Destination key
        total_bytes: Size of the source when known
        headers: ``Name:Value`` pairs mapped to S3 request parameters
        metadata: ``name:value`` pairs stored as user metadata
        publish: Make the object publicly readable
        part_size_mib: Part size in MiB
        queue_size: Parts buffered and uploaded concurrently

    Raises:
        ValidationError: If the locator has no key or a header is invalid
        UploadPartError: If a part fails (the upload is aborted)
    """
    location = resolve_resource(uri_or_bucket, key)
    object_key = _require_key(location)

    coordinator = MultipartUploadCoordinator(
        context,
        location.bucket,
        object_key,
        part_size=part_size_mib * MIB,
        queue_size=queue_size,
        total_bytes=total_bytes,
        headers=parse_header_pairs(headers),
        metadata=parse_metadata_pairs(metadata),
        publish=publish,
    )

    with tracer.start_as_current_span("upload_object") as span:
        span.set_attribute("s3.bucket", location.bucket)
        span.set_attribute("s3.key", object_key)

        result = coordinator.upload(source)

        span.set_attribute("parts", result.parts)
        span.set_attribute("bytes", result.bytes)
        return result


def delete_object(
    context: RunContext, uri_or_bucket: str, key: Optional[str] = None
) -> ResourceLocation:
    """Delete a single object."""
    location = resolve_resource(uri_or_bucket, key)
    object_key = _require_key(location)

    with tracer.start_as_current_span("delete_object") as span:
        span.set_attribute("s3.bucket", location.bucket)
        span.set_attribute("s3.key", object_key)

        context.provider.delete_object(location.bucket, object_key)
        logger.info("Object deleted", uri=location.uri)
        return location


def head_object(
    context: RunContext,
    uri_or_bucket: str,
    key: Optional[str] = None,
    include_acl: bool = False,
) -> dict:
    """Fetch an object's metadata, and optionally its ACL under ``"Acl"``."""
    location = resolve_resource(uri_or_bucket, key)
    object_key = _require_key(location)

    with tracer.start_as_current_span("head_object") as span:
        span.set_attribute("s3.bucket", location.bucket)
        span.set_attribute("s3.key", object_key)

        metadata = dict(context.provider.head_object(location.bucket, object_key))
        if include_acl:
            metadata["Acl"] = context.provider.get_object_acl(
                location.bucket, object_key
            )
        return metadata


def list_multipart_uploads(
    context: RunContext,
    uri_or_bucket: str,
    prefix: Optional[str] = None,
    delimiter: Optional[str] = None,
    limit: Optional[int] = None,
    page_size: int = settings.page_size,
    include_parts: bool = False,
) -> tuple[list[MultipartUploadRecord], bool]:
    """List incomplete multipart uploads under a prefix.

    Every upload is also written to the run's record writer.

    Returns:
        The upload records and whether more uploads remain unlisted
    """
    location = resolve_resource(uri_or_bucket, prefix)

    with tracer.start_as_current_span("list_multipart_uploads") as span:
        span.set_attribute("s3.bucket", location.bucket)
        span.set_attribute("s3.prefix", location.key or "")

        walker = MultipartUploadWalker(
            context.provider,
            location.bucket,
            prefix=location.key or "",
            delimiter=delimiter,
            page_size=page_size,
            limit=limit,
        )

        records = []
        for upload in walker:
            record = MultipartUploadRecord(
                timestamp=upload.initiated,
                bucket=location.bucket,
                key=upload.key,
                uri=format_uri(location.bucket, upload.key),
                upload_id=upload.upload_id,
            )
            if include_parts:
                parts = context.provider.list_parts(
                    location.bucket, upload.key, upload.upload_id
                )
                record.parts = len(parts)
                record.bytes = sum(part.get("Size", 0) for part in parts)

            context.record(record)
            records.append(record)

        span.set_attribute("uploads", len(records))
        return records, walker.more_available
