"""Bounded-concurrency multipart upload.

The calling thread reads the source one part at a time, buffering each
part fully in memory, and hands it to a thread pool of ``queue_size``
workers. While ``queue_size`` parts are still waiting for acknowledgement
the source is not read, so memory stays bounded at roughly
``part_size * queue_size`` plus the part being filled.

Only the calling thread touches the manifest and the progress counters;
workers just return the tag the provider issued for their part. The
upload is committed once every part is Complete, with the manifest
ordered by part number. If any part fails, the parts still queued are
cancelled, the upload is aborted and ``UploadPartError`` is raised.
"""

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, BinaryIO, Optional

from s3_tools.core import get_logger, settings
from s3_tools.core.context import RunContext
from s3_tools.core.exceptions import (
    ProviderError,
    TransferError,
    UploadPartError,
    ValidationError,
)
from s3_tools.core.formatting import format_bytes
from s3_tools.objectstorage.locator import format_uri

logger = get_logger(__name__)

MIB = 1024 * 1024

# S3 numbers parts from 1 to 10000
MAX_PARTS = 10000


class PartStatus(Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class UploadPart:
    """One buffered part of a multipart upload."""

    index: int
    buffer: bytes
    size: int
    status: PartStatus = PartStatus.PENDING
    etag: Optional[str] = None

    def release(self) -> None:
        """Drop the buffered bytes once the part is acknowledged."""
        self.buffer = b""


@dataclass
class UploadManifest:
    """Parts of one upload, keyed by part number."""

    parts: dict[int, UploadPart] = field(default_factory=dict)

    def add(self, part: UploadPart) -> None:
        if part.index in self.parts:
            raise ValidationError(f"Duplicate part number: {part.index}")
        self.parts[part.index] = part

    @property
    def complete(self) -> bool:
        return all(part.status is PartStatus.COMPLETE for part in self.parts.values())

    def finalize(self) -> list[dict[str, Any]]:
        """Return the commit manifest ordered by part number.

        Raises:
            UploadPartError: If any part is not Complete
        """
        ordered = [self.parts[index] for index in sorted(self.parts)]
        for part in ordered:
            if part.status is not PartStatus.COMPLETE or not part.etag:
                raise UploadPartError(
                    f"Part {part.index} is {part.status.value}, upload cannot be committed",
                    part_index=part.index,
                )
        return [{"PartNumber": part.index, "ETag": part.etag} for part in ordered]

    def __len__(self) -> int:
        return len(self.parts)


@dataclass
class UploadProgress:
    """Buffered versus delivered byte counts of an upload."""

    bytes_buffered: int = 0
    bytes_delivered: int = 0
    total_bytes: Optional[int] = None
    parts_buffered: int = 0
    parts_delivered: int = 0

    def describe(self) -> str:
        if self.total_bytes:
            buffered_pct = self.bytes_buffered / self.total_bytes * 100.0
            delivered_pct = self.bytes_delivered / self.total_bytes * 100.0
            return (
                f"Buffered {format_bytes(self.bytes_buffered)} ({buffered_pct:.1f}%), "
                f"delivered {format_bytes(self.bytes_delivered)} of "
                f"{format_bytes(self.total_bytes)} ({delivered_pct:.1f}%)"
            )
        return (
            f"Buffered {format_bytes(self.bytes_buffered)} "
            f"({self.parts_buffered:,} parts), "
            f"delivered {format_bytes(self.bytes_delivered)} "
            f"({self.parts_delivered:,} parts)"
        )


@dataclass
class UploadResult:
    """Outcome of a successful upload."""

    bucket: str
    key: str
    etag: Optional[str]
    parts: int
    bytes: int
    upload_id: Optional[str] = None
    public_url: Optional[str] = None

    @property
    def uri(self) -> str:
        return format_uri(self.bucket, self.key)


class MultipartUploadCoordinator:
    """Uploads a byte stream as a multipart upload with bounded concurrency."""

    def __init__(
        self,
        context: RunContext,
        bucket: str,
        key: str,
        part_size: int = settings.part_size_mib * MIB,
        queue_size: int = settings.queue_size,
        total_bytes: Optional[int] = None,
        headers: Optional[dict[str, str]] = None,
        metadata: Optional[dict[str, str]] = None,
        publish: bool = False,
    ):
        """Initialize the coordinator.

        Args:
            context: Run context of the invocation
            bucket: Destination bucket
            key: Destination key
            part_size: Bytes per part (the last part may be shorter)
            queue_size: Parts buffered and in flight at most, also the worker count
            total_bytes: Size of the source when known, for percentage progress
            headers: S3 request parameters such as ``ContentType``
            metadata: User metadata for the object
            publish: Make the object publicly readable

        Raises:
            ValidationError: If part_size or queue_size is not positive
        """
        if part_size < 1:
            raise ValidationError(f"part_size must be positive, got: {part_size}")
        if queue_size < 1:
            raise ValidationError(f"queue_size must be positive, got: {queue_size}")

        self.context = context
        self.bucket = bucket
        self.key = key
        self.part_size = part_size
        self.queue_size = queue_size
        self.total_bytes = total_bytes
        self.headers = dict(headers or {})
        self.metadata = dict(metadata or {})
        self.publish = publish

    @property
    def uri(self) -> str:
        return format_uri(self.bucket, self.key)

    @property
    def public_url(self) -> str:
        return f"https://{self.bucket}.s3.amazonaws.com/{self.key}"

    def request_params(self) -> dict[str, Any]:
        params: dict[str, Any] = dict(self.headers)
        if self.metadata:
            params["Metadata"] = dict(self.metadata)
        if self.publish:
            params["ACL"] = "public-read"
        return params

    def _read_part(self, source: BinaryIO) -> bytes:
        chunks = []
        remaining = self.part_size
        try:
            while remaining > 0:
                chunk = source.read(remaining)
                if not chunk:
                    break
                chunks.append(chunk)
                remaining -= len(chunk)
        except OSError as e:
            error_msg = f"Error reading upload source for {self.uri}: {e}"
            logger.error(error_msg, error=str(e))
            raise TransferError(error_msg) from e
        return b"".join(chunks)

    def upload(self, source: BinaryIO) -> UploadResult:
        """Upload everything readable from ``source``.

        Returns:
            UploadResult describing the committed object

        Raises:
            TransferError: If the source cannot be read
            UploadPartError: If a part fails (the upload is aborted)
            ProviderError: If initiating or committing the upload fails
        """
        progress = UploadProgress(total_bytes=self.total_bytes)
        reporter = self.context.reporter(
            lambda p: f"{p.describe()} in {self.context.elapsed()}"
        )

        try:
            first = self._read_part(source)
            if not first:
                return self._put_empty()
            return self._upload_parts(source, first, progress, reporter)
        finally:
            reporter.halt(progress)

    def _put_empty(self) -> UploadResult:
        logger.info("Source is empty, writing a zero-byte object", uri=self.uri)
        response = self.context.provider.put_object(
            self.bucket, self.key, b"", **self.request_params()
        )
        return UploadResult(
            bucket=self.bucket,
            key=self.key,
            etag=response.get("ETag"),
            parts=0,
            bytes=0,
            public_url=self.public_url if self.publish else None,
        )

    def _upload_parts(self, source, first, progress, reporter) -> UploadResult:
        provider = self.context.provider
        upload_id = provider.create_multipart_upload(
            self.bucket, self.key, **self.request_params()
        )
        logger.info(
            "Multipart upload started",
            uri=self.uri,
            upload_id=upload_id,
            part_size=self.part_size,
            queue_size=self.queue_size,
        )

        manifest = UploadManifest()
        pending: dict[Future, UploadPart] = {}
        executor = ThreadPoolExecutor(
            max_workers=self.queue_size, thread_name_prefix="upload-part"
        )

        try:
            data = first
            while data:
                index = len(manifest) + 1
                if index > MAX_PARTS:
                    raise UploadPartError(
                        f"Upload of {self.uri} needs more than {MAX_PARTS} parts, "
                        f"use a larger part size",
                        part_index=index,
                    )

                part = UploadPart(index=index, buffer=data, size=len(data))
                manifest.add(part)
                progress.bytes_buffered += part.size
                progress.parts_buffered += 1

                while len(pending) >= self.queue_size:
                    self._harvest(pending, progress, reporter)

                part.status = PartStatus.UPLOADING
                pending[executor.submit(self._send_part, upload_id, part)] = part
                reporter.schedule(progress)

                # A short part means the source hit end of data
                data = self._read_part(source) if part.size == self.part_size else b""

            while pending:
                self._harvest(pending, progress, reporter)

            parts = manifest.finalize()
            response = provider.complete_multipart_upload(
                self.bucket, self.key, upload_id, parts
            )
        except BaseException:
            for future in pending:
                future.cancel()
            executor.shutdown(wait=True, cancel_futures=True)
            self._abort(upload_id)
            raise
        else:
            executor.shutdown(wait=True)

        logger.info(
            "Multipart upload complete",
            uri=self.uri,
            upload_id=upload_id,
            parts=len(manifest),
            bytes=progress.bytes_delivered,
        )
        return UploadResult(
            bucket=self.bucket,
            key=self.key,
            etag=response.get("ETag"),
            parts=len(manifest),
            bytes=progress.bytes_delivered,
            upload_id=upload_id,
            public_url=self.public_url if self.publish else None,
        )

    def _send_part(self, upload_id: str, part: UploadPart) -> str:
        return self.context.provider.upload_part(
            self.bucket, self.key, upload_id, part.index, part.buffer
        )

    def _harvest(self, pending, progress, reporter) -> None:
        done, _ = wait(list(pending), return_when=FIRST_COMPLETED)
        for future in done:
            part = pending.pop(future)
            try:
                etag = future.result()
            except Exception as e:
                part.status = PartStatus.FAILED
                error_msg = f"Part {part.index} of {self.uri} failed: {e}"
                logger.error(error_msg, part=part.index, error=str(e))
                raise UploadPartError(error_msg, part_index=part.index) from e

            part.status = PartStatus.COMPLETE
            part.etag = etag
            part.release()
            progress.bytes_delivered += part.size
            progress.parts_delivered += 1
            reporter.schedule(progress)

    def _abort(self, upload_id: str) -> None:
        try:
            self.context.provider.abort_multipart_upload(
                self.bucket, self.key, upload_id
            )
        except ProviderError as e:
            logger.error(
                "Failed to abort multipart upload",
                uri=self.uri,
                upload_id=upload_id,
                error=str(e),
            )
        else:
            logger.warning("Multipart upload aborted", uri=self.uri, upload_id=upload_id)
