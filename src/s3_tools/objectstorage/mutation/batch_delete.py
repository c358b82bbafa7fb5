"""Bulk deletion of the objects under a prefix.

The deleter consumes object descriptors (normally from an ``ObjectWalker``),
keeps the keys whose names match an optional regular expression, and
deletes them in batches of at most 1000 keys, one request at a time.
Sequential batches keep the request order equal to the listing order and
bound memory to a single batch; throughput is traded for that.

Dry runs go through exactly the same accounting as real runs, they only
skip the delete request. Keys the provider refuses to delete are recorded
on the summary and the run carries on; only a failure of the delete request
itself stops the run.
"""

from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from s3_tools.core import get_logger
from s3_tools.core.context import RunContext
from s3_tools.core.exceptions import PartialDeleteError, ProviderError, ValidationError
from s3_tools.core.formatting import format_bytes
from s3_tools.objectstorage.filters import compile_key_filter, key_matches
from s3_tools.objectstorage.listing import ObjectWalker
from s3_tools.objectstorage.locator import format_uri
from s3_tools.objectstorage.models import DeleteFailure, ObjectDescriptor
from s3_tools.objectstorage.provider import MAX_DELETE_KEYS
from s3_tools.schemas import ObjectRecord

logger = get_logger(__name__)

ConfirmFunc = Callable[[str], bool]


@dataclass
class DeletionBatch:
    """Objects queued for one bulk delete request."""

    objects: list[ObjectDescriptor] = field(default_factory=list)
    dry_run: bool = False
    capacity: int = MAX_DELETE_KEYS

    def __post_init__(self) -> None:
        if not 1 <= self.capacity <= MAX_DELETE_KEYS:
            raise ValidationError(
                f"Batch capacity must be between 1 and {MAX_DELETE_KEYS}, "
                f"got: {self.capacity}"
            )
        if len(self.objects) > self.capacity:
            raise ValidationError(
                f"A deletion batch holds at most {self.capacity} keys, "
                f"got {len(self.objects)}"
            )

    @property
    def keys(self) -> list[str]:
        return [descriptor.key for descriptor in self.objects]

    @property
    def full(self) -> bool:
        return len(self.objects) >= self.capacity

    def add(self, descriptor: ObjectDescriptor) -> None:
        if self.full:
            raise ValidationError(f"Deletion batch is full ({self.capacity} keys)")
        self.objects.append(descriptor)

    def __len__(self) -> int:
        return len(self.objects)


@dataclass
class BatchDeleteSummary:
    """Counters and failures for one deletion run."""

    bucket: str
    prefix: str
    dry_run: bool = False
    confirmed: bool = True
    scanned: int = 0
    matched: int = 0
    deleted: int = 0
    bytes: int = 0
    batches: int = 0
    last_key: Optional[str] = None
    failures: list[DeleteFailure] = field(default_factory=list)
    elapsed: str = ""

    def describe(self) -> str:
        prefix = "[Dry-Run] " if self.dry_run else ""
        line = (
            f"{prefix}Deleted {self.deleted:,} of {self.scanned:,} keys => "
            f"{format_bytes(self.bytes)} ({self.bytes:,} bytes) in {self.elapsed}"
        )
        if self.failures:
            line += f", {len(self.failures):,} failed"
        if self.last_key:
            line += f" [{self.last_key}]"
        return line

    def raise_for_failures(self) -> None:
        """Raise PartialDeleteError if any key could not be deleted."""
        if self.failures:
            raise PartialDeleteError(
                f"{len(self.failures)} of {self.matched} keys could not be deleted "
                f"from {format_uri(self.bucket, self.prefix)}",
                failures=self.failures,
            )


class BatchDeleter:
    """Deletes every matching object under a prefix in capped batches."""

    def __init__(
        self,
        context: RunContext,
        bucket: str,
        prefix: str = "",
        key_regex: Optional[str] = None,
        dry_run: bool = False,
        batch_size: int = MAX_DELETE_KEYS,
        confirm: Optional[ConfirmFunc] = None,
        force: bool = False,
    ):
        """Initialize the deleter.

        Args:
            context: Run context of the invocation
            bucket: Bucket to delete from
            prefix: Key prefix the deletion is limited to
            key_regex: Only delete keys matching this regular expression
            dry_run: Count and report, but never issue a delete request
            batch_size: Keys per delete request (at most 1000)
            confirm: Gate asked before a destructive run; returns True to proceed
            force: Skip the confirmation gate

        Raises:
            ValidationError: If the regex or batch size is invalid, or a
                destructive run has neither a confirmation gate nor force
        """
        self.context = context
        self.bucket = bucket
        self.prefix = prefix or ""
        self.key_regex = key_regex
        self.key_filter = compile_key_filter(key_regex)
        self.dry_run = dry_run
        self.batch_size = DeletionBatch(capacity=batch_size).capacity
        self.confirm = confirm
        self.force = force

        if not dry_run and not force and confirm is None:
            raise ValidationError(
                "Destructive deletes need a confirmation gate or force=True"
            )

    def _confirmation_message(self) -> str:
        match = f" matching regex /{self.key_regex}/" if self.key_regex else ""
        return f"Delete all keys at {format_uri(self.bucket, self.prefix)}{match}?"

    def _new_batch(self) -> DeletionBatch:
        return DeletionBatch(dry_run=self.dry_run, capacity=self.batch_size)

    def run(
        self, descriptors: Optional[Iterable[ObjectDescriptor]] = None
    ) -> BatchDeleteSummary:
        """Delete the matching objects.

        Args:
            descriptors: Objects to consider; defaults to walking the prefix

        Returns:
            BatchDeleteSummary with counters and any per-key failures

        Raises:
            EnumerationError: If listing fails
            ProviderError: If a delete request fails outright
            ValidationError: If force was cleared and no confirmation gate is set
        """
        summary = BatchDeleteSummary(
            bucket=self.bucket, prefix=self.prefix, dry_run=self.dry_run
        )

        if not self.dry_run and not self.force:
            if self.confirm is None:
                raise ValidationError(
                    "Destructive deletes need a confirmation gate or force=True"
                )
            if not self.confirm(self._confirmation_message()):
                logger.info("Deletion declined", bucket=self.bucket, prefix=self.prefix)
                summary.confirmed = False
                return summary

        if descriptors is None:
            descriptors = ObjectWalker(
                self.context.provider, self.bucket, prefix=self.prefix
            ).objects()

        logger.info(
            "Deleting keys",
            bucket=self.bucket,
            prefix=self.prefix,
            key_regex=self.key_regex,
            dry_run=self.dry_run,
        )

        reporter = self.context.reporter(BatchDeleteSummary.describe)
        batch = self._new_batch()

        try:
            for descriptor in descriptors:
                summary.scanned += 1

                if key_matches(self.key_filter, descriptor.key):
                    summary.matched += 1
                    summary.bytes += descriptor.size_bytes
                    summary.last_key = descriptor.key
                    batch.add(descriptor)

                    if batch.full:
                        self._flush(batch, summary)
                        batch = self._new_batch()

                summary.elapsed = self.context.elapsed()
                reporter.schedule(summary)

            # Outstanding keys awaiting deletion
            self._flush(batch, summary)
        finally:
            summary.elapsed = self.context.elapsed()
            reporter.halt(summary)

        logger.info(
            "Deletion finished",
            bucket=self.bucket,
            prefix=self.prefix,
            scanned=summary.scanned,
            matched=summary.matched,
            deleted=summary.deleted,
            failed=len(summary.failures),
            batches=summary.batches,
            dry_run=self.dry_run,
        )
        return summary

    def _flush(self, batch: DeletionBatch, summary: BatchDeleteSummary) -> None:
        if len(batch) < 1:
            return

        summary.batches += 1
        logger.debug("Deleting batch", keys=len(batch), dry_run=batch.dry_run)

        if batch.dry_run:
            summary.deleted += len(batch)
            for descriptor in batch.objects:
                self._record(descriptor, "would-delete")
            return

        try:
            result = self.context.provider.delete_objects(self.bucket, batch.keys)
        except ProviderError as e:
            error_msg = (
                f"Bulk delete of {len(batch)} keys from "
                f"{format_uri(self.bucket, self.prefix)} failed: {e}"
            )
            logger.error(error_msg, error=str(e), code=e.code)
            raise ProviderError(error_msg, code=e.code) from e

        deleted = set(result.deleted)
        failures = {failure.key: failure for failure in result.failures}

        for descriptor in batch.objects:
            if descriptor.key in failures:
                continue
            if descriptor.key not in deleted:
                failures[descriptor.key] = DeleteFailure(
                    key=descriptor.key,
                    code="NotAcknowledged",
                    message="Key missing from the delete response",
                )

        for descriptor in batch.objects:
            failure = failures.get(descriptor.key)
            if failure is None:
                summary.deleted += 1
                self._record(descriptor, "deleted")
            else:
                summary.failures.append(failure)
                self._record(descriptor, "failed", failure.message or failure.code)

        if failures:
            logger.warning(
                "Some keys were not deleted",
                bucket=self.bucket,
                failed=len(failures),
                batch_size=len(batch),
            )

    def _record(
        self, descriptor: ObjectDescriptor, action: str, error: Optional[str] = None
    ) -> None:
        self.context.record(
            ObjectRecord(
                bucket=self.bucket,
                key=descriptor.key,
                uri=format_uri(self.bucket, descriptor.key),
                size=descriptor.size_bytes,
                last_modified=descriptor.last_modified,
                action=action,
                error=error,
            )
        )
