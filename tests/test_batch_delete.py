"""Tests for bulk deletion under a prefix."""

import io
import json

import pytest

from s3_tools.core.context import RunContext
from s3_tools.core.exceptions import PartialDeleteError, ProviderError, ValidationError
from s3_tools.core.records import RecordWriter
from s3_tools.objectstorage.mutation import BatchDeleter, DeletionBatch
from s3_tools.objectstorage.models import ObjectDescriptor

from conftest import StubProvider, make_objects


def _context(provider, clock, records=None):
    return RunContext(provider=provider, clock=clock, report_interval=1.0, records=records)


class TestDeletionBatch:
    """Test the capped batch."""

    def test_capacity_limits(self):
        with pytest.raises(ValidationError):
            DeletionBatch(capacity=0)
        with pytest.raises(ValidationError):
            DeletionBatch(capacity=1001)

    def test_add_past_capacity(self):
        batch = DeletionBatch(capacity=1)
        batch.add(ObjectDescriptor(key="a", size_bytes=1))

        assert batch.full
        with pytest.raises(ValidationError, match="full"):
            batch.add(ObjectDescriptor(key="b", size_bytes=1))


class TestBatchDeleter:
    """Test batching, dry runs, confirmation and partial failures."""

    def test_deletes_in_batches_of_1000(self, fake_clock):
        provider = StubProvider(make_objects(2500))
        summary = BatchDeleter(
            _context(provider, fake_clock), "test-bucket", prefix="data/", force=True
        ).run()

        assert [len(call) for call in provider.delete_calls] == [1000, 1000, 500]
        assert summary.scanned == summary.matched == summary.deleted == 2500
        assert summary.batches == 3
        assert summary.bytes == 25000
        assert provider.objects == {}

    def test_batches_follow_listing_order(self, fake_clock):
        provider = StubProvider(make_objects(5))
        BatchDeleter(
            _context(provider, fake_clock), "test-bucket", batch_size=2, force=True
        ).run()

        flattened = [key for call in provider.delete_calls for key in call]
        assert flattened == sorted(make_objects(5))

    def test_key_regex(self, stub_provider, fake_clock):
        summary = BatchDeleter(
            _context(stub_provider, fake_clock),
            "test-bucket",
            prefix="data/",
            key_regex=r"\.txt$",
            force=True,
        ).run()

        assert summary.scanned == 3
        assert summary.deleted == 2
        assert provider_keys(stub_provider) == ["data/b.log", "other/d.txt"]

    def test_dry_run_issues_no_deletes(self, fake_clock):
        """Test a dry run reports the same counters as a real run."""
        dry_provider = StubProvider(make_objects(1500))
        real_provider = StubProvider(make_objects(1500))

        dry = BatchDeleter(
            _context(dry_provider, fake_clock), "test-bucket", dry_run=True
        ).run()
        real = BatchDeleter(
            _context(real_provider, fake_clock), "test-bucket", force=True
        ).run()

        assert dry_provider.delete_calls == []
        assert len(dry_provider.objects) == 1500
        assert (dry.scanned, dry.matched, dry.deleted, dry.bytes, dry.batches) == (
            real.scanned,
            real.matched,
            real.deleted,
            real.bytes,
            real.batches,
        )
        assert dry.describe().startswith("[Dry-Run] ")

    def test_dry_run_skips_confirmation(self, stub_provider, fake_clock):
        asked = []
        BatchDeleter(
            _context(stub_provider, fake_clock),
            "test-bucket",
            dry_run=True,
            confirm=lambda message: asked.append(message) or False,
        ).run()

        assert asked == []

    def test_declined_confirmation_deletes_nothing(self, stub_provider, fake_clock):
        asked = []
        summary = BatchDeleter(
            _context(stub_provider, fake_clock),
            "test-bucket",
            prefix="data/",
            key_regex="txt",
            confirm=lambda message: asked.append(message) or False,
        ).run()

        assert not summary.confirmed
        assert summary.scanned == 0
        assert stub_provider.delete_calls == []
        assert stub_provider.list_calls == []
        assert asked == ["Delete all keys at s3://test-bucket/data/ matching regex /txt/?"]

    def test_accepted_confirmation(self, stub_provider, fake_clock):
        summary = BatchDeleter(
            _context(stub_provider, fake_clock),
            "test-bucket",
            prefix="other/",
            confirm=lambda message: True,
        ).run()

        assert summary.confirmed
        assert summary.deleted == 1

    def test_destructive_run_needs_gate_or_force(self, stub_provider, fake_clock):
        with pytest.raises(ValidationError, match="confirmation gate"):
            BatchDeleter(_context(stub_provider, fake_clock), "test-bucket")

    def test_gate_checked_again_at_run_time(self, stub_provider, fake_clock):
        """Test clearing force after construction cannot delete without a gate."""
        deleter = BatchDeleter(_context(stub_provider, fake_clock), "test-bucket", force=True)
        deleter.force = False

        with pytest.raises(ValidationError, match="confirmation gate"):
            deleter.run()
        assert stub_provider.delete_calls == []

    def test_partial_failures_are_collected(self, fake_clock):
        provider = StubProvider(make_objects(5))
        provider.delete_failures = {"data/key-00001": "AccessDenied"}
        provider.unacknowledged = {"data/key-00003"}

        summary = BatchDeleter(
            _context(provider, fake_clock), "test-bucket", force=True
        ).run()

        assert summary.deleted == 3
        assert sorted(f.key for f in summary.failures) == [
            "data/key-00001",
            "data/key-00003",
        ]
        assert {f.key: f.code for f in summary.failures}["data/key-00003"] == "NotAcknowledged"
        with pytest.raises(PartialDeleteError) as exc_info:
            summary.raise_for_failures()
        assert len(exc_info.value.failures) == 2

    def test_failed_request_stops_the_run(self, fake_clock):
        provider = StubProvider(make_objects(5))
        provider.fail_delete_request = True

        with pytest.raises(ProviderError, match="Bulk delete of 5 keys"):
            BatchDeleter(_context(provider, fake_clock), "test-bucket", force=True).run()

    def test_records(self, fake_clock):
        provider = StubProvider(make_objects(3))
        provider.delete_failures = {"data/key-00002": "AccessDenied"}
        stream = io.StringIO()

        BatchDeleter(
            _context(provider, fake_clock, records=RecordWriter(stream)),
            "test-bucket",
            force=True,
        ).run()

        records = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert [r["action"] for r in records] == ["deleted", "deleted", "failed"]
        assert records[0]["uri"] == "s3://test-bucket/data/key-00000"
        assert records[2]["error"] == "Denied"

    def test_dry_run_records(self, stub_provider, fake_clock):
        stream = io.StringIO()
        BatchDeleter(
            _context(stub_provider, fake_clock, records=RecordWriter(stream)),
            "test-bucket",
            prefix="other/",
            dry_run=True,
        ).run()

        assert json.loads(stream.getvalue())["action"] == "would-delete"

    def test_final_report_always_fires(self, run_context, progress_lines):
        BatchDeleter(run_context, "test-bucket", prefix="data/", force=True).run()

        assert len(progress_lines) == 1
        assert progress_lines[0].startswith("Deleted 3 of 3 keys")


def provider_keys(provider):
    return sorted(provider.objects)
