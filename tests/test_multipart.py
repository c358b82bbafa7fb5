"""Tests for bounded-concurrency multipart uploads."""

import io

import pytest

from s3_tools.core.exceptions import TransferError, UploadPartError, ValidationError
from s3_tools.transfer import (
    MultipartUploadCoordinator,
    PartStatus,
    UploadManifest,
    UploadPart,
    UploadProgress,
)


class TrickleSource(io.RawIOBase):
    """Readable that returns at most ``step`` bytes per read."""

    def __init__(self, data, step):
        self.data = data
        self.step = step
        self.position = 0

    def readable(self):
        return True

    def read(self, size=-1):
        size = self.step if size < 0 else min(size, self.step)
        chunk = self.data[self.position : self.position + size]
        self.position += len(chunk)
        return chunk


class BrokenSource:
    def read(self, size):
        raise OSError("device not ready")


def _coordinator(context, **kwargs):
    kwargs.setdefault("part_size", 10)
    kwargs.setdefault("queue_size", 2)
    return MultipartUploadCoordinator(context, "test-bucket", "uploads/blob.bin", **kwargs)


class TestUploadManifest:
    """Test manifest ordering and completeness."""

    def test_finalize_sorts_by_part_number(self):
        manifest = UploadManifest()
        for index in (3, 1, 2):
            manifest.add(
                UploadPart(
                    index=index,
                    buffer=b"",
                    size=1,
                    status=PartStatus.COMPLETE,
                    etag=f"e{index}",
                )
            )

        assert manifest.complete
        assert manifest.finalize() == [
            {"PartNumber": 1, "ETag": "e1"},
            {"PartNumber": 2, "ETag": "e2"},
            {"PartNumber": 3, "ETag": "e3"},
        ]

    def test_finalize_rejects_incomplete(self):
        manifest = UploadManifest()
        manifest.add(
            UploadPart(index=1, buffer=b"x", size=1, status=PartStatus.COMPLETE, etag="e1")
        )
        manifest.add(UploadPart(index=2, buffer=b"x", size=1, status=PartStatus.FAILED))

        assert not manifest.complete
        with pytest.raises(UploadPartError) as exc_info:
            manifest.finalize()
        assert exc_info.value.part_index == 2

    def test_duplicate_part(self):
        manifest = UploadManifest()
        manifest.add(UploadPart(index=1, buffer=b"x", size=1))

        with pytest.raises(ValidationError, match="Duplicate"):
            manifest.add(UploadPart(index=1, buffer=b"y", size=1))


class TestUploadProgress:
    def test_describe_with_total(self):
        progress = UploadProgress(bytes_buffered=50, bytes_delivered=25, total_bytes=100)
        assert "(50.0%)" in progress.describe()
        assert "(25.0%)" in progress.describe()

    def test_describe_without_total(self):
        progress = UploadProgress(bytes_buffered=10, parts_buffered=2, parts_delivered=1)
        assert "(2 parts)" in progress.describe()
        assert "(1 parts)" in progress.describe()


class TestMultipartUploadCoordinator:
    """Test part splitting, ordering, failure handling and request parameters."""

    @pytest.mark.parametrize(
        "size,expected_parts", [(1, 1), (10, 1), (11, 2), (95, 10), (100, 10)]
    )
    def test_part_count(self, run_context, stub_provider, size, expected_parts):
        """Test a source of S bytes is sent as ceil(S / part_size) parts."""
        data = bytes(i % 251 for i in range(size))

        result = _coordinator(run_context).upload(io.BytesIO(data))

        assert result.parts == expected_parts
        assert result.bytes == size
        assert stub_provider.objects["uploads/blob.bin"] == data
        parts = stub_provider.completed[0]["parts"]
        assert [p["PartNumber"] for p in parts] == list(range(1, expected_parts + 1))

    def test_short_reads_fill_whole_parts(self, run_context, stub_provider):
        data = b"0123456789" * 5
        result = _coordinator(run_context).upload(TrickleSource(data, step=3))

        assert result.parts == 5
        sizes = [len(body) for body in stub_provider.uploads[result.upload_id]["parts"].values()]
        assert sizes == [10] * 5
        assert stub_provider.objects["uploads/blob.bin"] == data

    def test_manifest_ordered_when_parts_finish_out_of_order(self, run_context, stub_provider):
        stub_provider.part_delays = {1: 0.2, 2: 0.1}
        data = b"a" * 10 + b"b" * 10 + b"c" * 5

        result = _coordinator(run_context, queue_size=3).upload(io.BytesIO(data))

        parts = stub_provider.completed[0]["parts"]
        assert [p["PartNumber"] for p in parts] == [1, 2, 3]
        assert [p["ETag"] for p in parts] == ['"etag-1"', '"etag-2"', '"etag-3"']
        assert stub_provider.objects["uploads/blob.bin"] == data
        assert result.etag == '"multipart-etag"'

    def test_in_flight_parts_bounded_by_queue_size(self, run_context, stub_provider):
        stub_provider.part_delays = {n: 0.02 for n in range(1, 11)}

        _coordinator(run_context, queue_size=3).upload(io.BytesIO(b"x" * 100))

        assert stub_provider.max_in_flight <= 3

    def test_failed_part_aborts_upload(self, run_context, stub_provider):
        """Test a failed part aborts the upload and never commits it."""
        stub_provider.fail_part = 3

        with pytest.raises(UploadPartError) as exc_info:
            _coordinator(run_context).upload(io.BytesIO(b"x" * 100))

        assert exc_info.value.part_index == 3
        assert stub_provider.aborted == ["upload-1"]
        assert stub_provider.completed == []
        assert "uploads/blob.bin" not in stub_provider.objects

    def test_source_error_aborts_upload(self, run_context, stub_provider):
        class FailAfterFirstPart:
            def __init__(self):
                self.reads = 0

            def read(self, size):
                self.reads += 1
                if self.reads > 1:
                    raise OSError("disk gone")
                return b"x" * size

        with pytest.raises(TransferError, match="disk gone"):
            _coordinator(run_context).upload(FailAfterFirstPart())

        assert stub_provider.aborted == ["upload-1"]
        assert stub_provider.completed == []

    def test_unreadable_source_before_upload(self, run_context, stub_provider):
        with pytest.raises(TransferError, match="device not ready"):
            _coordinator(run_context).upload(BrokenSource())

        assert stub_provider.uploads == {}

    def test_empty_source_uses_single_put(self, run_context, stub_provider):
        result = _coordinator(run_context, headers={"ContentType": "text/plain"}).upload(
            io.BytesIO(b"")
        )

        assert result.parts == 0
        assert result.bytes == 0
        assert stub_provider.uploads == {}
        assert stub_provider.put_calls == [
            {"key": "uploads/blob.bin", "body": b"", "params": {"ContentType": "text/plain"}}
        ]

    def test_request_params(self, run_context, stub_provider):
        result = _coordinator(
            run_context,
            headers={"ContentType": "application/gzip"},
            metadata={"git-hash": "feedbeef"},
            publish=True,
        ).upload(io.BytesIO(b"payload"))

        params = stub_provider.uploads[result.upload_id]["params"]
        assert params == {
            "ContentType": "application/gzip",
            "Metadata": {"git-hash": "feedbeef"},
            "ACL": "public-read",
        }
        assert result.public_url == "https://test-bucket.s3.amazonaws.com/uploads/blob.bin"
        assert result.uri == "s3://test-bucket/uploads/blob.bin"

    def test_no_public_url_without_publish(self, run_context):
        result = _coordinator(run_context).upload(io.BytesIO(b"payload"))
        assert result.public_url is None

    def test_final_progress_report(self, run_context, progress_lines):
        _coordinator(run_context, total_bytes=20).upload(io.BytesIO(b"x" * 20))

        assert len(progress_lines) == 1
        assert "delivered 20 bytes of 20 bytes (100.0%)" in progress_lines[0]

    @pytest.mark.parametrize("kwargs", [{"part_size": 0}, {"queue_size": 0}])
    def test_invalid_sizes(self, run_context, kwargs):
        with pytest.raises(ValidationError):
            _coordinator(run_context, **kwargs)
