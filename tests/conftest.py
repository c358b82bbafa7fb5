"""Test configuration and fixtures for s3-tools."""

import io
import threading
import time
from datetime import datetime, timezone

import pytest

from s3_tools.core.context import RunContext
from s3_tools.core.exceptions import ProviderError
from s3_tools.objectstorage.models import (
    CommonPrefix,
    DeleteFailure,
    DeleteResult,
    ListPage,
    MultipartUploadDescriptor,
    MultipartUploadPage,
    ObjectBody,
    ObjectDescriptor,
)

MODIFIED = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubProvider:
    """In-memory storage provider with request accounting and fault injection.

    Listing tokens are the name of the last entry of the previous page, so
    pages are deterministic for a given page size.
    """

    def __init__(self, objects=None, bucket="test-bucket"):
        self.bucket = bucket
        self.objects: dict[str, bytes] = dict(objects or {})
        self.encodings: dict[str, str] = {}
        self.lock = threading.Lock()

        self.list_calls: list[dict] = []
        self.fail_list_on_call = None

        self.delete_calls: list[list[str]] = []
        self.delete_failures: dict[str, str] = {}
        self.unacknowledged: set[str] = set()
        self.fail_delete_request = False

        self.put_calls: list[dict] = []
        self.uploads: dict[str, dict] = {}
        self.completed: list[dict] = []
        self.aborted: list[str] = []
        self.fail_part = None
        self.part_delays: dict[int, float] = {}
        self.in_flight = 0
        self.max_in_flight = 0

        self.pending_uploads: list[MultipartUploadDescriptor] = []
        self.multipart_calls: list[dict] = []

    # Listing

    def list_buckets(self):
        return [{"name": self.bucket, "created": MODIFIED}]

    def get_bucket_region(self, bucket):
        return "ap-southeast-2"

    def list_objects(
        self,
        bucket,
        prefix="",
        delimiter=None,
        continuation_token=None,
        max_keys=1000,
        start_after=None,
    ):
        self.list_calls.append(
            {
                "bucket": bucket,
                "prefix": prefix,
                "delimiter": delimiter,
                "token": continuation_token,
                "max_keys": max_keys,
                "start_after": start_after,
            }
        )
        if self.fail_list_on_call == len(self.list_calls):
            raise ProviderError("Listing failed", code="InternalError")

        entries = []
        seen_prefixes = set()
        for key in sorted(self.objects):
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            if delimiter and delimiter in rest:
                common = prefix + rest[: rest.index(delimiter) + len(delimiter)]
                if common not in seen_prefixes:
                    seen_prefixes.add(common)
                    entries.append(CommonPrefix(prefix=common))
            else:
                entries.append(
                    ObjectDescriptor(
                        key=key,
                        size_bytes=len(self.objects[key]),
                        last_modified=MODIFIED,
                    )
                )

        def name(entry):
            return entry.prefix if isinstance(entry, CommonPrefix) else entry.key

        after = continuation_token or start_after
        if after:
            entries = [entry for entry in entries if name(entry) > after]

        page = entries[:max_keys]
        truncated = len(entries) > max_keys
        return ListPage(
            items=[e for e in page if isinstance(e, ObjectDescriptor)],
            common_prefixes=[e for e in page if isinstance(e, CommonPrefix)],
            next_token=name(page[-1]) if truncated else None,
            truncated=truncated,
        )

    # Objects

    def get_object(self, bucket, key, byte_range=None):
        if key not in self.objects:
            raise ProviderError(f"No such key: {key}", code="NoSuchKey")
        data = self.objects[key]
        if byte_range:
            start, end = byte_range.replace("bytes=", "").split("-")
            data = data[int(start) : int(end) + 1]
        return ObjectBody(
            stream=io.BytesIO(data),
            content_length=len(data),
            content_encoding=self.encodings.get(key),
        )

    def put_object(self, bucket, key, body, **params):
        data = body if isinstance(body, bytes) else body.read()
        self.put_calls.append({"key": key, "body": data, "params": params})
        self.objects[key] = data
        return {"ETag": '"put-etag"'}

    def delete_objects(self, bucket, keys):
        assert len(keys) <= 1000
        self.delete_calls.append(list(keys))
        if self.fail_delete_request:
            raise ProviderError("Bulk delete failed", code="AccessDenied")

        deleted = []
        failures = []
        for key in keys:
            if key in self.delete_failures:
                failures.append(
                    DeleteFailure(key=key, code=self.delete_failures[key], message="Denied")
                )
            elif key not in self.unacknowledged:
                self.objects.pop(key, None)
                deleted.append(key)
        return DeleteResult(deleted=deleted, failures=failures)

    def delete_object(self, bucket, key):
        self.objects.pop(key, None)
        return {}

    def head_object(self, bucket, key):
        if key not in self.objects:
            raise ProviderError("Not Found", code="404")
        return {"ContentLength": len(self.objects[key]), "LastModified": MODIFIED}

    def get_object_acl(self, bucket, key):
        return {"Grants": [{"Permission": "FULL_CONTROL"}]}

    # Multipart

    def create_multipart_upload(self, bucket, key, **params):
        upload_id = f"upload-{len(self.uploads) + 1}"
        self.uploads[upload_id] = {"key": key, "params": params, "parts": {}}
        return upload_id

    def upload_part(self, bucket, key, upload_id, part_number, body):
        with self.lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            time.sleep(self.part_delays.get(part_number, 0))
            if part_number == self.fail_part:
                raise ProviderError(f"Part {part_number} rejected", code="InternalError")
            with self.lock:
                self.uploads[upload_id]["parts"][part_number] = bytes(body)
            return f'"etag-{part_number}"'
        finally:
            with self.lock:
                self.in_flight -= 1

    def complete_multipart_upload(self, bucket, key, upload_id, parts):
        self.completed.append({"key": key, "upload_id": upload_id, "parts": parts})
        stored = self.uploads[upload_id]["parts"]
        self.objects[key] = b"".join(stored[part["PartNumber"]] for part in parts)
        return {"ETag": '"multipart-etag"'}

    def abort_multipart_upload(self, bucket, key, upload_id):
        self.aborted.append(upload_id)

    def list_multipart_uploads(
        self,
        bucket,
        prefix="",
        delimiter=None,
        key_marker=None,
        upload_id_marker=None,
        max_uploads=1000,
    ):
        self.multipart_calls.append(
            {"key_marker": key_marker, "upload_id_marker": upload_id_marker, "max": max_uploads}
        )
        uploads = sorted(
            (u for u in self.pending_uploads if u.key.startswith(prefix)),
            key=lambda u: (u.key, u.upload_id),
        )
        if key_marker:
            uploads = [
                u for u in uploads if (u.key, u.upload_id) > (key_marker, upload_id_marker or "")
            ]
        page = uploads[:max_uploads]
        truncated = len(uploads) > max_uploads
        return MultipartUploadPage(
            uploads=page,
            next_key_marker=page[-1].key if truncated else None,
            next_upload_id_marker=page[-1].upload_id if truncated else None,
            truncated=truncated,
        )

    def list_parts(self, bucket, key, upload_id):
        return [{"PartNumber": 1, "Size": 5}, {"PartNumber": 2, "Size": 3}]


def make_objects(count, prefix="data/", size=10):
    """Build ``count`` objects named ``{prefix}key-00000`` upward."""
    return {f"{prefix}key-{i:05d}": b"x" * size for i in range(count)}


@pytest.fixture
def fake_clock():
    """A clock that only moves when told to."""
    return FakeClock()


@pytest.fixture
def stub_provider():
    """An in-memory provider with a few objects under two prefixes."""
    return StubProvider(
        {
            "data/a.txt": b"alpha",
            "data/b.log": b"bravo-bravo",
            "data/sub/c.txt": b"charlie",
            "other/d.txt": b"delta",
        }
    )


@pytest.fixture
def progress_lines():
    return []


@pytest.fixture
def run_context(stub_provider, fake_clock, progress_lines):
    """Run context over the stub provider with captured progress output."""
    return RunContext(
        provider=stub_provider,
        clock=fake_clock,
        report_interval=1.0,
        progress=progress_lines.append,
    )
