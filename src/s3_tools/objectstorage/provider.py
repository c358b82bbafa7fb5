"""The object-storage capability set consumed by the core."""

from typing import Any, BinaryIO, Optional, Protocol, Sequence, Union

from .models import DeleteResult, ListPage, MultipartUploadPage, ObjectBody

# Bulk deletes accept at most this many keys per request
MAX_DELETE_KEYS = 1000

# Listing requests return at most this many entries per page
MAX_PAGE_SIZE = 1000


class StorageProvider(Protocol):
    """Protocol for the object-storage primitives the commands compose."""

    def list_buckets(self) -> list[dict[str, Any]]:
        """List buckets as ``{"name", "created"}`` records."""
        ...

    def get_bucket_region(self, bucket: str) -> str:
        """Return the region a bucket lives in."""
        ...

    def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: Optional[str] = None,
        continuation_token: Optional[str] = None,
        max_keys: int = MAX_PAGE_SIZE,
        start_after: Optional[str] = None,
    ) -> ListPage:
        """Fetch one page of object listing."""
        ...

    def get_object(
        self, bucket: str, key: str, byte_range: Optional[str] = None
    ) -> ObjectBody:
        """Open an object body, optionally restricted to ``bytes=start-end``."""
        ...

    def put_object(
        self, bucket: str, key: str, body: Union[bytes, BinaryIO], **params: Any
    ) -> dict[str, Any]:
        """Write a whole object in a single request."""
        ...

    def delete_objects(self, bucket: str, keys: Sequence[str]) -> DeleteResult:
        """Delete up to ``MAX_DELETE_KEYS`` keys in one request."""
        ...

    def delete_object(self, bucket: str, key: str) -> dict[str, Any]:
        """Delete a single key."""
        ...

    def head_object(self, bucket: str, key: str) -> dict[str, Any]:
        """Fetch object metadata."""
        ...

    def get_object_acl(self, bucket: str, key: str) -> dict[str, Any]:
        """Fetch the access control list of an object."""
        ...

    def create_multipart_upload(self, bucket: str, key: str, **params: Any) -> str:
        """Initiate a multipart upload and return its upload id."""
        ...

    def upload_part(
        self, bucket: str, key: str, upload_id: str, part_number: int, body: bytes
    ) -> str:
        """Upload one part and return the provider-issued tag."""
        ...

    def complete_multipart_upload(
        self, bucket: str, key: str, upload_id: str, parts: list[dict[str, Any]]
    ) -> dict[str, Any]:
        """Commit a multipart upload from a manifest ordered by part number."""
        ...

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """Abort a multipart upload and discard its parts."""
        ...

    def list_multipart_uploads(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: Optional[str] = None,
        key_marker: Optional[str] = None,
        upload_id_marker: Optional[str] = None,
        max_uploads: int = MAX_PAGE_SIZE,
    ) -> MultipartUploadPage:
        """Fetch one page of incomplete multipart uploads."""
        ...

    def list_parts(self, bucket: str, key: str, upload_id: str) -> list[dict[str, Any]]:
        """List the parts uploaded so far for a multipart upload."""
        ...
