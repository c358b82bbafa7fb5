"""Value types exchanged between the storage provider and the core."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Optional, Union


@dataclass(frozen=True)
class ObjectDescriptor:
    """An object observed during enumeration.

    Attributes:
        key: Object key within the bucket
        size_bytes: Object size in bytes
        last_modified: Last modification time reported by the provider
        storage_class: Provider storage class, when reported
        etag: Entity tag, when reported
    """

    key: str
    size_bytes: int
    last_modified: Optional[datetime] = None
    storage_class: Optional[str] = None
    etag: Optional[str] = None


@dataclass(frozen=True)
class CommonPrefix:
    """A key grouping returned when listing with a delimiter."""

    prefix: str


ListingEntry = Union[ObjectDescriptor, CommonPrefix]


@dataclass(frozen=True)
class ListPage:
    """One page of a continuation-token listing."""

    items: list[ObjectDescriptor] = field(default_factory=list)
    common_prefixes: list[CommonPrefix] = field(default_factory=list)
    next_token: Optional[str] = None
    truncated: bool = False


@dataclass(frozen=True)
class DeleteFailure:
    """A key the provider reported as not deleted."""

    key: str
    code: Optional[str] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class DeleteResult:
    """Outcome of one bulk delete request."""

    deleted: list[str] = field(default_factory=list)
    failures: list[DeleteFailure] = field(default_factory=list)


@dataclass
class ObjectBody:
    """A readable object body with the response headers the core needs."""

    stream: BinaryIO
    content_length: Optional[int] = None
    content_encoding: Optional[str] = None
    content_range: Optional[str] = None
    content_type: Optional[str] = None

    def close(self) -> None:
        close = getattr(self.stream, "close", None)
        if close is not None:
            close()


@dataclass(frozen=True)
class MultipartUploadDescriptor:
    """An incomplete multipart upload."""

    key: str
    upload_id: str
    initiated: Optional[datetime] = None
    storage_class: Optional[str] = None


@dataclass(frozen=True)
class MultipartUploadPage:
    """One page of a key-marker/upload-id-marker listing."""

    uploads: list[MultipartUploadDescriptor] = field(default_factory=list)
    common_prefixes: list[CommonPrefix] = field(default_factory=list)
    next_key_marker: Optional[str] = None
    next_upload_id_marker: Optional[str] = None
    truncated: bool = False
