"""Enumeration of incomplete multipart uploads.

Multipart upload listings page with a pair of markers (key and upload id)
instead of a single continuation token; otherwise the walk follows the same
rules as ``ObjectWalker``: sequential pages, early stop at the limit, and
no retry.
"""

from dataclasses import dataclass
from typing import Iterator, Optional

from s3_tools.core import get_logger
from s3_tools.core.exceptions import EnumerationError, ProviderError
from s3_tools.objectstorage.models import MultipartUploadDescriptor, MultipartUploadPage
from s3_tools.objectstorage.provider import MAX_PAGE_SIZE, StorageProvider

from .walker import validate_limit, validate_page_size

logger = get_logger(__name__)


@dataclass
class UploadMarkerCursor:
    """Position within a multipart upload listing."""

    key_marker: Optional[str] = None
    upload_id_marker: Optional[str] = None
    exhausted: bool = False
    pages_fetched: int = 0
    entries_yielded: int = 0

    def advance(self, page: MultipartUploadPage) -> None:
        self.pages_fetched += 1

        if not page.truncated:
            self.exhausted = True
            return

        markers = (page.next_key_marker, page.next_upload_id_marker)
        if not page.next_key_marker or markers == (self.key_marker, self.upload_id_marker):
            raise EnumerationError(
                f"Multipart upload listing did not advance after page "
                f"{self.pages_fetched}"
            )

        self.key_marker, self.upload_id_marker = markers


class MultipartUploadWalker:
    """Walks the incomplete multipart uploads under a bucket prefix."""

    def __init__(
        self,
        provider: StorageProvider,
        bucket: str,
        prefix: str = "",
        delimiter: Optional[str] = None,
        page_size: int = MAX_PAGE_SIZE,
        limit: Optional[int] = None,
    ):
        self.provider = provider
        self.bucket = bucket
        self.prefix = prefix or ""
        self.delimiter = delimiter or None
        self.page_size = validate_page_size(page_size)
        self.limit = validate_limit(limit)
        self.cursor = UploadMarkerCursor()

    @property
    def limit_reached(self) -> bool:
        return self.limit is not None and self.cursor.entries_yielded >= self.limit

    @property
    def more_available(self) -> bool:
        return not self.cursor.exhausted

    def __iter__(self) -> Iterator[MultipartUploadDescriptor]:
        cursor = self.cursor

        while not cursor.exhausted and not self.limit_reached:
            max_uploads = self.page_size
            if self.limit is not None:
                max_uploads = min(max_uploads, self.limit - cursor.entries_yielded)

            try:
                page = self.provider.list_multipart_uploads(
                    self.bucket,
                    prefix=self.prefix,
                    delimiter=self.delimiter,
                    key_marker=cursor.key_marker,
                    upload_id_marker=cursor.upload_id_marker,
                    max_uploads=max_uploads,
                )
            except ProviderError as e:
                error_msg = (
                    f"Failed to list multipart uploads in s3://{self.bucket}/"
                    f"{self.prefix}: {e}"
                )
                logger.error(error_msg, error=str(e))
                raise EnumerationError(error_msg) from e

            cursor.advance(page)

            for upload in page.uploads:
                yield upload
                cursor.entries_yielded += 1
                if self.limit_reached:
                    break

        logger.info(
            "Multipart upload listing finished",
            bucket=self.bucket,
            prefix=self.prefix,
            pages=cursor.pages_fetched,
            uploads=cursor.entries_yielded,
            exhausted=cursor.exhausted,
        )
