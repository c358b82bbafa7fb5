"""Lazy enumeration of bucket contents over the continuation-token protocol.

A walker turns the page-at-a-time listing API into a forward-only iterator
of ``ObjectDescriptor`` (and ``CommonPrefix`` when a delimiter is given).
Pages are fetched strictly in sequence, only when the consumer asks for
more, and each request carries the token returned by the previous page.

There is no retry here. A failed page fetch ends the enumeration with an
``EnumerationError``; callers that want retries wrap the provider.
"""

from dataclasses import dataclass
from typing import Iterator, Optional

from s3_tools.core import get_logger
from s3_tools.core.exceptions import EnumerationError, ProviderError, ValidationError
from s3_tools.objectstorage.models import (
    CommonPrefix,
    ListingEntry,
    ListPage,
    ObjectDescriptor,
)
from s3_tools.objectstorage.provider import MAX_PAGE_SIZE, StorageProvider

logger = get_logger(__name__)


def validate_page_size(page_size: int) -> int:
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ValidationError(
            f"page_size must be between 1 and {MAX_PAGE_SIZE}, got: {page_size}"
        )
    return page_size


def validate_limit(limit: Optional[int]) -> Optional[int]:
    if limit is not None and limit < 0:
        raise ValidationError(f"limit must be non-negative, got: {limit}")
    return limit


@dataclass
class EnumerationCursor:
    """Position of a walker within a listing."""

    continuation_token: Optional[str] = None
    exhausted: bool = False
    pages_fetched: int = 0
    entries_yielded: int = 0
    keys_yielded: int = 0
    last_key: Optional[str] = None
    last_prefix: Optional[str] = None

    def advance(self, page: ListPage) -> None:
        """Move past ``page``, enforcing that the token makes progress.

        Raises:
            EnumerationError: If a truncated page repeats or omits its token
        """
        self.pages_fetched += 1

        if not page.truncated:
            self.continuation_token = None
            self.exhausted = True
            return

        if not page.next_token or page.next_token == self.continuation_token:
            raise EnumerationError(
                f"Listing cursor did not advance after page {self.pages_fetched} "
                f"(token {page.next_token!r})"
            )

        self.continuation_token = page.next_token

    def is_new(self, entry: ListingEntry) -> bool:
        """True unless ``entry`` sorts at or before one already yielded.

        Keys and common prefixes each arrive in ascending order, so one
        high-water mark per kind covers every earlier page of the run.
        """
        if isinstance(entry, CommonPrefix):
            return self.last_prefix is None or entry.prefix > self.last_prefix
        return self.last_key is None or entry.key > self.last_key

    def mark_yielded(self, entry: ListingEntry) -> None:
        self.entries_yielded += 1
        if isinstance(entry, CommonPrefix):
            self.last_prefix = entry.prefix
        else:
            self.keys_yielded += 1
            self.last_key = entry.key


class ObjectWalker:
    """Walks every object under a bucket prefix, one page at a time.

    Example:
        walker = ObjectWalker(provider, "bucket", prefix="logs/", limit=500)
        for descriptor in walker.objects():
            print(descriptor.key)
    """

    def __init__(
        self,
        provider: StorageProvider,
        bucket: str,
        prefix: str = "",
        delimiter: Optional[str] = None,
        page_size: int = MAX_PAGE_SIZE,
        limit: Optional[int] = None,
        start_after: Optional[str] = None,
    ):
        self.provider = provider
        self.bucket = bucket
        self.prefix = prefix or ""
        self.delimiter = delimiter or None
        self.page_size = validate_page_size(page_size)
        self.limit = validate_limit(limit)
        self.start_after = start_after
        self.cursor = EnumerationCursor()

    @property
    def limit_reached(self) -> bool:
        """Only object keys count toward the limit, common prefixes do not."""
        return self.limit is not None and self.cursor.keys_yielded >= self.limit

    @property
    def more_available(self) -> bool:
        """True when the walk stopped at the limit with pages still unread."""
        return not self.cursor.exhausted

    def _remaining(self) -> int:
        if self.limit is None:
            return self.page_size
        return min(self.page_size, self.limit - self.cursor.keys_yielded)

    def _fetch(self) -> ListPage:
        cursor = self.cursor
        try:
            return self.provider.list_objects(
                self.bucket,
                prefix=self.prefix,
                delimiter=self.delimiter,
                continuation_token=cursor.continuation_token,
                max_keys=self._remaining(),
                # The provider ignores start_after once a token is present
                start_after=None if cursor.continuation_token else self.start_after,
            )
        except ProviderError as e:
            error_msg = (
                f"Failed to list s3://{self.bucket}/{self.prefix} "
                f"(page {cursor.pages_fetched + 1}): {e}"
            )
            logger.error(error_msg, error=str(e))
            raise EnumerationError(error_msg) from e

    def __iter__(self) -> Iterator[ListingEntry]:
        """Yield common prefixes and objects, page by page."""
        cursor = self.cursor

        logger.info(
            "Listing objects",
            bucket=self.bucket,
            prefix=self.prefix,
            delimiter=self.delimiter,
            limit=self.limit,
        )

        while not cursor.exhausted and not self.limit_reached:
            page = self._fetch()
            cursor.advance(page)

            entries: list[ListingEntry] = [*page.common_prefixes, *page.items]

            for entry in entries:
                if not cursor.is_new(entry):
                    logger.warning(
                        "Skipping entry already listed",
                        key=entry.prefix if isinstance(entry, CommonPrefix) else entry.key,
                    )
                    continue

                yield entry
                cursor.mark_yielded(entry)

                if self.limit_reached:
                    break

            logger.debug(
                "Listing page consumed",
                page=cursor.pages_fetched,
                entries=len(entries),
                truncated=page.truncated,
            )

        logger.info(
            "Listing finished",
            bucket=self.bucket,
            prefix=self.prefix,
            pages=cursor.pages_fetched,
            entries=cursor.entries_yielded,
            keys=cursor.keys_yielded,
            exhausted=cursor.exhausted,
        )

    def objects(self) -> Iterator[ObjectDescriptor]:
        """Yield only object descriptors, skipping common prefixes."""
        for entry in self:
            if isinstance(entry, ObjectDescriptor):
                yield entry


def walk_objects(
    provider: StorageProvider,
    bucket: str,
    prefix: str = "",
    page_size: int = MAX_PAGE_SIZE,
    limit: Optional[int] = None,
) -> Iterator[ObjectDescriptor]:
    """Convenience generator over every object under a prefix."""
    yield from ObjectWalker(
        provider, bucket, prefix=prefix, page_size=page_size, limit=limit
    ).objects()
