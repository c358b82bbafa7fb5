"""Fetch a single object into a file or stdout."""

import posixpath
from typing import BinaryIO, Optional

from s3_tools.core import get_logger, settings
from s3_tools.core.context import RunContext
from s3_tools.objectstorage.locator import format_uri

from .pipe import StreamingTransferPipe, TransferSession
from .ranges import range_header

logger = get_logger(__name__)


def default_filename(key: str) -> str:
    """Local file name for a fetched key: the last path segment of the key."""
    name = posixpath.basename(key.rstrip("/"))
    return name or "index"


def fetch_object(
    context: RunContext,
    bucket: str,
    key: str,
    sink: BinaryIO,
    byte_range: Optional[str] = None,
    decompress: Optional[bool] = None,
    sink_is_stdout: bool = False,
    chunk_size: int = settings.chunk_size,
    channel_depth: int = settings.channel_depth,
) -> TransferSession:
    """Stream one object, or a byte range of it, into ``sink``.

    The range is validated before the object is requested.

    Raises:
        ValidationError: If the range is malformed
        ProviderError: If the object cannot be opened
        TransferError: If streaming fails
    """
    header = range_header(byte_range)
    pipe = StreamingTransferPipe(
        context, chunk_size=chunk_size, channel_depth=channel_depth, decompress=decompress
    )

    logger.info(
        "Fetching object", uri=format_uri(bucket, key), range=header, decompress=decompress
    )
    body = context.provider.get_object(bucket, key, byte_range=header)

    try:
        return pipe.run(
            body.stream,
            sink,
            content_encoding=body.content_encoding,
            sink_is_stdout=sink_is_stdout,
        )
    finally:
        body.close()
