"""Single-object transfers: streaming fetch and multipart upload."""

from .channel import BoundedChannel, ChannelClosed
from .fetch import default_filename, fetch_object
from .headers import parse_header_pairs, parse_metadata_pairs
from .multipart import (
    MultipartUploadCoordinator,
    PartStatus,
    UploadManifest,
    UploadPart,
    UploadProgress,
    UploadResult,
)
from .pipe import StreamingTransferPipe, TransferSession
from .ranges import range_header, validate_range

__all__ = [
    "BoundedChannel",
    "ChannelClosed",
    "default_filename",
    "fetch_object",
    "parse_header_pairs",
    "parse_metadata_pairs",
    "MultipartUploadCoordinator",
    "PartStatus",
    "UploadManifest",
    "UploadPart",
    "UploadProgress",
    "UploadResult",
    "StreamingTransferPipe",
    "TransferSession",
    "range_header",
    "validate_range",
]
