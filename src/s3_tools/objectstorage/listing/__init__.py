"""Cursor-based listing of objects and multipart uploads."""

from .multipart_uploads import MultipartUploadWalker, UploadMarkerCursor
from .walker import EnumerationCursor, ObjectWalker, walk_objects

__all__ = [
    "EnumerationCursor",
    "MultipartUploadWalker",
    "ObjectWalker",
    "UploadMarkerCursor",
    "walk_objects",
]
