"""Command-level operations composing the storage components."""

from .storage_operations import (
    BucketInfo,
    clean_prefix,
    delete_object,
    download_object,
    head_object,
    list_buckets,
    list_multipart_uploads,
    list_objects,
    measure_prefix,
    open_context,
    sample_prefix,
    scan_prefix,
    upload_object,
)

__all__ = [
    "BucketInfo",
    "clean_prefix",
    "delete_object",
    "download_object",
    "head_object",
    "list_buckets",
    "list_multipart_uploads",
    "list_objects",
    "measure_prefix",
    "open_context",
    "sample_prefix",
    "scan_prefix",
    "upload_object",
]
