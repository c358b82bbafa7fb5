"""Bulk operations against S3-compatible object storage.

This package provides the engine behind the ``s3-tools`` CLI: lazy
cursor-based listing, batched deletion with dry-run and throttled progress,
backpressure-aware streaming downloads and bounded-concurrency multipart
uploads. Every command is also available as a plain function.

Recommended Usage:
    Use the unified interface from this module for most operations:

    >>> from s3_tools import S3StorageConfig, open_context, measure_prefix
    >>> context = open_context(S3StorageConfig(aws_profile="research"))
    >>> metrics = measure_prefix(context, "s3://bucket/datasets/")

Advanced Usage:
    Import specific modules to compose the components directly:

    >>> from s3_tools.objectstorage.listing import ObjectWalker
    >>> from s3_tools.objectstorage.mutation import BatchDeleter
    >>> from s3_tools.transfer import MultipartUploadCoordinator
"""

__version__ = "0.1.0"

from .core.context import RunContext
from .objectstorage import ResourceLocation, parse_uri, resolve_resource
from .objectstorage.clients import S3ClientConfig
from .schemas import MultipartUploadRecord, ObjectRecord, S3StorageConfig

# Unified interface (recommended)
from .unified import (
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
    # Configuration and records
    "S3StorageConfig",
    "S3ClientConfig",
    "ObjectRecord",
    "MultipartUploadRecord",
    # Locator
    "ResourceLocation",
    "parse_uri",
    "resolve_resource",
    # Unified interface
    "RunContext",
    "open_context",
    "clean_prefix",
    "delete_object",
    "download_object",
    "head_object",
    "list_buckets",
    "list_multipart_uploads",
    "list_objects",
    "measure_prefix",
    "sample_prefix",
    "scan_prefix",
    "upload_object",
]
