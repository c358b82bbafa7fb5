"""boto3 implementation of the storage provider protocol.

Each method issues exactly one S3 request and translates the response into
the provider value types. botocore failures are re-raised as
``ProviderError`` carrying the S3 error code, so callers can tell an
authorization failure from a missing key without importing botocore.
"""

from functools import wraps
from typing import Any, BinaryIO, Optional, Sequence, Union

from botocore.exceptions import BotoCoreError, ClientError

from s3_tools.core import get_logger
from s3_tools.core.exceptions import ProviderError, ValidationError
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
from s3_tools.objectstorage.provider import MAX_DELETE_KEYS, MAX_PAGE_SIZE

from .s3_client import S3ClientConfig, S3ClientManager

logger = get_logger(__name__)


def _translate_errors(method):
    """Re-raise botocore failures as ProviderError."""

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except ClientError as e:
            error = e.response.get("Error", {})
            code = error.get("Code")
            message = f"S3 {method.__name__} failed ({code}): {error.get('Message', e)}"
            logger.debug("S3 request failed", operation=method.__name__, code=code)
            raise ProviderError(message, code=code) from e
        except BotoCoreError as e:
            logger.debug("S3 request failed", operation=method.__name__, error=str(e))
            raise ProviderError(f"S3 {method.__name__} failed: {e}") from e

    return wrapper


class S3StorageProvider:
    """Storage provider backed by a boto3 S3 client."""

    def __init__(self, config: S3ClientConfig, client: Any = None):
        """Initialize the provider.

        Args:
            config: S3 client configuration
            client: Pre-built boto3 client (skips client creation)
        """
        self.client_manager = S3ClientManager(config, client=client)

    @property
    def client(self):
        return self.client_manager.client

    @_translate_errors
    def list_buckets(self) -> list[dict[str, Any]]:
        response = self.client.list_buckets()
        return [
            {"name": bucket["Name"], "created": bucket.get("CreationDate")}
            for bucket in response.get("Buckets", [])
        ]

    @_translate_errors
    def get_bucket_region(self, bucket: str) -> str:
        response = self.client.get_bucket_location(Bucket=bucket)
        return response.get("LocationConstraint") or "us-east-1"

    @_translate_errors
    def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: Optional[str] = None,
        continuation_token: Optional[str] = None,
        max_keys: int = MAX_PAGE_SIZE,
        start_after: Optional[str] = None,
    ) -> ListPage:
        kwargs: dict[str, Any] = {"Bucket": bucket, "MaxKeys": max_keys}
        if prefix:
            kwargs["Prefix"] = prefix
        if delimiter:
            kwargs["Delimiter"] = delimiter
        if continuation_token:
            kwargs["ContinuationToken"] = continuation_token
        if start_after:
            kwargs["StartAfter"] = start_after

        response = self.client.list_objects_v2(**kwargs)

        items = [
            ObjectDescriptor(
                key=obj["Key"],
                size_bytes=obj.get("Size", 0),
                last_modified=obj.get("LastModified"),
                storage_class=obj.get("StorageClass"),
                etag=obj.get("ETag"),
            )
            for obj in response.get("Contents", [])
        ]
        prefixes = [
            CommonPrefix(prefix=entry["Prefix"])
            for entry in response.get("CommonPrefixes", [])
        ]

        return ListPage(
            items=items,
            common_prefixes=prefixes,
            next_token=response.get("NextContinuationToken"),
            truncated=bool(response.get("IsTruncated", False)),
        )

    @_translate_errors
    def get_object(
        self, bucket: str, key: str, byte_range: Optional[str] = None
    ) -> ObjectBody:
        kwargs: dict[str, Any] = {"Bucket": bucket, "Key": key}
        if byte_range:
            kwargs["Range"] = byte_range

        response = self.client.get_object(**kwargs)

        return ObjectBody(
            stream=response["Body"],
            content_length=response.get("ContentLength"),
            content_encoding=response.get("ContentEncoding"),
            content_range=response.get("ContentRange"),
            content_type=response.get("ContentType"),
        )

    @_translate_errors
    def put_object(
        self, bucket: str, key: str, body: Union[bytes, BinaryIO], **params: Any
    ) -> dict[str, Any]:
        return self.client.put_object(Bucket=bucket, Key=key, Body=body, **params)

    @_translate_errors
    def delete_objects(self, bucket: str, keys: Sequence[str]) -> DeleteResult:
        if len(keys) > MAX_DELETE_KEYS:
            raise ValidationError(
                f"Bulk delete accepts at most {MAX_DELETE_KEYS} keys, got {len(keys)}"
            )

        response = self.client.delete_objects(
            Bucket=bucket,
            Delete={"Objects": [{"Key": key} for key in keys], "Quiet": False},
        )

        return DeleteResult(
            deleted=[entry["Key"] for entry in response.get("Deleted", [])],
            failures=[
                DeleteFailure(
                    key=entry["Key"],
                    code=entry.get("Code"),
                    message=entry.get("Message"),
                )
                for entry in response.get("Errors", [])
            ],
        )

    @_translate_errors
    def delete_object(self, bucket: str, key: str) -> dict[str, Any]:
        return self.client.delete_object(Bucket=bucket, Key=key)

    @_translate_errors
    def head_object(self, bucket: str, key: str) -> dict[str, Any]:
        response = self.client.head_object(Bucket=bucket, Key=key)
        response.pop("ResponseMetadata", None)
        return response

    @_translate_errors
    def get_object_acl(self, bucket: str, key: str) -> dict[str, Any]:
        response = self.client.get_object_acl(Bucket=bucket, Key=key)
        response.pop("ResponseMetadata", None)
        return response

    @_translate_errors
    def create_multipart_upload(self, bucket: str, key: str, **params: Any) -> str:
        response = self.client.create_multipart_upload(Bucket=bucket, Key=key, **params)
        return response["UploadId"]

    @_translate_errors
    def upload_part(
        self, bucket: str, key: str, upload_id: str, part_number: int, body: bytes
    ) -> str:
        response = self.client.upload_part(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=body,
        )
        return response["ETag"]

    @_translate_errors
    def complete_multipart_upload(
        self, bucket: str, key: str, upload_id: str, parts: list[dict[str, Any]]
    ) -> dict[str, Any]:
        response = self.client.complete_multipart_upload(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": parts},
        )
        response.pop("ResponseMetadata", None)
        return response

    @_translate_errors
    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        self.client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)

    @_translate_errors
    def list_multipart_uploads(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: Optional[str] = None,
        key_marker: Optional[str] = None,
        upload_id_marker: Optional[str] = None,
        max_uploads: int = MAX_PAGE_SIZE,
    ) -> MultipartUploadPage:
        kwargs: dict[str, Any] = {"Bucket": bucket, "MaxUploads": max_uploads}
        if prefix:
            kwargs["Prefix"] = prefix
        if delimiter:
            kwargs["Delimiter"] = delimiter
        if key_marker:
            kwargs["KeyMarker"] = key_marker
        if upload_id_marker:
            kwargs["UploadIdMarker"] = upload_id_marker

        response = self.client.list_multipart_uploads(**kwargs)

        uploads = [
            MultipartUploadDescriptor(
                key=upload["Key"],
                upload_id=upload["UploadId"],
                initiated=upload.get("Initiated"),
                storage_class=upload.get("StorageClass"),
            )
            for upload in response.get("Uploads", [])
        ]
        prefixes = [
            CommonPrefix(prefix=entry["Prefix"])
            for entry in response.get("CommonPrefixes", [])
        ]

        return MultipartUploadPage(
            uploads=uploads,
            common_prefixes=prefixes,
            next_key_marker=response.get("NextKeyMarker"),
            next_upload_id_marker=response.get("NextUploadIdMarker"),
            truncated=bool(response.get("IsTruncated", False)),
        )

    @_translate_errors
    def list_parts(self, bucket: str, key: str, upload_id: str) -> list[dict[str, Any]]:
        parts: list[dict[str, Any]] = []
        paginator = self.client.get_paginator("list_parts")
        for page in paginator.paginate(Bucket=bucket, Key=key, UploadId=upload_id):
            parts.extend(page.get("Parts", []))
        return parts


def create_provider(config: S3ClientConfig) -> S3StorageProvider:
    """Create a provider for the given client configuration."""
    return S3StorageProvider(config)
