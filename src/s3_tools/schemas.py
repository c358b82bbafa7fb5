"""Storage configuration and output record schemas for s3-tools."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class S3StorageConfig(BaseModel):
    """Configuration for S3 object storage."""
    type: Literal["s3"] = "s3"
    access_key_id: str | None = Field(default=None, description="AWS access key ID")
    secret_access_key: str | None = Field(
        default=None, description="AWS secret access key"
    )
    session_token: str | None = Field(default=None, description="AWS session token")
    region_name: str | None = Field(default=None, description="AWS region")
    endpoint_url: str | None = Field(default=None, description="Custom S3 endpoint URL")
    aws_profile: str | None = Field(default=None, description="AWS profile name")


ObjectAction = Literal["listed", "counted", "scanned", "deleted", "would-delete", "failed"]


class ObjectRecord(BaseModel):
    """One NDJSON line describing an object a command matched or affected."""
    bucket: str
    key: str
    uri: str
    size: int
    last_modified: Optional[datetime] = None
    action: ObjectAction
    error: Optional[str] = Field(default=None, description="Provider error message")


class MultipartUploadRecord(BaseModel):
    """One NDJSON line describing an incomplete multipart upload."""
    timestamp: Optional[datetime] = None
    bucket: str
    key: str
    uri: str
    upload_id: str
    parts: Optional[int] = None
    bytes: Optional[int] = None
