"""S3 client management and the boto3 storage provider."""

from .s3_client import S3ClientConfig, S3ClientManager
from .s3_provider import S3StorageProvider, create_provider

__all__ = ["S3ClientConfig", "S3ClientManager", "S3StorageProvider", "create_provider"]
