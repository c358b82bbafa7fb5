"""boto3 client construction for S3 and S3-compatible endpoints.

Credentials are resolved in this order:
    1. A named AWS CLI profile (``aws_profile``)
    2. Explicit keys, with an optional session token for temporary credentials
    3. The default botocore chain (environment, instance role, config files)

``endpoint_url`` points the client at MinIO, Ceph RGW or another
S3-compatible service.
"""

from typing import Any, Dict, Optional

import boto3
from botocore.config import Config as BotoConfig
from pydantic import BaseModel, ConfigDict, Field

from s3_tools.core import get_logger
from s3_tools.schemas import S3StorageConfig

logger = get_logger(__name__)

DEFAULT_REGION = "us-east-1"


class S3ClientConfig(BaseModel):
    """Connection settings for one boto3 S3 client.

    Example:
        config = S3ClientConfig(
            endpoint_url="http://localhost:9000",
            access_key_id="minioadmin",
            secret_access_key="minioadmin",
        )
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    access_key_id: Optional[str] = Field(None, description="AWS access key ID")
    secret_access_key: Optional[str] = Field(None, description="AWS secret access key")
    session_token: Optional[str] = Field(None, description="Temporary session token")
    region_name: Optional[str] = Field(
        None, description="AWS region (default: the profile's, then us-east-1)"
    )
    endpoint_url: Optional[str] = Field(None, description="S3-compatible endpoint URL")
    aws_profile: Optional[str] = Field(None, description="AWS CLI profile name")
    max_pool_connections: int = Field(
        10, ge=1, description="HTTP connection pool size (raise for wide uploads)"
    )

    @classmethod
    def from_storage_config(
        cls, config: S3StorageConfig, max_pool_connections: int = 10
    ) -> "S3ClientConfig":
        return cls(
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key,
            session_token=config.session_token,
            region_name=config.region_name,
            endpoint_url=config.endpoint_url,
            aws_profile=config.aws_profile,
            max_pool_connections=max_pool_connections,
        )

    @property
    def credential_source(self) -> str:
        if self.aws_profile:
            return "profile"
        if self.access_key_id:
            return "explicit"
        return "default-chain"


class S3ClientManager:
    """Creates the S3 client on first use and keeps it for the run."""

    def __init__(self, config: S3ClientConfig, client: Any = None):
        self.config = config
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _session(self) -> boto3.Session:
        if self.config.aws_profile:
            return boto3.Session(profile_name=self.config.aws_profile)

        credentials: Dict[str, Any] = {}
        if self.config.access_key_id:
            credentials["aws_access_key_id"] = self.config.access_key_id
            credentials["aws_secret_access_key"] = self.config.secret_access_key
            if self.config.session_token:
                credentials["aws_session_token"] = self.config.session_token
        return boto3.Session(**credentials)

    def _create_client(self):
        session = self._session()
        region = self.config.region_name or session.region_name or DEFAULT_REGION
        boto_config = BotoConfig(max_pool_connections=self.config.max_pool_connections)

        client = session.client(
            "s3",
            region_name=region,
            endpoint_url=self.config.endpoint_url,
            config=boto_config,
        )
        logger.info(
            "S3 client created",
            region=region,
            endpoint=self.config.endpoint_url,
            credentials=self.config.credential_source,
        )
        return client
