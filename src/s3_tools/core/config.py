"""Configuration management for s3-tools."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    log_level: str = "WARNING"
    otel_enabled: bool = False
    otel_service_name: str = "s3-tools"

    # Seconds between progress reports (the upper bound is twice this)
    report_frequency: float = 5.0

    page_size: int = 1000
    part_size_mib: int = 20
    queue_size: int = 1
    chunk_size: int = 64 * 1024
    channel_depth: int = 16

    model_config = {
        "env_prefix": "S3_TOOLS_",
        "case_sensitive": False,
    }


settings = Settings()
