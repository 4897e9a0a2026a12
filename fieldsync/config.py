"""Upload queue configuration using Pydantic BaseSettings.

All settings are loaded from FIELDSYNC_-prefixed environment variables on
the capturing device.

Usage:
    from fieldsync.config import get_settings

    settings = get_settings()
    print(settings.bucket_name)
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_STORE_NAMESPACE: str = "field-photo-upload-queue"
DEFAULT_RETRY_LIMIT: int = 3
DEFAULT_MAX_UPLOADS_PER_PASS: int = 2


class UploadQueueSettings(BaseSettings):
    """Upload queue settings loaded from environment variables.

    Attributes:
        store_path: SQLite file backing the durable key-value store.
        store_namespace: Fixed namespace the queue is persisted under.
        bucket_name: Object storage bucket receiving the photos.
        aws_region: Region of the object storage bucket.
        endpoint_url: Optional S3-compatible endpoint override.
        public_base_url: Optional base URL used to build durable object URLs.
        max_uploads_per_pass: Successful uploads after which a drain pass stops.
        retry_limit: Automatic attempts before an item needs a manual retry.
        retry_delay_seconds: Fixed backoff after a failed attempt.
        reschedule_delay_seconds: Pause between passes while work remains.
        poll_interval_seconds: Progress polling interval while waiting.
        wait_timeout_seconds: Default timeout for waiting on a group.
        sync_interval_seconds: Idle interval between background sync passes.
        log_level: Logging level.
    """

    model_config = SettingsConfigDict(
        env_prefix="FIELDSYNC_",
        case_sensitive=False,
        extra="ignore",
        str_strip_whitespace=True,
    )

    # Local durable store
    store_path: str = Field(default=".local/fieldsync/queue.sqlite3", min_length=1)
    store_namespace: str = Field(default=DEFAULT_STORE_NAMESPACE, min_length=1)

    # Remote object storage
    bucket_name: str = Field(default="survey-photos", min_length=1)
    aws_region: str = Field(default="us-east-1", min_length=1)
    endpoint_url: str = Field(default="")
    public_base_url: str = Field(default="")

    # Drain behaviour
    max_uploads_per_pass: int = Field(default=DEFAULT_MAX_UPLOADS_PER_PASS, ge=1, le=50)
    retry_limit: int = Field(default=DEFAULT_RETRY_LIMIT, ge=1, le=20)
    retry_delay_seconds: float = Field(default=2.0, ge=0.0, le=300.0)
    reschedule_delay_seconds: float = Field(default=0.1, ge=0.0, le=60.0)

    # Progress and synchronization
    poll_interval_seconds: float = Field(default=0.5, gt=0.0, le=60.0)
    wait_timeout_seconds: float = Field(default=60.0, gt=0.0)
    sync_interval_seconds: float = Field(default=30.0, gt=0.0)

    # Logging
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in allowed:
            error_message = f"log_level must be one of {allowed}, got '{value}'"
            raise ValueError(error_message)
        return upper_value


@lru_cache
def get_settings() -> UploadQueueSettings:
    """Get cached upload queue settings instance.

    Returns:
        Cached UploadQueueSettings instance.
    """
    return UploadQueueSettings()
