"""Logging configuration read from the environment."""

from enum import StrEnum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(StrEnum):
    """Root logger levels. Lookup ignores case, so "debug" is accepted."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @classmethod
    def _missing_(cls, value: object) -> "LogLevel | None":
        if isinstance(value, str):
            return cls.__members__.get(value.upper())
        return None


class LogFormat(StrEnum):
    JSON = "json"
    HUMAN = "human"


class LoggingConfig(BaseSettings):
    """Logging configuration loaded from environment variables.

    Attributes:
        log_level: Minimum level on the root logger.
        log_format: json when logs are shipped off the device, human on a console.
        service_name: Identifier stamped on every JSON record.
        include_timestamp: Whether JSON records carry a timestamp.
        include_location: Whether JSON records carry module/function/line.
        quiet_loggers: Library loggers held at WARNING so a drain's own
            lines are not buried under per-request S3 chatter.
    """

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    log_level: LogLevel = LogLevel.INFO
    log_format: LogFormat = LogFormat.HUMAN
    service_name: str = "fieldsync"
    include_timestamp: bool = True
    include_location: bool = False
    quiet_loggers: list[str] = Field(
        default_factory=lambda: ["boto3", "botocore", "s3transfer", "urllib3"]
    )


@lru_cache
def get_logging_config() -> LoggingConfig:
    """Get cached logging configuration instance."""
    return LoggingConfig()
