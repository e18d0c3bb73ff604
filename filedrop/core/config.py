"""
Configuration management for the file drop service.
Loads environment variables and derives upload limits and expiration choices.
"""

from datetime import timedelta
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from filedrop.core.errors import ValidationError

DEFAULT_DURATION_MINUTES = 30


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Storage
    AWS_BUCKET: str
    S3_ENDPOINT_URL: Optional[str] = None   # e.g. http://minio:9000, AWS default otherwise
    S3_REGION: Optional[str] = None
    S3_ACCESS_KEY_ID: Optional[str] = None  # Falls back to the boto3 credential chain
    S3_SECRET_ACCESS_KEY: Optional[str] = None
    S3_FORCE_PATH_STYLE: bool = True
    S3_MAX_WORKERS: int = Field(default=4, ge=1)

    # Uploads
    MAX_UPLOAD_SIZE: int = Field(default=10, ge=1)  # MiB per request
    ALLOWED_DURATIONS: str = "30,60,360,1440,10080"  # Minutes, first one is the default
    ID_LENGTH: int = Field(default=8, ge=1, le=255)

    # Application
    SOCKET_ADDR: str = "0.0.0.0:8080"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def allowed_durations(self) -> List[int]:
        """Allowed expiration values in minutes, unparsable entries dropped."""
        durations = []
        for item in self.ALLOWED_DURATIONS.split(","):
            try:
                durations.append(int(item.strip()))
            except ValueError:
                continue
        return durations

    @property
    def default_duration(self) -> timedelta:
        allowed = self.allowed_durations
        minutes = allowed[0] if allowed else DEFAULT_DURATION_MINUTES
        return timedelta(minutes=minutes)

    def resolve_duration(self, raw: str) -> timedelta:
        """
        Turn a submitted expiration value into a duration.

        Args:
            raw: Minutes as sent by the client

        Returns:
            The matching duration

        Raises:
            ValidationError: If the value is not an integer in the allow-list
        """
        try:
            minutes = int(raw.strip())
        except ValueError:
            raise ValidationError(f"Expiration is not a number: {raw!r}")

        if minutes not in self.allowed_durations:
            raise ValidationError(f"Expiration not allowed: {minutes}")

        return timedelta(minutes=minutes)

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE * 1024 * 1024

    @property
    def host(self) -> str:
        return self.SOCKET_ADDR.rsplit(":", 1)[0]

    @property
    def port(self) -> int:
        return int(self.SOCKET_ADDR.rsplit(":", 1)[1])


# Global settings instance
settings = Settings()
