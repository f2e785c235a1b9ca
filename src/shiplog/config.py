"""Configuration loaded from environment variables and an optional .env file."""

import json
from typing import Annotated, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_CATEGORIES = (
    "service",
    "service.request-samples",
    "worker",
)


class ShipperSettings(BaseSettings):
    """Settings for the producer side (WriterWrapper).

    Environment variables use the ``SHIPLOG_`` prefix, e.g.
    ``SHIPLOG_ARCHIVE_URL``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHIPLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    archive_url: str = Field(default="http://localhost:8989")
    flush_interval: float = Field(default=5.0, gt=0)
    ring_buffer_capacity: int = Field(default=1024, ge=1)
    submission_disabled: bool = Field(default=False)


class ArchiveSettings(BaseSettings):
    """Settings for the archive server.

    Environment variables use the ``SHIPLOG_ARCHIVE_`` prefix, e.g.
    ``SHIPLOG_ARCHIVE_BUCKET``. ``categories`` accepts a comma-separated or JSON
    list.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHIPLOG_ARCHIVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8989, ge=1, le=65535)
    log_level: str = Field(default="INFO")

    categories: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_CATEGORIES)
    )
    max_body_size: int = Field(default=65536, ge=1)

    delay_threshold: float = Field(default=120.0, gt=0)
    byte_threshold: int = Field(default=32 << 20, gt=0)
    buffered_byte_limit: int = Field(default=64 << 20, gt=0)
    commit_timeout: float = Field(default=60.0, gt=0)
    shutdown_grace: float = Field(default=30.0, ge=0)

    bucket: str = Field(default="shiplog-logs")
    storage_backend: Literal["s3", "sqlite", "memory"] = Field(default="s3")
    sqlite_path: str = Field(default="shiplog-blobs.db")
    s3_endpoint_url: str | None = Field(default=None)
    s3_region: str | None = Field(default=None)

    @field_validator("categories", mode="before")
    @classmethod
    def _split_categories(cls, value: object) -> object:
        if isinstance(value, str):
            if value.lstrip().startswith("["):
                return json.loads(value)
            return [c.strip() for c in value.split(",") if c.strip()]
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _check_categories(self) -> "ArchiveSettings":
        if not self.categories:
            raise ValueError("at least one category must be configured")
        if len(set(self.categories)) != len(self.categories):
            raise ValueError("categories must be unique")
        return self
