"""Application settings loaded from environment variables and .env files.

Hey future me - every sub-settings class reads its OWN env prefix, so you can
override a single knob without touching the rest:

    CONTENTMIGRATE_IMAGES_CONCURRENCY=5
    CONTENTMIGRATE_R2_BUCKET_NAME=blog-images
    CONTENTMIGRATE_AI_API_KEY=sk-...
    CONTENTMIGRATE_HTTP_TIMEOUT_SECONDS=60

Settings() composes them; get_settings() caches the composed object.
"""

from __future__ import annotations

import tempfile
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "CONTENTMIGRATE_"

DEFAULT_WORK_DIR = Path(tempfile.gettempdir()) / "contentmigrate-images"
DEFAULT_TEMP_DIR = DEFAULT_WORK_DIR / "downloads"


def _config(prefix: str) -> SettingsConfigDict:
    return SettingsConfigDict(
        env_prefix=f"{ENV_PREFIX}{prefix}",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class ImageSettings(BaseSettings):
    """Image acquisition pipeline tuning."""

    model_config = _config("IMAGES_")

    concurrency: int = Field(default=3, ge=1)
    max_retries: int = Field(default=2, ge=0)
    chunk_delay_seconds: float = Field(default=1.0, ge=0.0)
    generate_if_missing: bool = True

    temp_dir: Path = DEFAULT_TEMP_DIR
    ledger_dir: Path = DEFAULT_WORK_DIR
    ledger_file_name: str = "image-tasks.json"

    # Substrings that mark a URL as "already in our storage". The storage public URL
    # host is added on top of these by the pipeline wiring.
    storage_url_patterns: list[str] = Field(
        default_factory=lambda: [
            "amazonaws.com",
            "cloudflare.com",
            "r2.cloudflarestorage.com",
            "r2.dev",
        ]
    )

    image_size: str = "1024x1024"
    image_style: str = "vivid"
    image_quality: str = "standard"


class GenerationSettings(BaseSettings):
    """Generative image service (OpenAI-compatible images API)."""

    model_config = _config("AI_")

    api_key: str = ""
    base_url: str = "https://api.openai.com/v1"
    image_model: str = "dall-e-3"
    timeout_seconds: float = Field(default=120.0, gt=0)

    def is_configured(self) -> bool:
        return bool(self.api_key)


class StorageSettings(BaseSettings):
    """Object storage (Cloudflare R2 via the S3 API)."""

    model_config = _config("R2_")

    provider: str = "r2"
    account_id: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    bucket_name: str = ""
    region: str = "auto"
    endpoint_url: str | None = None
    public_url: str = ""
    use_presigned_urls: bool = False
    presigned_expiry_seconds: int = Field(default=3600, gt=0)

    def is_configured(self) -> bool:
        return bool(self.bucket_name and self.access_key_id and self.secret_access_key)


class HttpSettings(BaseSettings):
    """Shared HTTP client for downloads and the generation API."""

    model_config = _config("HTTP_")

    timeout_seconds: float = Field(default=30.0, gt=0)
    connect_timeout_seconds: float = Field(default=10.0, gt=0)
    max_connections: int = Field(default=20, ge=1)
    max_keepalive_connections: int = Field(default=10, ge=0)
    http2: bool = True
    user_agent: str = ""


class LogSettings(BaseSettings):
    """Logging output."""

    model_config = _config("LOG_")

    level: str = "INFO"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = "contentmigrate"
    images: ImageSettings = Field(default_factory=ImageSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    log: LogSettings = Field(default_factory=LogSettings)


@lru_cache
def get_settings() -> Settings:
    """Get the cached application settings."""
    return Settings()
