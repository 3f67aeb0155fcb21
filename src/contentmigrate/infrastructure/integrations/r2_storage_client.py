"""Cloudflare R2 storage client (S3 API via boto3).

Hey future me - R2 speaks the S3 protocol, so this is a plain boto3 "s3" client
pointed at https://{account_id}.r2.cloudflarestorage.com with region "auto".
boto3 is BLOCKING, so every call goes through asyncio.to_thread().

URLs handed back to the pipeline:
- use_presigned_urls → time-limited presigned GET URL
- public_url set     → {public_url}/{key} (custom domain or r2.dev bucket URL)
- neither            → https://{bucket}.r2.{region}.cloudflarestorage.com/{key}

The last one is only reachable with credentials, so configure public_url for real
migrations. Whatever you pick, make sure its host is in the "already stored"
patterns (storage_patterns_for() adds the public_url host automatically).
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from contentmigrate.config.settings import StorageSettings
from contentmigrate.domain.exceptions import ConfigurationException
from contentmigrate.domain.ports import ImageMetadata, StorageResult

logger = logging.getLogger(__name__)

CONTENT_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".avif": "image/avif",
    ".heic": "image/heic",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"
KEY_PREFIX = "images"


def content_type_for(path: str | Path) -> str:
    return CONTENT_TYPES.get(Path(path).suffix.lower(), DEFAULT_CONTENT_TYPE)


def _ascii_only(value: str) -> str:
    # S3 user metadata travels as HTTP headers - non-ASCII gets rejected by the signer.
    return value.encode("ascii", "ignore").decode("ascii").strip()


def build_s3_metadata(metadata: ImageMetadata | None) -> dict[str, str]:
    """Map ImageMetadata to S3 user metadata (only non-empty fields)."""
    if metadata is None:
        return {}

    fields = {
        "title": metadata.title,
        "description": metadata.description,
        "alt": metadata.alt,
        "author": metadata.author,
        "source_url": metadata.source_url,
        "tags": ",".join(metadata.tags) if metadata.tags else None,
    }
    s3_metadata: dict[str, str] = {}
    for name, value in fields.items():
        if not value:
            continue
        cleaned = _ascii_only(value)
        if cleaned:
            s3_metadata[name] = cleaned
    return s3_metadata


class R2StorageClient:
    """IStorageService implementation for Cloudflare R2 (or any S3 endpoint).

    Args:
        settings: Storage settings (bucket, credentials, URL mode)
        s3_client: Pre-built boto3 client (tests pass a MagicMock here)

    Raises:
        ConfigurationException: Bucket name or credentials are missing
    """

    def __init__(self, settings: StorageSettings, s3_client: Any | None = None) -> None:
        if not settings.bucket_name:
            raise ConfigurationException("Invalid storage configuration: missing bucket_name")
        if s3_client is None and not (settings.access_key_id and settings.secret_access_key):
            raise ConfigurationException("Invalid storage configuration: missing credentials")

        self.settings = settings
        self.bucket_name = settings.bucket_name
        self.base_url = settings.public_url.rstrip("/")
        self._client = s3_client if s3_client is not None else self._build_client(settings)

    @staticmethod
    def _build_client(settings: StorageSettings) -> Any:
        endpoint_url = settings.endpoint_url
        if not endpoint_url and settings.provider == "r2":
            if not settings.account_id:
                raise ConfigurationException(
                    "Invalid storage configuration: R2 needs account_id or endpoint_url"
                )
            endpoint_url = f"https://{settings.account_id}.r2.cloudflarestorage.com"

        config = Config(
            retries={"max_attempts": 3, "mode": "adaptive"},
            connect_timeout=30,
            read_timeout=60,
            signature_version="s3v4",
        )
        logger.info(
            "Creating S3 client for bucket %s (endpoint=%s)",
            settings.bucket_name,
            endpoint_url or "aws default",
        )
        return boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=settings.access_key_id,
            aws_secret_access_key=settings.secret_access_key,
            config=config,
            region_name=settings.region or "auto",
        )

    @staticmethod
    def build_key(file_name: str, now: datetime | None = None) -> str:
        """Object key: images/{timestamp}-{filename}, timestamp without ':' and '.'."""
        moment = now or datetime.now(UTC)
        timestamp = moment.strftime("%Y-%m-%dT%H-%M-%S-%f")[:-3] + "Z"
        return f"{KEY_PREFIX}/{timestamp}-{file_name}"

    async def upload_image(
        self, image_path: str, metadata: ImageMetadata | None = None
    ) -> StorageResult:
        """Upload a local image file.

        Args:
            image_path: Path of the file to upload
            metadata: Optional descriptive metadata stored with the object

        Returns:
            StorageResult with key and public URL, or success=False + error
        """
        path = Path(image_path)
        try:
            if not await asyncio.to_thread(path.is_file):
                return StorageResult.failure(f"File not found: {image_path}")

            body = await asyncio.to_thread(path.read_bytes)
            content_type = content_type_for(path)
            key = self.build_key(path.name)

            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket_name,
                Key=key,
                Body=body,
                ContentType=content_type,
                Metadata=build_s3_metadata(metadata),
            )
            url = await self.get_public_url(key)
        except (BotoCoreError, ClientError, OSError) as e:
            logger.error("Error uploading %s to %s: %s", image_path, self.bucket_name, e)
            return StorageResult.failure(f"Storage upload failed: {e}")

        logger.debug("Uploaded %s → %s (%d bytes)", path.name, key, len(body))
        return StorageResult(
            success=True,
            key=key,
            url=url,
            content_type=content_type,
            size=len(body),
        )

    async def get_public_url(self, key: str, expires_in: int | None = None) -> str:
        """Public URL for a stored object.

        Raises:
            BotoCoreError/ClientError: Presigning failed
        """
        key = key.lstrip("/")
        if self.settings.use_presigned_urls:
            return await asyncio.to_thread(
                self._client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=expires_in or self.settings.presigned_expiry_seconds,
            )

        if self.base_url:
            return f"{self.base_url}/{key}"

        region = self.settings.region or "auto"
        return f"https://{self.bucket_name}.r2.{region}.cloudflarestorage.com/{key}"

    async def delete_item(self, key: str) -> bool:
        try:
            await asyncio.to_thread(
                self._client.delete_object, Bucket=self.bucket_name, Key=key
            )
        except (BotoCoreError, ClientError) as e:
            logger.warning("Error deleting %s from %s: %s", key, self.bucket_name, e)
            return False
        logger.debug("Deleted %s from %s", key, self.bucket_name)
        return True
