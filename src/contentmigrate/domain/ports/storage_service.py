"""Storage Service Port (Interface).

Future me note:
Implemented by infrastructure/integrations/r2_storage_client.py (boto3 against
Cloudflare R2). Anything S3-compatible that returns a public URL fits.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class ImageMetadata:
    """Descriptive metadata attached to an uploaded image."""

    title: str | None = None
    description: str | None = None
    alt: str | None = None
    author: str | None = None
    source_url: str | None = None
    tags: list[str] = field(default_factory=list)


@dataclass
class StorageResult:
    """Result of a storage upload."""

    success: bool
    key: str = ""
    url: str = ""
    content_type: str | None = None
    size: int | None = None
    error: str | None = None

    @classmethod
    def failure(cls, error: str) -> StorageResult:
        return cls(success=False, error=error)


class IStorageService(Protocol):
    """Object storage port."""

    async def upload_image(
        self, image_path: str, metadata: ImageMetadata | None = None
    ) -> StorageResult:
        """Upload a local image file and return its public URL.

        Must not raise - failures are reported via StorageResult.success/error.
        """
        ...

    async def delete_item(self, key: str) -> bool:
        """Delete a stored object. Returns False on failure."""
        ...
