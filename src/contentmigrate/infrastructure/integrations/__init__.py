"""External service integrations."""

from contentmigrate.infrastructure.integrations.http_client import create_http_client
from contentmigrate.infrastructure.integrations.image_generation_client import (
    ImageGenerationClient,
)
from contentmigrate.infrastructure.integrations.r2_storage_client import R2StorageClient

__all__ = ["ImageGenerationClient", "R2StorageClient", "create_http_client"]
