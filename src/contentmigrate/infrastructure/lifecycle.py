"""Image pipeline lifecycle - wiring at startup, cleanup at shutdown.

Hey future me - this is the ONE place that knows how the pieces are plugged together:

    Settings ──► httpx.AsyncClient (http.*) ──┬─► ImageGenerationClient (generation.*)
             ──► ImageTaskLedger (ledger_dir) │
             ──► R2StorageClient (storage.*)  │
             ──► ImageResolver ◄──────────────┘ (temp_dir, url patterns, image options)
             ──► ImageBatchProcessor (concurrency, retries, chunk delay)

The pipeline OWNS the HTTP client: downloads and generation calls share its
connection pool, and close() is the only place it gets closed.

Use it as an async context manager so the temp dir gets emptied and the HTTP
client gets closed even when the batch blows up:

    async with ImagePipeline.build(get_settings()) as pipeline:
        result = await pipeline.processor.process_all(entries)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import TracebackType
from typing import TYPE_CHECKING

import httpx

from contentmigrate.application.services.images import (
    ImageResolver,
    ImageTaskLedger,
    InFlightRegistry,
    storage_patterns_for,
)
from contentmigrate.application.workers import ImageBatchProcessor
from contentmigrate.domain.ports import ImageOptions
from contentmigrate.infrastructure.integrations.http_client import create_http_client
from contentmigrate.infrastructure.integrations.image_generation_client import (
    ImageGenerationClient,
)
from contentmigrate.infrastructure.integrations.r2_storage_client import R2StorageClient

if TYPE_CHECKING:
    from contentmigrate.config import Settings
    from contentmigrate.domain.ports import IImageGenerator, IStorageService

logger = logging.getLogger(__name__)


@dataclass
class ImagePipeline:
    """Fully wired image pipeline."""

    settings: Settings
    ledger: ImageTaskLedger
    resolver: ImageResolver
    processor: ImageBatchProcessor
    http_client: httpx.AsyncClient

    @classmethod
    def build(
        cls,
        settings: Settings,
        generator: IImageGenerator | None = None,
        storage: IStorageService | None = None,
    ) -> ImagePipeline:
        """Wire the pipeline from settings.

        Args:
            settings: Application settings
            generator: Override for the generation client
            storage: Override for the storage client

        Raises:
            ConfigurationException: Storage is not configured and no override was given
        """
        images = settings.images
        ledger = ImageTaskLedger(images.ledger_dir, images.ledger_file_name)

        if storage is None:
            storage = R2StorageClient(settings.storage)

        http_client = create_http_client(settings.http)
        if generator is None:
            if not settings.generation.is_configured():
                logger.warning(
                    "No image generation API key configured - generation requests will fail"
                )
            generator = ImageGenerationClient(settings.generation, http_client)

        resolver = ImageResolver(
            generator=generator,
            storage=storage,
            ledger=ledger,
            http_client=http_client,
            in_flight=InFlightRegistry(),
            temp_dir=images.temp_dir,
            storage_url_patterns=storage_patterns_for(settings),
            image_options=ImageOptions(
                size=images.image_size,
                style=images.image_style,
                quality=images.image_quality,
            ),
        )
        processor = ImageBatchProcessor(
            resolver,
            concurrency=images.concurrency,
            max_retries=images.max_retries,
            chunk_delay_seconds=images.chunk_delay_seconds,
        )
        return cls(
            settings=settings,
            ledger=ledger,
            resolver=resolver,
            processor=processor,
            http_client=http_client,
        )

    async def start(self) -> None:
        await self.resolver.initialize()
        logger.info("Image pipeline started (ledger: %s)", self.ledger.file_path)

    async def close(self) -> None:
        """Empty the temp directory and release HTTP connections."""
        # Hey future me - each step in its own try, a failing cleanup must not hide the
        # next one (or the batch's own exception when called from __aexit__).
        try:
            await self.resolver.cleanup()
        except Exception as e:
            logger.exception("Error cleaning up image temp directory: %s", e)

        try:
            await self.http_client.aclose()
        except Exception as e:
            logger.exception("Error closing HTTP client: %s", e)

        logger.info("Image pipeline closed")

    async def __aenter__(self) -> ImagePipeline:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
