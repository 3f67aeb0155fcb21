# Hey future me - ImageResolver decides WHERE an entry's image comes from and makes
# sure it ends up in our storage exactly once!
#
# Decision order (first match wins):
#   1. Ledger says completed   → reuse storage URL, zero network calls
#   2. Attempt already running → await THAT attempt, share its result object
#   3. URL already in storage  → record completion, no upload
#   4. Entry has external URL  → download → verify with Pillow → upload
#   5. generate_if_missing     → prompt → generator → upload file (or go to 4 with its URL)
#   6. nothing to do           → failure, no side effects
#
# resolve() NEVER raises. Everything is turned into an ImageProcessingResult and, when
# the entry has an id, mirrored into the ledger via fail_task(). The batch processor
# relies on that: one broken entry must not take the whole migration down.
#
# Temp files: every download / generation gets a unique file in temp_dir and it is
# removed in a finally block. cleanup() wipes temp_dir completely after a batch.
"""Image resolver - acquire, re-host and track one entry's image."""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
import time
import uuid
from io import BytesIO
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import httpx
from PIL import Image, UnidentifiedImageError

from contentmigrate.application.services.images.in_flight import InFlightRegistry
from contentmigrate.application.services.images.url_classification import (
    DEFAULT_STORAGE_URL_PATTERNS,
    FailureReason,
    classify_error,
    is_stored_image,
)
from contentmigrate.config.settings import DEFAULT_TEMP_DIR
from contentmigrate.domain.entities import ImageOrigin
from contentmigrate.domain.exceptions import (
    ImageDownloadException,
    ImageGenerationException,
    StorageUploadException,
)
from contentmigrate.domain.ports import (
    ImageMetadata,
    ImageOptions,
    ImageProcessingResult,
)
from contentmigrate.infrastructure.observability.error_formatting import (
    format_oserror_message,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from contentmigrate.application.services.images.task_ledger import ImageTaskLedger
    from contentmigrate.domain.entities import ContentEntry
    from contentmigrate.domain.ports import IImageGenerator, IStorageService

logger = logging.getLogger(__name__)

SUMMARY_PROMPT_LIMIT = 200
DEFAULT_IMAGE_NAME = "image.jpg"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

# Image types Pillow can't decode without plugins. Uploaded as-is.
UNDECODABLE_IMAGE_TYPES = frozenset(
    {"image/svg+xml", "image/avif", "image/heic", "image/heif", "image/jxl"}
)


def build_image_prompt(entry: ContentEntry) -> str:
    """Build the generation prompt for an entry.

    The summary is cut at 200 characters; entries without a summary fall back
    to their title.
    """
    details = (entry.summary or "")[:SUMMARY_PROMPT_LIMIT] or entry.title
    return (
        f'Create a professional, striking image for an article titled "{entry.title}" '
        f"about {entry.category}. The article discusses: {details}"
    )


def build_image_metadata(entry: ContentEntry, source_url: str | None) -> ImageMetadata:
    return ImageMetadata(
        title=entry.title,
        description=entry.summary or "",
        alt=f"Image for {entry.title}",
        source_url=source_url,
        tags=list(entry.tags or []),
    )


def _safe_filename(name: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", name).strip("._") or DEFAULT_IMAGE_NAME


def _looks_like_svg(data: bytes) -> bool:
    # CDNs often serve SVG as text/plain or application/octet-stream
    head = data[:2048].lstrip().lower()
    return head.startswith((b"<svg", b"<?xml", b"<!--", b"<!doctype svg")) and b"<svg" in head


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class ImageResolver:
    """Resolve a content entry to an image in our storage.

    Args:
        generator: Generative image service
        storage: Object storage service
        ledger: Durable task ledger
        http_client: Shared client for downloads (owned by the pipeline)
        in_flight: Shared in-flight registry (a private one is created if omitted)
        temp_dir: Scratch directory for downloads and generated files
        storage_url_patterns: URL fragments that mark an image as already stored
        image_options: Size/style/quality for generation requests
    """

    def __init__(
        self,
        generator: IImageGenerator,
        storage: IStorageService,
        ledger: ImageTaskLedger,
        http_client: httpx.AsyncClient,
        in_flight: InFlightRegistry | None = None,
        temp_dir: str | Path = DEFAULT_TEMP_DIR,
        storage_url_patterns: Iterable[str] | None = None,
        image_options: ImageOptions | None = None,
    ) -> None:
        self.generator = generator
        self.storage = storage
        self.ledger = ledger
        self.in_flight = in_flight if in_flight is not None else InFlightRegistry()
        self.temp_dir = Path(temp_dir)
        self.storage_url_patterns = list(
            storage_url_patterns
            if storage_url_patterns is not None
            else DEFAULT_STORAGE_URL_PATTERNS
        )
        self.image_options = image_options or ImageOptions()
        self._http_client = http_client

    async def initialize(self) -> None:
        """Create the temp directory and load the ledger."""
        await asyncio.to_thread(self.temp_dir.mkdir, parents=True, exist_ok=True)
        await self.ledger.initialize()
        logger.info("Image resolver ready (temp dir: %s)", self.temp_dir)

    def is_already_stored(self, entry: ContentEntry) -> bool:
        return is_stored_image(entry, self.storage_url_patterns)

    # =========================================================================
    # Public entry point
    # =========================================================================

    async def resolve(
        self, entry: ContentEntry, generate_if_missing: bool = True
    ) -> ImageProcessingResult:
        """Make sure the entry's image lives in our storage.

        Args:
            entry: Content entry (image_url/image_origin are updated on success)
            generate_if_missing: Generate an image when the entry has no URL

        Returns:
            ImageProcessingResult - never raises
        """
        if not entry.id:
            logger.warning("Cannot resolve image for entry without id (%r)", entry.title)
            return ImageProcessingResult.failure("Content entry has no id")

        try:
            storage_url = await self.ledger.get_storage_url(entry.id)
            if storage_url:
                logger.debug("Ledger hit for %s → %s", entry.id, storage_url)
                entry.mark_stored(storage_url)
                return ImageProcessingResult.reused(storage_url)

            # Listen future me: NO await between the membership check and start() below.
            # That's what makes "one attempt per entry" hold on a single event loop.
            if entry.id in self.in_flight:
                logger.debug("Joining in-flight image attempt for %s", entry.id)
                joined = await self.in_flight.wait(entry.id)
                if joined is not None:
                    return joined

            if self.is_already_stored(entry):
                return await self._record_already_stored(entry)

            if not entry.image_url and not generate_if_missing:
                return ImageProcessingResult.failure(
                    "No image URL and generation not requested"
                )

            attempt = self.in_flight.start(entry.id, self._acquire(entry))
            return await asyncio.shield(attempt)
        except Exception as e:
            logger.exception("Unexpected error resolving image for %s", entry.id)
            await self._safe_fail(entry.id, str(e))
            return ImageProcessingResult.failure(str(e))

    async def _record_already_stored(self, entry: ContentEntry) -> ImageProcessingResult:
        url = entry.image_url or ""
        await self.ledger.create_or_update_task(entry)
        await self.ledger.complete_task(entry.id, url, url)
        entry.image_origin = ImageOrigin.STORED
        logger.debug("Image for %s is already in storage: %s", entry.id, url)
        return ImageProcessingResult.reused(url, image_url=url)

    async def _acquire(self, entry: ContentEntry) -> ImageProcessingResult:
        """The single attempt for an entry (runs as the in-flight task)."""
        try:
            await self.ledger.create_or_update_task(entry)
            if entry.image_url:
                result = await self._store_external(entry, entry.image_url)
            else:
                result = await self._generate_and_store(entry)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.warning(
                "Image acquisition failed for %s [%s]: %s",
                entry.id,
                getattr(e, "reason", None) or classify_error(error),
                error,
            )
            await self._safe_fail(entry.id, error)
            return ImageProcessingResult.failure(error)

        if result.storage_url:
            entry.mark_stored(result.storage_url)
        return result

    # =========================================================================
    # External image: download → verify → upload
    # =========================================================================

    async def _store_external(
        self, entry: ContentEntry, image_url: str, is_generated: bool = False
    ) -> ImageProcessingResult:
        temp_path = self._temp_path_for_url(image_url)
        try:
            await self._download_to(image_url, temp_path)
            storage_url = await self._upload(temp_path, build_image_metadata(entry, image_url))
        finally:
            await self._remove_temp_file(temp_path)

        await self.ledger.complete_task(entry.id, image_url, storage_url)
        logger.info("Stored image for %s → %s", entry.id, storage_url)
        return ImageProcessingResult(
            success=True,
            image_url=image_url,
            storage_url=storage_url,
            is_new=True,
            is_generated=True if is_generated else None,
        )

    async def _download_to(self, url: str, target: Path) -> None:
        try:
            response = await self._http_client.get(url, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ImageDownloadException(
                url,
                FailureReason.NOT_AVAILABLE
                if e.response.status_code == 404
                else FailureReason.HTTP_ERROR,
                f"HTTP {e.response.status_code}",
            ) from e
        except httpx.TimeoutException as e:
            raise ImageDownloadException(url, FailureReason.TIMEOUT, "request timed out") from e
        except httpx.InvalidURL as e:
            raise ImageDownloadException(url, FailureReason.INVALID_URL, str(e)) from e
        except httpx.HTTPError as e:
            raise ImageDownloadException(url, FailureReason.DOWNLOAD_ERROR, str(e)) from e

        data = response.content
        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        await self._verify_image(url, data, content_type)

        await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(target.write_bytes, data)
        logger.debug("Downloaded %s → %s (%d bytes)", url, target, len(data))

    async def _verify_image(self, url: str, data: bytes, content_type: str = "") -> None:
        """Make sure the bytes are an image we can re-host.

        Raster bodies must decode with Pillow (in a thread). SVG and formats
        Pillow has no decoder for are only checked for being non-empty.
        """

        def _verify_sync() -> None:
            with Image.open(BytesIO(data)) as img:
                img.verify()

        if not data:
            raise ImageDownloadException(url, FailureReason.INVALID_IMAGE, "empty response body")
        if content_type in UNDECODABLE_IMAGE_TYPES or _looks_like_svg(data):
            logger.debug("Skipping raster check for %s (%s)", url, content_type or "svg")
            return
        try:
            await asyncio.to_thread(_verify_sync)
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise ImageDownloadException(
                url, FailureReason.INVALID_IMAGE, f"not a valid image ({e})"
            ) from e

    async def _upload(self, path: Path, metadata: ImageMetadata) -> str:
        result = await self.storage.upload_image(str(path), metadata)
        if not result.success or not result.url:
            raise StorageUploadException(result.error or "Failed to upload image to storage")
        return result.url

    # =========================================================================
    # Generation
    # =========================================================================

    async def _generate_and_store(self, entry: ContentEntry) -> ImageProcessingResult:
        prompt = build_image_prompt(entry)
        hint_path = self.temp_dir / f"{_epoch_ms()}-{_safe_filename(entry.id)}.png"
        options = ImageOptions(
            size=self.image_options.size,
            style=self.image_options.style,
            quality=self.image_options.quality,
            local_path=str(hint_path),
        )

        logger.info("Generating image for %s (%r)", entry.id, entry.title)
        local_path: Path | None = None
        # The hint file may exist even when the generator raises, so the finally
        # below has to cover the generate call too.
        try:
            generation = await self.generator.generate_image(prompt, options)

            if generation.generation_handle:
                await self.ledger.update_task_with_id(entry.id, generation.generation_handle)

            local_path = Path(generation.local_path) if generation.local_path else None
            if not generation.success or not (generation.url or local_path):
                raise ImageGenerationException(generation.error or "Failed to generate image")

            if local_path is None:
                # Generator only gave us a URL - treat it like any external image.
                return await self._store_external(entry, generation.url or "", is_generated=True)

            source_url = generation.url or str(local_path)
            storage_url = await self._upload(
                local_path, build_image_metadata(entry, generation.url)
            )
        finally:
            if local_path is not None:
                await self._remove_temp_file(local_path)
            await self._remove_temp_file(hint_path)

        await self.ledger.complete_task(entry.id, source_url, storage_url)
        logger.info("Stored generated image for %s → %s", entry.id, storage_url)
        return ImageProcessingResult(
            success=True,
            image_url=generation.url or storage_url,
            storage_url=storage_url,
            is_new=True,
            is_generated=True,
        )

    # =========================================================================
    # Housekeeping
    # =========================================================================

    def _temp_path_for_url(self, url: str) -> Path:
        basename = PurePosixPath(urlparse(url).path).name
        name = _safe_filename(basename) if basename else DEFAULT_IMAGE_NAME
        return self.temp_dir / f"{_epoch_ms()}-{uuid.uuid4().hex[:8]}-{name}"

    async def _remove_temp_file(self, path: Path) -> None:
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            logger.warning(format_oserror_message(e, "remove temp file", path))

    async def _safe_fail(self, entry_id: str, error: str) -> None:
        # fail_task already swallows save errors; this guards the lookup path too.
        try:
            await self.ledger.fail_task(entry_id, error)
        except Exception:
            logger.exception("Could not record failure for %s", entry_id)

    async def cleanup(self) -> None:
        """Remove everything in the temp directory (errors are logged).

        The ledger snapshot is left alone even if it lives in the same directory.
        """
        ledger_file = self.ledger.file_path.resolve()

        def _empty_dir() -> int:
            if not self.temp_dir.exists():
                return 0
            removed = 0
            for child in self.temp_dir.iterdir():
                if child.resolve() == ledger_file or ledger_file.is_relative_to(child.resolve()):
                    continue
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink(missing_ok=True)
                removed += 1
            return removed

        try:
            removed = await asyncio.to_thread(_empty_dir)
            logger.info("Cleaned up %d temporary image files in %s", removed, self.temp_dir)
        except OSError as e:
            logger.error(format_oserror_message(e, "clean up temp directory", self.temp_dir))
