# Hey future me - Image Batch Worker runs the resolver over a WHOLE migration batch!
#
# Unlike a permanent queue worker this one is called once per batch and returns when
# every entry has a final outcome. The flow per process_all():
#
#   1. classify   → skipped (no id) / already stored / already in flight / to process
#   2. join       → await attempts somebody else started (gather, failure tolerant)
#   3. chunk      → `concurrency` entries at a time, chunk_delay between chunks
#   4. retry      → entries that failed THIS round run again, max_retries extra rounds
#
# The chunk delay is a crude rate limit for the generation API. It is NOT applied
# before the very first chunk of a run, so a one-chunk batch never sleeps.
#
# One failing entry never aborts the batch - the resolver doesn't raise, and gather()
# runs with return_exceptions=True as a second safety net.
"""Image Batch Worker - resolves images for many entries with bounded concurrency."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from contentmigrate.domain.ports import BatchImageResult, ImageProcessingResult
from contentmigrate.infrastructure.observability.logging import set_correlation_id

if TYPE_CHECKING:
    from collections.abc import Sequence

    from contentmigrate.application.services.images.image_resolver import ImageResolver
    from contentmigrate.domain.entities import ContentEntry

logger = logging.getLogger(__name__)


class ImageBatchProcessor:
    """Batch coordinator on top of ImageResolver.

    Usage:
        processor = ImageBatchProcessor(resolver, concurrency=3)
        result = await processor.process_all(entries)
        for entry_id in result.failed:
            print(entry_id, result.results[entry_id].error)
    """

    def __init__(
        self,
        resolver: ImageResolver,
        concurrency: int = 3,
        max_retries: int = 2,
        chunk_delay_seconds: float = 1.0,
    ) -> None:
        """Initialize processor.

        Args:
            resolver: Resolver doing the per-entry work
            concurrency: Entries processed in parallel per chunk (default: 3)
            max_retries: Extra rounds for entries that failed (default: 2)
            chunk_delay_seconds: Pause before every chunk except the first (default: 1.0)
        """
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        self._resolver = resolver
        self._concurrency = concurrency
        self._max_retries = max_retries
        self._chunk_delay = chunk_delay_seconds
        self._running = False
        self._chunks_started = 0
        self._stats: dict[str, int] = {
            "batches": 0,
            "processed": 0,
            "success": 0,
            "failed": 0,
            "retries": 0,
        }
        self._last_run_at: datetime | None = None

    async def process_all(
        self,
        entries: Sequence[ContentEntry],
        generate_if_missing: bool = True,
    ) -> BatchImageResult:
        """Resolve images for every entry.

        Args:
            entries: Entries to process (image_url/image_origin are updated on success)
            generate_if_missing: Generate images for entries without a URL

        Returns:
            BatchImageResult keyed by entry id
        """
        correlation_id = set_correlation_id()
        self._running = True
        self._chunks_started = 0
        self._last_run_at = datetime.now(UTC)
        self._stats["batches"] += 1
        result = BatchImageResult()

        logger.info(
            "Starting image batch %s: %d entries (concurrency=%d, max_retries=%d)",
            correlation_id,
            len(entries),
            self._concurrency,
            self._max_retries,
        )

        try:
            to_process, in_progress = self._classify(entries, result)

            if in_progress:
                logger.info("Waiting for %d image attempts already in flight", len(in_progress))
                outcomes = await asyncio.gather(
                    *(self._resolver.in_flight.wait(entry.id) for entry in in_progress),
                    return_exceptions=True,
                )
                for entry, outcome in zip(in_progress, outcomes, strict=True):
                    if outcome is None:
                        # Settled between classify and join without a result for us.
                        to_process.append(entry)
                    else:
                        self._record(result, entry, outcome)

            pending = to_process
            while pending:
                result.rounds += 1
                if result.rounds > 1:
                    self._stats["retries"] += len(pending)
                    logger.info(
                        "Retry round %d for %d failed entries", result.rounds - 1, len(pending)
                    )

                failed = await self._run_round(pending, generate_if_missing, result)
                if not failed or result.rounds > self._max_retries:
                    break
                pending = failed
        finally:
            self._running = False

        self._stats["processed"] += result.total_processed
        self._stats["success"] += len(result.successful)
        self._stats["failed"] += len(result.failed)

        summary = result.summary()
        logger.info(
            "Image batch %s done: %d processed, %d successful, %d failed, %d skipped (%d rounds)",
            correlation_id,
            summary["processed"],
            summary["successful"],
            summary["failed"],
            summary["skipped"],
            summary["rounds"],
        )
        return result

    def _classify(
        self, entries: Sequence[ContentEntry], result: BatchImageResult
    ) -> tuple[list[ContentEntry], list[ContentEntry]]:
        to_process: list[ContentEntry] = []
        in_progress: list[ContentEntry] = []

        for index, entry in enumerate(entries):
            if not entry.id:
                logger.warning("Skipping entry at position %d without id (%r)", index, entry.title)
                result.skipped.append(index)
                continue

            if self._resolver.is_already_stored(entry):
                storage_url = entry.image_url or ""
                entry.mark_stored(storage_url)
                result.record(entry.id, ImageProcessingResult.reused(storage_url))
                continue

            if entry.id in self._resolver.in_flight:
                in_progress.append(entry)
            else:
                to_process.append(entry)

        return to_process, in_progress

    async def _run_round(
        self,
        entries: list[ContentEntry],
        generate_if_missing: bool,
        result: BatchImageResult,
    ) -> list[ContentEntry]:
        """Process one round in chunks. Returns the entries that failed.

        Every failed entry OBJECT is returned, also when several share an id, so a
        later success updates all of them.
        """
        failed: list[ContentEntry] = []

        for start in range(0, len(entries), self._concurrency):
            chunk = entries[start : start + self._concurrency]

            if self._chunks_started > 0 and self._chunk_delay > 0:
                await asyncio.sleep(self._chunk_delay)
            self._chunks_started += 1

            outcomes = await asyncio.gather(
                *(self._resolver.resolve(entry, generate_if_missing) for entry in chunk),
                return_exceptions=True,
            )
            for entry, outcome in zip(chunk, outcomes, strict=True):
                success = self._record(result, entry, outcome)
                if not success:
                    failed.append(entry)

        return failed

    def _record(
        self,
        result: BatchImageResult,
        entry: ContentEntry,
        outcome: ImageProcessingResult | BaseException,
    ) -> bool:
        if isinstance(outcome, BaseException):
            logger.error("Image processing raised for %s: %s", entry.id, outcome)
            outcome = ImageProcessingResult.failure(str(outcome) or outcome.__class__.__name__)

        if outcome.success and outcome.storage_url:
            entry.mark_stored(outcome.storage_url)
        elif not outcome.success:
            logger.warning("Image processing failed for %s: %s", entry.id, outcome.error)

        result.record(entry.id, outcome)
        return outcome.success

    def get_status(self) -> dict[str, Any]:
        """Processor status for monitoring.

        Returns:
            Dict with running state, config and cumulative stats
        """
        return {
            "running": self._running,
            "concurrency": self._concurrency,
            "max_retries": self._max_retries,
            "chunk_delay_seconds": self._chunk_delay,
            "last_run_at": self._last_run_at.isoformat() if self._last_run_at else None,
            "in_flight": len(self._resolver.in_flight),
            **self._stats,
        }

    @property
    def is_running(self) -> bool:
        return self._running
