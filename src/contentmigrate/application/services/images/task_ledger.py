# Hey future me - Image Task Ledger = the crash-resume memory of the image pipeline!
#
# One ImageTask per content entry, kept in RAM and mirrored to a JSON snapshot after
# EVERY mutation. If the migration dies halfway, the next run loads the snapshot and
# the resolver short-circuits every entry that already has a storage_url. No second
# upload, no second (paid!) generation.
#
# Flow:
#   ImageResolver.resolve(entry)
#       ├─► ledger.get_storage_url(entry.id)       (hit → done)
#       ├─► ledger.create_or_update_task(entry)    (pending)
#       ├─► ledger.update_task_with_id(id, handle) (processing)
#       └─► ledger.complete_task(...) / ledger.fail_task(...)
#
# Save failures are LOGGED, never raised. The in-memory state stays authoritative for
# this run; the worst case is that a crash redoes some work.
"""Durable per-entry image task ledger."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from contentmigrate.domain.entities import ImageTask, TaskStatus
from contentmigrate.infrastructure.observability.error_formatting import (
    format_oserror_message,
)
from contentmigrate.infrastructure.persistence.snapshot_store import (
    JsonSnapshotStore,
    SnapshotDecodeError,
)

if TYPE_CHECKING:
    from contentmigrate.domain.entities import ContentEntry

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_FILE_NAME = "image-tasks.json"


class ImageTaskLedger:
    """Tracks the image acquisition state of every entry.

    All methods are async and lazily initialize the ledger on first use, so
    callers never have to remember to call initialize() themselves.
    """

    def __init__(
        self,
        storage_dir: str | Path,
        file_name: str = DEFAULT_LEDGER_FILE_NAME,
    ) -> None:
        self.storage_dir = Path(storage_dir)
        self._store = JsonSnapshotStore(self.storage_dir / file_name)
        self._tasks: dict[str, ImageTask] = {}
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._save_lock = asyncio.Lock()

    @property
    def file_path(self) -> Path:
        return self._store.path

    async def initialize(self) -> None:
        """Load the snapshot, or create an empty one.

        Any I/O or decode problem degrades to an empty ledger (with a log line)
        instead of failing the migration.
        """
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return
            try:
                await self._store.ensure_directory()
                if await self._store.exists():
                    self._tasks = self._parse_snapshot(await self._store.load())
                    logger.info(
                        "Loaded %d image tasks from %s", len(self._tasks), self.file_path
                    )
                else:
                    self._tasks = {}
                    await self._store.save({})
                    logger.info("Created new image task ledger at %s", self.file_path)
            except SnapshotDecodeError as e:
                logger.warning("%s - starting with an empty ledger", e)
                self._tasks = {}
            except OSError as e:
                logger.error(
                    format_oserror_message(e, "initialize image task ledger", self.file_path)
                )
                self._tasks = {}
            self._initialized = True

    def _parse_snapshot(self, data: dict[str, Any]) -> dict[str, ImageTask]:
        tasks: dict[str, ImageTask] = {}
        for key, record in data.items():
            if not isinstance(record, dict):
                logger.warning("Skipping malformed ledger record %r", key)
                continue
            try:
                task = ImageTask.from_dict({"entry_id": key, **record})
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed ledger record %r: %s", key, e)
                continue
            tasks[task.entry_id] = task
        return tasks

    async def _save(self) -> None:
        # Serialize INSIDE the lock: whoever gets the lock last writes the newest state,
        # so an older snapshot can never land on top of a newer one.
        async with self._save_lock:
            snapshot = {entry_id: task.to_dict() for entry_id, task in self._tasks.items()}
            try:
                await self._store.save(snapshot)
            except OSError as e:
                logger.error(format_oserror_message(e, "save image task ledger", self.file_path))
            except (TypeError, ValueError) as e:
                logger.error("Failed to serialize image task ledger: %s", e)

    # =========================================================================
    # Mutators
    # =========================================================================

    async def create_or_update_task(self, entry: ContentEntry) -> ImageTask:
        """Create a pending task for the entry, or refresh an existing one.

        A completed task with a storage URL is returned untouched (no write).
        """
        await self.initialize()

        existing = self._tasks.get(entry.id)
        if existing is not None and existing.is_completed():
            return existing

        if existing is None:
            task = ImageTask(entry_id=entry.id, title=entry.title or "Untitled")
            self._tasks[entry.id] = task
        else:
            task = existing
            task.title = entry.title or task.title
            task.touch()

        await self._save()
        return task

    async def update_task_with_id(self, entry_id: str, generation_handle: str) -> None:
        """Record the generation service's handle and move the task to PROCESSING."""
        await self.initialize()
        task = self._tasks.get(entry_id)
        if task is None:
            logger.debug("update_task_with_id: no task for %s", entry_id)
            return
        task.start_processing(generation_handle)
        await self._save()

    async def complete_task(self, entry_id: str, source_url: str, storage_url: str) -> None:
        await self.initialize()
        task = self._tasks.get(entry_id)
        if task is None:
            logger.debug("complete_task: no task for %s", entry_id)
            return
        task.complete(source_url, storage_url)
        await self._save()
        logger.debug("Image task %s completed → %s", entry_id, storage_url)

    async def fail_task(self, entry_id: str, error_message: str) -> None:
        await self.initialize()
        task = self._tasks.get(entry_id)
        if task is None:
            logger.debug("fail_task: no task for %s", entry_id)
            return
        task.fail(error_message)
        await self._save()
        logger.debug(
            "Image task %s failed (attempt %d): %s", entry_id, task.attempts, error_message
        )

    async def clear_all_tasks(self) -> None:
        await self.initialize()
        self._tasks = {}
        await self._save()
        logger.info("Cleared all image tasks in %s", self.file_path)

    # =========================================================================
    # Accessors
    # =========================================================================

    async def get_task(self, entry_id: str) -> ImageTask | None:
        await self.initialize()
        return self._tasks.get(entry_id)

    async def has_completed_task(self, entry_id: str) -> bool:
        await self.initialize()
        task = self._tasks.get(entry_id)
        return task is not None and task.is_completed()

    async def get_tasks_by_status(self, status: TaskStatus) -> list[ImageTask]:
        await self.initialize()
        return [task for task in self._tasks.values() if task.status == status]

    async def get_storage_url(self, entry_id: str) -> str | None:
        """Storage URL of a completed task, None otherwise."""
        await self.initialize()
        task = self._tasks.get(entry_id)
        if task is None or not task.is_completed():
            return None
        return task.storage_url

    async def get_all_tasks(self) -> list[ImageTask]:
        await self.initialize()
        return list(self._tasks.values())

    async def get_stats(self) -> dict[str, int]:
        """Number of tasks per status, plus the total."""
        await self.initialize()
        stats = {status.value: 0 for status in TaskStatus}
        for task in self._tasks.values():
            stats[task.status.value] += 1
        stats["total"] = len(self._tasks)
        return stats
