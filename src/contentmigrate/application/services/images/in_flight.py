# Hey future me - this is the dedup gate of the image pipeline!
#
# Same idea as the _pending set in an image download queue, but instead of just
# remembering "someone is on it" we keep the asyncio.Task itself. A second caller for
# the same entry awaits THAT task and gets the very same result object back. No
# second generation call, no second upload.
#
# Rules that keep it race-free on one event loop:
# 1. The "in registry" check and start() must run without an await in between.
# 2. Removal happens in a done-callback registered at creation, so the entry is gone
#    before any waiter wakes up, whatever the outcome (success, failure, cancel).
# 3. Waiters shield the task: cancelling ONE caller must not kill the shared attempt.
#
# Process-local only. Two processes on the same ledger WILL both work on an entry.
"""In-flight registry for per-entry image acquisition attempts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from contentmigrate.domain.exceptions import DuplicateEntityException
from contentmigrate.domain.ports import ImageProcessingResult

logger = logging.getLogger(__name__)


class InFlightRegistry:
    """Map of entry id → running acquisition task."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[ImageProcessingResult]] = {}

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def get(self, entry_id: str) -> asyncio.Task[ImageProcessingResult] | None:
        return self._tasks.get(entry_id)

    def start(
        self,
        entry_id: str,
        coro: Coroutine[Any, Any, ImageProcessingResult],
    ) -> asyncio.Task[ImageProcessingResult]:
        """Schedule ``coro`` as the single in-flight attempt for ``entry_id``.

        Raises:
            DuplicateEntityException: An attempt for this entry is already running
        """
        if entry_id in self._tasks:
            coro.close()
            raise DuplicateEntityException("InFlightAttempt", entry_id)

        task = asyncio.create_task(coro, name=f"image-acquire-{entry_id}")
        self._tasks[entry_id] = task

        def _remove(finished: asyncio.Task[ImageProcessingResult]) -> None:
            # Only drop OUR task - never a newer attempt that reused the id.
            if self._tasks.get(entry_id) is finished:
                del self._tasks[entry_id]

        task.add_done_callback(_remove)
        logger.debug("In-flight attempt registered for %s", entry_id)
        return task

    async def wait(self, entry_id: str) -> ImageProcessingResult | None:
        """Await the running attempt for ``entry_id``.

        Returns None when nothing is in flight. The shared task is shielded, so
        cancelling this waiter leaves the attempt running for everyone else.
        """
        task = self._tasks.get(entry_id)
        if task is None:
            return None
        return await asyncio.shield(task)
