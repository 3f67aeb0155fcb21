# Hey future me - this is the on-disk half of the image task ledger!
#
# The ledger keeps everything in RAM and rewrites the WHOLE snapshot on every
# mutation. No partial writes, no append log. A snapshot is small (one record
# per content entry) so a full rewrite costs nothing compared to one image upload.
#
# Writes go to "<name>.<random>.tmp" next to the target and are then moved over it
# with os.replace(). os.replace is atomic on POSIX and Windows as long as both paths
# are on the same filesystem - so a crash mid-write leaves the OLD snapshot intact
# instead of a half-written JSON file.
#
# NOT handled here: two processes writing the same path. Last rename wins, and the
# loser's mutations are gone. Don't point two migrations at one ledger directory.
"""Atomic JSON snapshot persistence."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class SnapshotDecodeError(ValueError):
    """The snapshot file exists but does not contain a JSON object."""


class JsonSnapshotStore:
    """Reads and atomically rewrites one JSON object file.

    Blocking file I/O runs in a worker thread (asyncio.to_thread) so the event
    loop keeps serving downloads while the snapshot is flushed.
    """

    def __init__(self, path: str | Path, indent: int = 2) -> None:
        self.path = Path(path)
        self.indent = indent

    async def ensure_directory(self) -> None:
        await asyncio.to_thread(self.path.parent.mkdir, parents=True, exist_ok=True)

    async def exists(self) -> bool:
        return await asyncio.to_thread(self.path.exists)

    async def load(self) -> dict[str, Any]:
        """Load the snapshot.

        Returns:
            The decoded JSON object

        Raises:
            FileNotFoundError: No snapshot at self.path
            SnapshotDecodeError: Content is not a JSON object
        """
        raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SnapshotDecodeError(f"Corrupt snapshot {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise SnapshotDecodeError(
                f"Snapshot {self.path} must be a JSON object, got {type(data).__name__}"
            )
        return data

    async def save(self, data: dict[str, Any]) -> None:
        """Serialize ``data`` and atomically replace the snapshot file.

        Serialization happens on the caller's side (before the thread hop), so the
        written content is exactly the state at call time.
        """
        payload = json.dumps(data, indent=self.indent, ensure_ascii=False) + "\n"
        await asyncio.to_thread(self._write_atomic, payload)

    def _write_atomic(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
        logger.debug("Snapshot written to %s (%d bytes)", self.path, len(payload))
