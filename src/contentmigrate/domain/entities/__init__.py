"""Domain entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string (the ledger stores strings)."""
    return datetime.now(UTC).isoformat()


# Hey future me - ImageOrigin is the explicit provenance tag for ContentEntry.image_url!
# STORED is set by the pipeline the moment a URL comes back from the storage service.
# EXTERNAL means "somebody else hosts it, download + re-upload". None = unknown, in which
# case url_classification falls back to substring matching on provider domains.
class ImageOrigin(str, Enum):
    """Where an entry's image URL points to."""

    EXTERNAL = "external"
    STORED = "stored"


@dataclass
class ContentEntry:
    """A unit of content that needs a representative image.

    The entry is owned by the migration workflow; the image pipeline only reads
    it and mutates ``image_url``/``image_origin`` on success.
    """

    id: str
    title: str = ""
    category: str = ""
    summary: str | None = None
    tags: list[str] = field(default_factory=list)
    image_url: str | None = None
    image_origin: ImageOrigin | None = None

    def mark_stored(self, storage_url: str) -> None:
        """Point the entry at its final storage URL."""
        self.image_url = storage_url
        self.image_origin = ImageOrigin.STORED

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentEntry:
        """Build an entry from a loosely shaped JSON record.

        Accepts both snake_case and the camelCase ``imageUrl`` used by exports
        of the source store.
        """
        origin = data.get("image_origin")
        return cls(
            id=str(data.get("id") or ""),
            title=data.get("title") or "",
            category=data.get("category") or "",
            summary=data.get("summary"),
            tags=list(data.get("tags") or []),
            image_url=data.get("image_url") or data.get("imageUrl"),
            image_origin=ImageOrigin(origin) if origin else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "summary": self.summary,
            "tags": list(self.tags),
            "image_url": self.image_url,
            "image_origin": self.image_origin.value if self.image_origin else None,
        }


# Hey future me, the task state machine is:
#   PENDING → PROCESSING → COMPLETED
#   PENDING/PROCESSING → FAILED (attempts += 1)
#   FAILED → PROCESSING (retry, same transition as from PENDING)
# COMPLETED is terminal for normal operation. The ledger is the ONLY writer of these
# records - use its methods, don't poke status directly.
class TaskStatus(str, Enum):
    """Status of an image acquisition task."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ImageTask:
    """Persisted record of one entry's image acquisition progress.

    Invariant: ``storage_url`` is set if and only if ``status`` is COMPLETED.
    ``attempts`` counts failed terminal outcomes and never decreases.
    """

    entry_id: str
    title: str
    status: TaskStatus = TaskStatus.PENDING
    generation_handle: str | None = None
    source_url: str | None = None
    storage_url: str | None = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    attempts: int = 0
    error: str | None = None

    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED and bool(self.storage_url)

    def touch(self) -> None:
        self.updated_at = utc_now_iso()

    def start_processing(self, generation_handle: str) -> None:
        """Record the generation service's handle and enter PROCESSING."""
        self.generation_handle = generation_handle
        self.status = TaskStatus.PROCESSING
        self.storage_url = None
        self.touch()

    def complete(self, source_url: str, storage_url: str) -> None:
        self.status = TaskStatus.COMPLETED
        self.source_url = source_url
        self.storage_url = storage_url
        self.error = None
        self.touch()

    def fail(self, error_message: str) -> None:
        self.status = TaskStatus.FAILED
        self.error = error_message
        self.storage_url = None
        self.attempts += 1
        self.touch()

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "title": self.title,
            "status": self.status.value,
            "generation_handle": self.generation_handle,
            "source_url": self.source_url,
            "storage_url": self.storage_url,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "attempts": self.attempts,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImageTask:
        """Rebuild a task from its snapshot record.

        Raises:
            KeyError: entry_id is missing
            ValueError: status is not a known TaskStatus
        """
        now = utc_now_iso()
        return cls(
            entry_id=str(data["entry_id"]),
            title=data.get("title") or "Untitled",
            status=TaskStatus(data.get("status", TaskStatus.PENDING.value)),
            generation_handle=data.get("generation_handle"),
            source_url=data.get("source_url"),
            storage_url=data.get("storage_url"),
            created_at=data.get("created_at") or now,
            updated_at=data.get("updated_at") or now,
            attempts=int(data.get("attempts", 0)),
            error=data.get("error"),
        )


__all__ = [
    "ContentEntry",
    "ImageOrigin",
    "ImageTask",
    "TaskStatus",
    "utc_now_iso",
]
