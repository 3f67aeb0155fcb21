"""Image pipeline result DTOs.

These are what the resolver and batch processor hand back to the migration
workflow. Kept in the domain layer so callers don't import application code
just to read a result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from contentmigrate.domain.entities import ContentEntry


@dataclass
class ImageProcessingResult:
    """Outcome of resolving one entry's image.

    Future me note:
    is_new=False means we reused something already in storage (ledger hit or
    storage URL on the entry). is_generated=True means the image came from the
    generation service, whether it was handed over as a file or as a URL.
    """

    success: bool
    image_url: str | None = None
    storage_url: str | None = None
    is_new: bool | None = None
    is_generated: bool | None = None
    error: str | None = None

    @classmethod
    def failure(cls, error: str) -> ImageProcessingResult:
        return cls(success=False, error=error)

    @classmethod
    def reused(cls, storage_url: str, image_url: str | None = None) -> ImageProcessingResult:
        return cls(
            success=True,
            image_url=image_url or storage_url,
            storage_url=storage_url,
            is_new=False,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize without the unset optional fields."""
        data: dict[str, Any] = {"success": self.success}
        for key in ("image_url", "storage_url", "is_new", "is_generated", "error"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class BatchImageResult:
    """Aggregated outcome of a batch run.

    Hey future me - results is keyed by entry id and holds the LATEST outcome
    per entry. Retries overwrite earlier failures, so a retried-then-successful
    entry shows up exactly once, as a success. Use ordered() if you need the
    caller's input order back.
    """

    results: dict[str, ImageProcessingResult] = field(default_factory=dict)
    successful: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)  # Input positions of entries without id
    rounds: int = 0

    @property
    def total_processed(self) -> int:
        return len(self.results)

    def record(self, entry_id: str, result: ImageProcessingResult) -> None:
        self.results[entry_id] = result
        if result.success:
            if entry_id in self.failed:
                self.failed.remove(entry_id)
            if entry_id not in self.successful:
                self.successful.append(entry_id)
        elif entry_id not in self.successful and entry_id not in self.failed:
            self.failed.append(entry_id)

    def ordered(self, entries: list[ContentEntry]) -> list[ImageProcessingResult | None]:
        """Results in the order of ``entries`` (None for skipped entries)."""
        return [self.results.get(entry.id) if entry.id else None for entry in entries]

    def summary(self) -> dict[str, int]:
        return {
            "processed": self.total_processed,
            "successful": len(self.successful),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "rounds": self.rounds,
        }
