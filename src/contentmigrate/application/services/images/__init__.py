"""Image acquisition services.

Hey future me - the pieces fit together like this:
    ImageResolver  → per-entry decision + work (uses everything below)
    ImageTaskLedger → durable progress per entry (JSON snapshot)
    InFlightRegistry → at most one running attempt per entry
    url_classification → "already stored?" + failure reason codes
"""

from contentmigrate.application.services.images.image_resolver import (
    ImageResolver,
    build_image_metadata,
    build_image_prompt,
)
from contentmigrate.application.services.images.in_flight import InFlightRegistry
from contentmigrate.application.services.images.task_ledger import ImageTaskLedger
from contentmigrate.application.services.images.url_classification import (
    FailureReason,
    classify_error,
    is_storage_url,
    is_stored_image,
    storage_patterns_for,
)

__all__ = [
    "FailureReason",
    "ImageResolver",
    "ImageTaskLedger",
    "InFlightRegistry",
    "build_image_metadata",
    "build_image_prompt",
    "classify_error",
    "is_storage_url",
    "is_stored_image",
    "storage_patterns_for",
]
