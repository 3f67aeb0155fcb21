"""Domain ports - interfaces the application layer depends on."""

from contentmigrate.domain.ports.image_generator import (
    GenerationResult,
    IImageGenerator,
    ImageOptions,
)
from contentmigrate.domain.ports.image_pipeline import (
    BatchImageResult,
    ImageProcessingResult,
)
from contentmigrate.domain.ports.storage_service import (
    ImageMetadata,
    IStorageService,
    StorageResult,
)

__all__ = [
    "BatchImageResult",
    "GenerationResult",
    "IImageGenerator",
    "IStorageService",
    "ImageMetadata",
    "ImageOptions",
    "ImageProcessingResult",
    "StorageResult",
]
