"""Background workers."""

from contentmigrate.application.workers.image_batch_worker import ImageBatchProcessor

__all__ = ["ImageBatchProcessor"]
