"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is stored as an attribute so callers can inspect it without
    # parsing str(exception). Don't raise this directly - use a specific subclass below.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class DuplicateEntityException(DomainException):
    """Raised when trying to register an entity twice."""

    # Used by the in-flight registry: a second generation attempt for the same entry id
    # while the first one is still running is a programming error, not a user error.
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} already exists")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(DomainException):
    """Raised when input data fails validation rules.

    Example:
        raise ValidationException("Content entry is missing an id")
    """

    pass


class ConfigurationException(DomainException):
    """Application misconfiguration.

    Raised when required configuration is missing or invalid.

    Example:
        raise ConfigurationException("Invalid storage configuration: missing bucket_name")
    """

    pass


class ImageDownloadException(DomainException):
    """Downloading an existing image failed.

    Hey future me - reason is one of the url_classification.FailureReason codes
    so logs stay greppable ("http_error", "invalid_image", ...).
    """

    def __init__(self, url: str, reason: str, detail: str | None = None) -> None:
        message = f"Failed to download image from {url}: {detail or reason}"
        super().__init__(message)
        self.url = url
        self.reason = reason


class ImageGenerationException(DomainException):
    """The image generation service declined or errored."""

    pass


class StorageUploadException(DomainException):
    """The storage service rejected an upload."""

    pass


__all__ = [
    "ConfigurationException",
    "DomainException",
    "DuplicateEntityException",
    "ImageDownloadException",
    "ImageGenerationException",
    "StorageUploadException",
    "ValidationException",
]
