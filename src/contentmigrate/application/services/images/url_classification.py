# Hey future me - URL + error heuristics for the image pipeline!
#
# Two jobs:
# 1. "Is this URL already in our storage?" → skip download/upload entirely.
#    Prefer entry.image_origin == STORED (set by the pipeline itself). Only when the
#    origin is unknown do we fall back to substring matching on provider domains.
# 2. "Why did this fail?" → short reason codes for log lines and the CLI summary.
#
# The substring check is dumb: "cloudflare.com" also matches images hosted by OTHER
# people behind Cloudflare. Configure storage_url_patterns if that bites you.
# R2 has two hosts of its own: the bucket endpoint (*.r2.cloudflarestorage.com, used
# for presigned and fallback URLs) and the public dev domain (*.r2.dev).
"""URL classification and failure reason helpers."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from contentmigrate.domain.entities import ImageOrigin

if TYPE_CHECKING:
    from contentmigrate.config.settings import Settings
    from contentmigrate.domain.entities import ContentEntry

DEFAULT_STORAGE_URL_PATTERNS: tuple[str, ...] = (
    "amazonaws.com",
    "cloudflare.com",
    "r2.cloudflarestorage.com",
    "r2.dev",
)


class FailureReason:
    """Standard failure reason codes.

    Hey future me - these show up in logs and in the CLI summary, keep them stable.
    """

    DOWNLOAD_ERROR = "download_error"
    NOT_AVAILABLE = "not_available"
    INVALID_URL = "invalid_url"
    INVALID_IMAGE = "invalid_image"
    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"
    GENERATION_ERROR = "generation_error"
    UPLOAD_ERROR = "upload_error"
    UNKNOWN = "unknown"


def is_storage_url(url: str | None, patterns: Iterable[str] = DEFAULT_STORAGE_URL_PATTERNS) -> bool:
    """True when the URL contains one of the storage provider fragments."""
    if not url:
        return False
    url_lower = url.lower()
    return any(pattern and pattern.lower() in url_lower for pattern in patterns)


def is_stored_image(
    entry: ContentEntry, patterns: Iterable[str] = DEFAULT_STORAGE_URL_PATTERNS
) -> bool:
    """Whether the entry's image already lives in our storage.

    Args:
        entry: Content entry to check
        patterns: URL fragments that identify the storage provider

    Returns:
        True if image_origin says STORED, or the URL matches a pattern
    """
    if not entry.image_url:
        return False
    if entry.image_origin == ImageOrigin.STORED:
        return True
    return is_storage_url(entry.image_url, patterns)


def storage_patterns_for(settings: Settings) -> list[str]:
    """Configured patterns plus the host of the storage public URL (if any)."""
    patterns = list(settings.images.storage_url_patterns)
    public_url = settings.storage.public_url
    if public_url:
        host = urlparse(public_url if "//" in public_url else f"//{public_url}").netloc
        if host and host not in patterns:
            patterns.append(host)
    return patterns


def classify_error(error_message: str | None) -> str:
    """Classify an error message into a FailureReason code.

    Args:
        error_message: Error text from a failed attempt

    Returns:
        One of the FailureReason constants
    """
    if not error_message:
        return FailureReason.UNKNOWN

    error_lower = error_message.lower()

    if "404" in error_lower or "not found" in error_lower:
        return FailureReason.NOT_AVAILABLE
    elif "timeout" in error_lower or "timed out" in error_lower:
        return FailureReason.TIMEOUT
    elif "invalid url" in error_lower or ("url" in error_lower and "invalid" in error_lower):
        return FailureReason.INVALID_URL
    elif "not a valid image" in error_lower or "cannot identify image" in error_lower:
        return FailureReason.INVALID_IMAGE
    elif "generat" in error_lower:
        return FailureReason.GENERATION_ERROR
    elif "upload" in error_lower or "storage" in error_lower:
        return FailureReason.UPLOAD_ERROR
    elif any(code in error_lower for code in ["500", "502", "503", "http"]):
        return FailureReason.HTTP_ERROR
    return FailureReason.DOWNLOAD_ERROR

