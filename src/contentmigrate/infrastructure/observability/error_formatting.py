"""Human-readable messages for filesystem errors.

The pipeline touches the filesystem in three places: the temp directory for
downloads, the ledger snapshot, and generated files handed over by the image
service. All of them log OSErrors through format_oserror_message().
"""

import errno
from pathlib import Path
from typing import Any

# errno → (description, hint)
ERRNO_MESSAGES = {
    errno.EACCES: (
        "Permission denied",
        "Check that the process user can write to the temp and ledger directories.",
    ),
    errno.EROFS: (
        "Read-only filesystem",
        "Point CONTENTMIGRATE_IMAGES_TEMP_DIR / LEDGER_DIR at a writable location.",
    ),
    errno.ENOSPC: (
        "No space left on device",
        "Disk is full. Run cleanup() on the resolver or free space in the temp directory.",
    ),
    errno.ENOENT: (
        "File or directory not found",
        "The file was already removed or its parent directory does not exist.",
    ),
    errno.EISDIR: (
        "Is a directory",
        "Tried to operate on a directory as a file. Check the configured paths.",
    ),
    errno.EXDEV: (
        "Cross-device link not permitted",
        "The ledger temp file and snapshot must live on the same filesystem.",
    ),
    errno.EMFILE: (
        "Too many open files",
        "Lower CONTENTMIGRATE_IMAGES_CONCURRENCY or raise the ulimit.",
    ),
}


def format_oserror_message(
    e: OSError,
    operation: str,
    path: Path | str | None = None,
    extra_context: dict[str, Any] | None = None,
) -> str:
    """Format OSError with a readable explanation and a hint.

    Args:
        e: The OSError exception
        operation: What was being attempted (e.g., "remove temp file")
        path: The file/directory path involved
        extra_context: Additional key/value context

    Returns:
        Formatted message, e.g.
        "Failed to remove temp file '/tmp/x.png': Permission denied (Errno 13 / EACCES)
        HINT: ..."
    """
    error_code = e.errno
    error_name = errno.errorcode.get(error_code, f"UNKNOWN_{error_code}") if error_code else "UNKNOWN"

    if error_code in ERRNO_MESSAGES:
        description, hint = ERRNO_MESSAGES[error_code]
    else:
        description = e.strerror or str(e)
        hint = "Check system logs and file permissions."

    parts = [f"Failed to {operation}"]
    if path:
        parts.append(f"'{path}'")
    message = " ".join(parts) + f": {description} (Errno {error_code} / {error_name})"

    if extra_context:
        message += " [" + ", ".join(f"{k}={v}" for k, v in extra_context.items()) + "]"

    return f"{message}\nHINT: {hint}"
