"""Tests for OSError message formatting."""

import errno

from contentmigrate.infrastructure.observability.error_formatting import format_oserror_message


class TestFormatOSErrorMessage:
    def test_known_errno_has_description_and_hint(self):
        error = OSError(errno.EACCES, "Permission denied")

        message = format_oserror_message(error, "remove temp file", "/tmp/x.png")

        first_line, hint = message.split("\n")
        assert first_line == (
            "Failed to remove temp file '/tmp/x.png': Permission denied (Errno 13 / EACCES)"
        )
        assert hint.startswith("HINT: ")

    def test_unknown_errno_uses_strerror(self):
        error = OSError(errno.EBUSY, "Device or resource busy")

        message = format_oserror_message(error, "save image task ledger")

        assert message.startswith("Failed to save image task ledger: Device or resource busy")
        assert "HINT: Check system logs" in message

    def test_extra_context(self):
        error = OSError(errno.ENOSPC, "No space left on device")

        message = format_oserror_message(
            error, "write download", "/tmp/a", extra_context={"entry_id": "a", "bytes": 10}
        )

        assert "[entry_id=a, bytes=10]" in message
        assert "No space left on device" in message

    def test_errno_missing(self):
        message = format_oserror_message(OSError("weird"), "clean up temp directory")

        assert "Errno None / UNKNOWN" in message
