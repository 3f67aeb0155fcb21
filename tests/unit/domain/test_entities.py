"""Tests for ContentEntry and ImageTask."""

import pytest

from contentmigrate.domain.entities import ContentEntry, ImageOrigin, ImageTask, TaskStatus


class TestContentEntry:
    def test_from_dict_accepts_camel_case_image_url(self):
        entry = ContentEntry.from_dict(
            {"id": 7, "title": "Hello", "imageUrl": "https://example.com/a.jpg", "tags": None}
        )

        assert entry.id == "7"
        assert entry.image_url == "https://example.com/a.jpg"
        assert entry.tags == []
        assert entry.image_origin is None

    def test_from_dict_missing_id_is_empty(self):
        assert ContentEntry.from_dict({"title": "No id"}).id == ""

    def test_mark_stored(self):
        entry = ContentEntry(id="a", image_url="https://example.com/a.jpg")

        entry.mark_stored("https://img.example.org/images/a.jpg")

        assert entry.image_url == "https://img.example.org/images/a.jpg"
        assert entry.image_origin is ImageOrigin.STORED
        assert entry.to_dict()["image_origin"] == "stored"

    def test_to_dict_from_dict(self):
        entry = ContentEntry(id="a", title="T", tags=["x"], image_origin=ImageOrigin.EXTERNAL)

        assert ContentEntry.from_dict(entry.to_dict()) == entry


class TestImageTask:
    """State transitions keep storage_url tied to COMPLETED."""

    def test_defaults(self):
        task = ImageTask(entry_id="a", title="T")

        assert task.status is TaskStatus.PENDING
        assert task.attempts == 0
        assert not task.is_completed()

    def test_complete(self):
        task = ImageTask(entry_id="a", title="T")
        task.complete("https://example.com/a.jpg", "https://img.example.org/a.jpg")

        assert task.is_completed()
        assert task.source_url == "https://example.com/a.jpg"
        assert task.error is None

    def test_fail_increments_attempts_and_clears_storage_url(self):
        task = ImageTask(entry_id="a", title="T", storage_url="https://stale")

        task.fail("HTTP 500")
        task.fail("HTTP 502")

        assert task.status is TaskStatus.FAILED
        assert task.attempts == 2
        assert task.error == "HTTP 502"
        assert task.storage_url is None

    def test_start_processing_records_handle(self):
        task = ImageTask(entry_id="a", title="T")
        task.fail("timeout")

        task.start_processing("req_1")

        assert task.status is TaskStatus.PROCESSING
        assert task.generation_handle == "req_1"
        assert task.attempts == 1

    def test_from_dict_fills_defaults(self):
        task = ImageTask.from_dict({"entry_id": "a"})

        assert task.title == "Untitled"
        assert task.status is TaskStatus.PENDING
        assert task.created_at

    def test_from_dict_keeps_values(self):
        task = ImageTask(entry_id="a", title="T")
        task.complete("src", "dst")

        assert ImageTask.from_dict(task.to_dict()) == task

    def test_from_dict_rejects_bad_records(self):
        with pytest.raises(KeyError):
            ImageTask.from_dict({"title": "no id"})
        with pytest.raises(ValueError):
            ImageTask.from_dict({"entry_id": "a", "status": "exploded"})
