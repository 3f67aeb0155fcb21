"""Tests for environment-driven settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from contentmigrate.config import (
    HttpSettings,
    ImageSettings,
    LogSettings,
    Settings,
    StorageSettings,
    get_settings,
)
from contentmigrate.config.settings import DEFAULT_TEMP_DIR, DEFAULT_WORK_DIR


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path: Path):
    # Keep a developer's .env out of the tests.
    monkeypatch.chdir(tmp_path)


class TestDefaults:
    def test_image_defaults(self):
        images = ImageSettings()

        assert images.concurrency == 3
        assert images.max_retries == 2
        assert images.chunk_delay_seconds == 1.0
        assert images.generate_if_missing is True
        assert images.temp_dir == DEFAULT_TEMP_DIR
        assert images.ledger_dir == DEFAULT_WORK_DIR
        assert images.temp_dir != images.ledger_dir
        assert images.storage_url_patterns == [
            "amazonaws.com",
            "cloudflare.com",
            "r2.cloudflarestorage.com",
            "r2.dev",
        ]

    def test_http_defaults(self):
        http = Settings().http

        assert http.timeout_seconds == 30.0
        assert http.connect_timeout_seconds == 10.0
        assert http.max_connections == 20
        assert http.http2 is True
        assert http.user_agent == ""

    def test_storage_not_configured_by_default(self):
        assert not StorageSettings().is_configured()


class TestEnvironment:
    def test_prefixed_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CONTENTMIGRATE_IMAGES_CONCURRENCY", "5")
        monkeypatch.setenv("CONTENTMIGRATE_R2_BUCKET_NAME", "blog-images")
        monkeypatch.setenv("CONTENTMIGRATE_AI_API_KEY", "sk-env")

        settings = Settings()

        assert settings.images.concurrency == 5
        assert settings.storage.bucket_name == "blog-images"
        assert settings.generation.is_configured()

    def test_dotenv_file(self, tmp_path: Path):
        (tmp_path / ".env").write_text("CONTENTMIGRATE_IMAGES_MAX_RETRIES=0\n")

        assert ImageSettings().max_retries == 0

    def test_invalid_values_rejected(self, monkeypatch):
        monkeypatch.setenv("CONTENTMIGRATE_IMAGES_CONCURRENCY", "0")

        with pytest.raises(ValidationError):
            ImageSettings()

    def test_http_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CONTENTMIGRATE_HTTP_TIMEOUT_SECONDS", "60")
        monkeypatch.setenv("CONTENTMIGRATE_HTTP_HTTP2", "false")

        http = Settings().http

        assert http.timeout_seconds == 60.0
        assert http.http2 is False

    def test_http_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            HttpSettings(timeout_seconds=0)

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestLogSettings:
    def test_level_is_normalized(self):
        assert LogSettings(level="debug").level == "DEBUG"

    def test_unknown_level(self):
        with pytest.raises(ValidationError):
            LogSettings(level="chatty")
