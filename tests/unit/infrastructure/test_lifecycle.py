"""Tests for ImagePipeline wiring and shutdown."""

from pathlib import Path

import pytest

from contentmigrate.config import (
    GenerationSettings,
    HttpSettings,
    ImageSettings,
    Settings,
    StorageSettings,
)
from contentmigrate.domain.exceptions import ConfigurationException
from contentmigrate.infrastructure.integrations.image_generation_client import (
    ImageGenerationClient,
)
from contentmigrate.infrastructure.integrations.r2_storage_client import R2StorageClient
from contentmigrate.infrastructure.lifecycle import ImagePipeline


def _settings(tmp_path: Path, **storage) -> Settings:
    storage_values = {
        "account_id": "acc123",
        "access_key_id": "key",
        "secret_access_key": "secret",
        "bucket_name": "blog-images",
        "public_url": "https://img.example.org",
    }
    storage_values.update(storage)
    return Settings(
        images=ImageSettings(
            temp_dir=tmp_path / "downloads",
            ledger_dir=tmp_path / "ledger",
            concurrency=4,
            max_retries=1,
            chunk_delay_seconds=0.0,
            image_size="512x512",
        ),
        generation=GenerationSettings(api_key="sk-test"),
        storage=StorageSettings(**storage_values),
    )


@pytest.fixture
def boto_client(mocker):
    return mocker.patch(
        "contentmigrate.infrastructure.integrations.r2_storage_client.boto3.client"
    )


class TestBuild:
    async def test_wires_components_from_settings(self, tmp_path: Path, boto_client):
        pipeline = ImagePipeline.build(_settings(tmp_path))

        assert pipeline.ledger.file_path == tmp_path / "ledger" / "image-tasks.json"
        assert isinstance(pipeline.resolver.generator, ImageGenerationClient)
        assert isinstance(pipeline.resolver.storage, R2StorageClient)
        assert pipeline.resolver.temp_dir == tmp_path / "downloads"
        assert pipeline.resolver.image_options.size == "512x512"
        status = pipeline.processor.get_status()
        assert status["concurrency"] == 4
        assert status["max_retries"] == 1
        assert "img.example.org" in pipeline.resolver.storage_url_patterns
        assert "amazonaws.com" in pipeline.resolver.storage_url_patterns
        boto_client.assert_called_once()
        await pipeline.close()

    async def test_one_http_client_shared_by_downloads_and_generation(
        self, tmp_path: Path, boto_client
    ):
        settings = _settings(tmp_path).model_copy(
            update={"http": HttpSettings(timeout_seconds=12.5)}
        )

        pipeline = ImagePipeline.build(settings)

        assert pipeline.http_client.timeout.read == 12.5
        assert pipeline.resolver._http_client is pipeline.http_client
        assert pipeline.resolver.generator._http_client is pipeline.http_client
        await pipeline.close()

    async def test_overrides_skip_client_construction(
        self, tmp_path: Path, boto_client, generator, storage
    ):
        pipeline = ImagePipeline.build(
            _settings(tmp_path, bucket_name=""), generator=generator, storage=storage
        )

        assert pipeline.resolver.generator is generator
        assert pipeline.resolver.storage is storage
        boto_client.assert_not_called()
        await pipeline.close()

    def test_unconfigured_storage_fails(self, tmp_path: Path, boto_client, mocker):
        create = mocker.patch("contentmigrate.infrastructure.lifecycle.create_http_client")

        with pytest.raises(ConfigurationException):
            ImagePipeline.build(_settings(tmp_path, bucket_name=""))

        # No client to leak when wiring fails early
        create.assert_not_called()


class TestLifecycle:
    async def test_context_manager_initializes_and_cleans_up(
        self, tmp_path: Path, generator, storage
    ):
        pipeline = ImagePipeline.build(_settings(tmp_path), generator=generator, storage=storage)
        (tmp_path / "downloads").mkdir()
        leftover = tmp_path / "downloads" / "stale.png"
        leftover.write_bytes(b"x")

        async with pipeline as running:
            assert running is pipeline
            assert (await running.ledger.get_stats())["total"] == 0
            assert not running.http_client.is_closed

        assert not leftover.exists()
        assert pipeline.http_client.is_closed

    async def test_close_continues_after_cleanup_error(
        self, tmp_path: Path, generator, storage, mocker
    ):
        pipeline = ImagePipeline.build(_settings(tmp_path), generator=generator, storage=storage)
        mocker.patch.object(pipeline.resolver, "cleanup", side_effect=RuntimeError("boom"))

        await pipeline.close()

        assert pipeline.http_client.is_closed
