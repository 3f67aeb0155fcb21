"""Tests for ImageGenerationClient using httpx.MockTransport."""

import json
from pathlib import Path

import httpx
import pytest

from contentmigrate.config import GenerationSettings
from contentmigrate.domain.ports import ImageOptions
from contentmigrate.infrastructure.integrations.image_generation_client import (
    ImageGenerationClient,
)

API_BASE = "https://ai.example.com/v1"
IMAGE_URL = "https://cdn.ai.example.com/generated/abc.png"


@pytest.fixture
def settings() -> GenerationSettings:
    return GenerationSettings(api_key="sk-test", base_url=API_BASE, image_model="dall-e-3")


def _client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestGenerateImage:
    """Happy paths and failure reporting."""

    async def test_success_downloads_to_local_path(self, settings, tmp_path: Path, png_bytes):
        requests: list[httpx.Request] = []

        def _handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path == "/v1/images/generations":
                return httpx.Response(
                    200,
                    json={"data": [{"url": IMAGE_URL}]},
                    headers={"x-request-id": "req_123"},
                )
            return httpx.Response(200, content=png_bytes)

        target = tmp_path / "out" / "image.png"
        async with _client_for(_handler) as http:
            client = ImageGenerationClient(settings, http_client=http)
            result = await client.generate_image(
                "a lighthouse", ImageOptions(local_path=str(target))
            )

        assert result.success
        assert result.url == IMAGE_URL
        assert result.generation_handle == "req_123"
        assert result.local_path == str(target)
        assert target.read_bytes() == png_bytes

        api_call, download = requests
        assert api_call.headers["Authorization"] == "Bearer sk-test"
        assert json.loads(api_call.content) == {
            "model": "dall-e-3",
            "prompt": "a lighthouse",
            "n": 1,
            "size": "1024x1024",
            "style": "vivid",
            "quality": "standard",
            "response_format": "url",
        }
        assert str(download.url) == IMAGE_URL
        assert "Authorization" not in download.headers

    async def test_success_without_local_path(self, settings):
        calls: list[str] = []

        def _handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            return httpx.Response(200, json={"data": [{"url": IMAGE_URL}]})

        async with _client_for(_handler) as http:
            result = await ImageGenerationClient(settings, http_client=http).generate_image("x")

        assert result.success
        assert result.local_path is None
        assert result.generation_handle is None
        assert calls == ["/v1/images/generations"]

    async def test_api_error_message_is_reported(self, settings):
        def _handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400,
                json={"error": {"message": "Your prompt was rejected"}},
                headers={"x-request-id": "req_bad"},
            )

        async with _client_for(_handler) as http:
            result = await ImageGenerationClient(settings, http_client=http).generate_image("x")

        assert not result.success
        assert result.error == "Your prompt was rejected"
        assert result.generation_handle == "req_bad"

    async def test_api_error_without_body(self, settings):
        async with _client_for(lambda request: httpx.Response(502, text="bad gateway")) as http:
            result = await ImageGenerationClient(settings, http_client=http).generate_image("x")

        assert not result.success
        assert result.error == "Image generation failed with HTTP 502"

    async def test_missing_url_in_response(self, settings):
        async with _client_for(lambda request: httpx.Response(200, json={"data": []})) as http:
            result = await ImageGenerationClient(settings, http_client=http).generate_image("x")

        assert not result.success
        assert result.error == "No image URL returned from API"

    async def test_transport_error(self, settings):
        def _handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client_for(_handler) as http:
            result = await ImageGenerationClient(settings, http_client=http).generate_image("x")

        assert not result.success
        assert "connection refused" in result.error
        assert result.prompt == "x"

    async def test_not_configured(self):
        def _handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with _client_for(_handler) as http:
            client = ImageGenerationClient(GenerationSettings(api_key=""), http_client=http)
            result = await client.generate_image("x")

        assert not result.success
        assert "not configured" in result.error

    async def test_failed_download_still_returns_url(self, settings, tmp_path: Path):
        def _handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/images/generations":
                return httpx.Response(200, json={"data": [{"url": IMAGE_URL}]})
            return httpx.Response(500)

        target = tmp_path / "image.png"
        async with _client_for(_handler) as http:
            result = await ImageGenerationClient(settings, http_client=http).generate_image(
                "x", ImageOptions(local_path=str(target))
            )

        assert result.success
        assert result.url == IMAGE_URL
        assert result.local_path is None
        assert not target.exists()
