"""Shared fixtures for the image pipeline tests.

Hey future me - nothing in here talks to the network or to a real bucket.
Generators and storage are AsyncMocks against the port protocols, downloads go
through httpx.MockTransport, the ledger lives in tmp_path.
"""

from __future__ import annotations

from collections.abc import Callable
from io import BytesIO
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest
from PIL import Image

from contentmigrate.application.services.images import (
    ImageResolver,
    ImageTaskLedger,
    InFlightRegistry,
)
from contentmigrate.config import get_settings
from contentmigrate.domain.entities import ContentEntry
from contentmigrate.domain.ports import (
    GenerationResult,
    IImageGenerator,
    IStorageService,
    StorageResult,
)

STORAGE_BASE = "https://img.example.org"


def make_png_bytes(size: tuple[int, int] = (8, 8), color: str = "teal") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png_bytes()


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    path = tmp_path / "downloads"
    path.mkdir()
    return path


@pytest.fixture
def ledger_dir(tmp_path: Path) -> Path:
    return tmp_path / "ledger"


@pytest.fixture
async def ledger(ledger_dir: Path) -> ImageTaskLedger:
    task_ledger = ImageTaskLedger(ledger_dir)
    await task_ledger.initialize()
    return task_ledger


@pytest.fixture
def generator() -> AsyncMock:
    mock = AsyncMock(spec=IImageGenerator)
    mock.generate_image.return_value = GenerationResult.failure("generator not configured")
    return mock


@pytest.fixture
def storage() -> AsyncMock:
    mock = AsyncMock(spec=IStorageService)

    async def _upload(image_path: str, metadata=None) -> StorageResult:
        name = Path(image_path).name
        return StorageResult(
            success=True,
            key=f"images/{name}",
            url=f"{STORAGE_BASE}/images/{name}",
            content_type="image/png",
            size=1,
        )

    mock.upload_image.side_effect = _upload
    mock.delete_item.return_value = True
    return mock


@pytest.fixture
def image_handler(png_bytes: bytes) -> Callable[[httpx.Request], httpx.Response]:
    """Default download handler: every GET returns a small PNG."""

    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=png_bytes, headers={"Content-Type": "image/png"})

    return _handler


@pytest.fixture
async def http_client(image_handler):
    async with httpx.AsyncClient(transport=httpx.MockTransport(image_handler)) as client:
        yield client


@pytest.fixture
async def resolver(
    generator: AsyncMock,
    storage: AsyncMock,
    ledger: ImageTaskLedger,
    temp_dir: Path,
    http_client: httpx.AsyncClient,
) -> ImageResolver:
    image_resolver = ImageResolver(
        generator=generator,
        storage=storage,
        ledger=ledger,
        in_flight=InFlightRegistry(),
        temp_dir=temp_dir,
        http_client=http_client,
    )
    await image_resolver.initialize()
    return image_resolver


@pytest.fixture
def make_entry() -> Callable[..., ContentEntry]:
    def _make(entry_id: str = "entry-1", **kwargs) -> ContentEntry:
        defaults = {
            "title": f"Article {entry_id}",
            "category": "Technology",
            "summary": "A deep dive into content pipelines.",
            "tags": ["pipelines", "images"],
        }
        defaults.update(kwargs)
        return ContentEntry(id=entry_id, **defaults)

    return _make
