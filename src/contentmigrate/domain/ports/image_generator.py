"""Image Generator Port (Interface).

Future me note:
This defines the CONTRACT for the generative image service.
The actual implementation is in infrastructure/integrations/image_generation_client.py

The resolver only ever talks to this protocol, so tests hand in an AsyncMock
and production hands in the OpenAI-compatible httpx client.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class ImageOptions:
    """Options for a single generation request.

    local_path is a HINT: when set, the generator should save the image there
    and report it back as GenerationResult.local_path.
    """

    size: str = "1024x1024"
    style: str = "vivid"
    quality: str = "standard"
    local_path: str | None = None


@dataclass
class GenerationResult:
    """Outcome of a generation request."""

    success: bool
    url: str | None = None
    local_path: str | None = None
    generation_handle: str | None = None  # External task/request id, if the service issues one
    prompt: str | None = None
    error: str | None = None

    @classmethod
    def failure(cls, error: str, prompt: str | None = None) -> GenerationResult:
        return cls(success=False, error=error, prompt=prompt)


class IImageGenerator(Protocol):
    """Generative image service port."""

    async def generate_image(
        self, prompt: str, options: ImageOptions | None = None
    ) -> GenerationResult:
        """Generate one image from a text prompt.

        Must not raise - failures are reported via GenerationResult.success/error.
        """
        ...
