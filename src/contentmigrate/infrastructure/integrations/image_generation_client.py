"""OpenAI-compatible image generation client.

Hey future me - this talks to POST {base_url}/images/generations, the endpoint shape
OpenAI introduced with DALL-E and that most "OpenAI-compatible" gateways copy.
We ask for response_format=url, so the API hands back a short-lived URL.

When ImageOptions.local_path is set we download that URL right away (the URLs
expire after about an hour, so waiting for the batch to finish is NOT an option).

generation_handle = the x-request-id response header. It's what support asks for
when a generation misbehaves, so the ledger keeps it on the task.

Requests go through the pipeline's shared httpx client. The Authorization header is
set per request on the API call only, never on the image download (that hits a CDN).

Usage:
    client = ImageGenerationClient(settings.generation, http_client)
    result = await client.generate_image("A lighthouse at dawn", ImageOptions())
    if result.success:
        print(result.url)
"""

import asyncio
import logging
from pathlib import Path
from typing import Any

import httpx

from contentmigrate.config.settings import GenerationSettings
from contentmigrate.domain.ports import GenerationResult, ImageOptions

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"


class ImageGenerationClient:
    """IImageGenerator implementation over httpx."""

    def __init__(
        self,
        settings: GenerationSettings,
        http_client: httpx.AsyncClient,
    ) -> None:
        """Initialize client.

        Args:
            settings: API key, base URL, model and timeout
            http_client: Shared client owned by the pipeline (tests inject a MockTransport)
        """
        self.settings = settings
        self._endpoint = f"{settings.base_url.rstrip('/')}/images/generations"
        self._http_client = http_client

    def _build_payload(self, prompt: str, options: ImageOptions) -> dict[str, Any]:
        return {
            "model": self.settings.image_model,
            "prompt": prompt,
            "n": 1,
            "size": options.size,
            "style": options.style,
            "quality": options.quality,
            "response_format": "url",
        }

    async def generate_image(
        self, prompt: str, options: ImageOptions | None = None
    ) -> GenerationResult:
        """Generate one image.

        Args:
            prompt: Text prompt
            options: Size/style/quality and an optional local_path to save the image to

        Returns:
            GenerationResult - failures are reported, never raised
        """
        options = options or ImageOptions()
        if not self.settings.is_configured():
            return GenerationResult.failure("Image generation API key is not configured", prompt)

        client = self._http_client
        try:
            response = await client.post(
                self._endpoint,
                json=self._build_payload(prompt, options),
                headers={"Authorization": f"Bearer {self.settings.api_key}"},
                timeout=self.settings.timeout_seconds,
            )
        except httpx.HTTPError as e:
            logger.warning("Image generation request failed: %s", e)
            return GenerationResult.failure(f"Image generation request failed: {e}", prompt)

        handle = response.headers.get(REQUEST_ID_HEADER)

        if response.is_error:
            error = self._extract_error(response)
            logger.warning(
                "Image generation returned HTTP %d (request %s): %s",
                response.status_code,
                handle,
                error,
            )
            result = GenerationResult.failure(error, prompt)
            result.generation_handle = handle
            return result

        try:
            data = response.json()
            image_url = data["data"][0]["url"]
        except (ValueError, KeyError, IndexError, TypeError):
            image_url = None
        if not image_url:
            result = GenerationResult.failure("No image URL returned from API", prompt)
            result.generation_handle = handle
            return result

        local_path: str | None = None
        if options.local_path:
            try:
                local_path = await self._download(client, image_url, Path(options.local_path))
            except (httpx.HTTPError, OSError) as e:
                logger.warning("Could not download generated image %s: %s", image_url, e)
                # The URL is still good - the resolver will download it itself.
                local_path = None

        logger.debug("Generated image (request %s): %s", handle, image_url)
        return GenerationResult(
            success=True,
            url=image_url,
            local_path=local_path,
            generation_handle=handle,
            prompt=prompt,
        )

    @staticmethod
    def _extract_error(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str):
                return error
        return f"Image generation failed with HTTP {response.status_code}"

    async def _download(self, client: httpx.AsyncClient, url: str, target: Path) -> str:
        response = await client.get(url, follow_redirects=True)
        response.raise_for_status()
        await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
        try:
            await asyncio.to_thread(target.write_bytes, response.content)
        except OSError:
            await asyncio.to_thread(target.unlink, missing_ok=True)
            raise
        return str(target)
