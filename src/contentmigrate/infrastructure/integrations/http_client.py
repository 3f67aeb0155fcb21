"""The pipeline's HTTP client, built from HttpSettings.

Hey future me - there is exactly ONE httpx.AsyncClient per ImagePipeline. The
pipeline creates it in build(), hands it to the resolver (image downloads) and to
the generation client (API calls + generated image downloads), and closes it in
close(). Keep-alive connections to the same CDN get reused across a whole batch.

Nobody else should create clients. Tests inject their own MockTransport client
straight into the resolver / generation client instead.

Timeout/limit knobs live in CONTENTMIGRATE_HTTP_*. The generation API overrides
the read timeout per request (GenerationSettings.timeout_seconds) because a
single image can take a minute to render.
"""

import logging

import httpx

from contentmigrate import __version__
from contentmigrate.config.settings import HttpSettings

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"contentmigrate/{__version__} (+image-pipeline)"


def build_timeout(settings: HttpSettings) -> httpx.Timeout:
    return httpx.Timeout(settings.timeout_seconds, connect=settings.connect_timeout_seconds)


def build_limits(settings: HttpSettings) -> httpx.Limits:
    # keepalive is capped by max_connections
    return httpx.Limits(
        max_connections=settings.max_connections,
        max_keepalive_connections=min(
            settings.max_keepalive_connections, settings.max_connections
        ),
    )


def create_http_client(settings: HttpSettings | None = None) -> httpx.AsyncClient:
    """Create the shared client for one pipeline.

    Args:
        settings: Timeouts, limits, HTTP/2 and User-Agent (defaults from env)

    Returns:
        A new httpx.AsyncClient - the caller owns it and must aclose() it
    """
    settings = settings or HttpSettings()
    client = httpx.AsyncClient(
        timeout=build_timeout(settings),
        limits=build_limits(settings),
        http2=settings.http2,
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent or DEFAULT_USER_AGENT},
    )
    logger.debug(
        "HTTP client created (timeout=%.1fs, connect=%.1fs, max_conn=%d, http2=%s)",
        settings.timeout_seconds,
        settings.connect_timeout_seconds,
        settings.max_connections,
        settings.http2,
    )
    return client
