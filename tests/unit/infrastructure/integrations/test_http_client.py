"""Tests for the pipeline's HTTP client factory."""

import httpx
import pytest

from contentmigrate.config import HttpSettings
from contentmigrate.infrastructure.integrations.http_client import (
    DEFAULT_USER_AGENT,
    build_limits,
    create_http_client,
)


@pytest.fixture
async def make_client():
    clients: list[httpx.AsyncClient] = []

    def _make(settings: HttpSettings | None = None) -> httpx.AsyncClient:
        client = create_http_client(settings)
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.aclose()


class TestCreateHttpClient:
    async def test_settings_flow_into_client(self, make_client):
        client = make_client(HttpSettings(timeout_seconds=7.5, connect_timeout_seconds=2))

        assert client.timeout.read == 7.5
        assert client.timeout.connect == 2
        assert client.follow_redirects is True
        assert client.headers["User-Agent"] == DEFAULT_USER_AGENT
        assert DEFAULT_USER_AGENT.startswith("contentmigrate/")

    async def test_custom_user_agent(self, make_client):
        client = make_client(HttpSettings(user_agent="blog-migrator/2.0"))

        assert client.headers["User-Agent"] == "blog-migrator/2.0"

    async def test_every_call_returns_a_new_client(self, make_client):
        first = make_client()
        second = make_client()

        assert first is not second
        assert not first.is_closed

    async def test_defaults_come_from_environment(self, make_client, monkeypatch):
        monkeypatch.setenv("CONTENTMIGRATE_HTTP_TIMEOUT_SECONDS", "42")

        client = make_client()

        assert client.timeout.read == 42.0


class TestBuildLimits:
    def test_keepalive_capped_by_max_connections(self):
        limits = build_limits(HttpSettings(max_connections=5, max_keepalive_connections=50))

        assert limits.max_connections == 5
        assert limits.max_keepalive_connections == 5

    def test_keepalive_below_cap_is_kept(self):
        limits = build_limits(HttpSettings(max_connections=20, max_keepalive_connections=3))

        assert limits.max_keepalive_connections == 3
