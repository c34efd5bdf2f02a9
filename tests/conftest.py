"""Pytest configuration and fixtures."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from llms_forge.config import settings


def make_response(url, status_code=200, text="", headers=None):
    """Build a MagicMock standing in for ``httpx.Response``."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    resp.url = url
    resp.headers = headers or {}
    return resp


class HttpRouter:
    """Maps exact URLs to canned responses; anything unrouted is a 404.

    Routes apply to both GET and HEAD. A route may also be an exception
    instance, which is raised from the client call.
    """

    def __init__(self):
        self.routes: dict = {}
        self.calls: list[tuple[str, str]] = []
        self.delay = 0.0

    def add(self, url, text="", status_code=200, headers=None, final_url=None):
        self.routes[url] = make_response(final_url or url, status_code, text, headers)

    def fail(self, url, exc):
        self.routes[url] = exc

    def requested(self, method=None):
        return [u for m, u in self.calls if method is None or m == method]

    def handler(self, method):
        async def _handle(url, **kwargs):
            self.calls.append((method, url))
            if self.delay:
                await asyncio.sleep(self.delay)
            entry = self.routes.get(url)
            if entry is None:
                return make_response(url, 404, "Not Found")
            if isinstance(entry, BaseException):
                raise entry
            return entry

        return _handle


@pytest.fixture
def sample_url():
    """Sample URL for testing."""
    return "https://example.com"


@pytest.fixture
def llms_text():
    """Minimal llms.txt body that passes the content validator."""
    return "# Title\n\nSome docs here with enough length to pass the heuristic..."


@pytest.fixture
def http():
    """Patch the HTTP layer's ``httpx.AsyncClient`` with an :class:`HttpRouter`.

    Every outbound request in the package goes through
    ``llms_forge.sources.http``, so this one patch covers all modules.
    """
    router = HttpRouter()
    client = AsyncMock()
    client.get = AsyncMock(side_effect=router.handler("GET"))
    client.head = AsyncMock(side_effect=router.handler("HEAD"))
    client.__aenter__.return_value = client
    client.__aexit__.return_value = None

    with patch("llms_forge.sources.http.httpx.AsyncClient", return_value=client):
        yield SimpleNamespace(
            router=router,
            client=client,
            add=router.add,
            fail=router.fail,
            requested=router.requested,
        )


@pytest.fixture
def fast_cancel(monkeypatch):
    """Cancel abandoned tasks immediately instead of after the grace period."""
    monkeypatch.setattr(settings, "cancel_grace_period", 0.0)
