"""Outbound HTTP for discovery and extraction.

Every network call in the core goes through :func:`fetch`. Transport
failures (DNS, refused connections, timeouts) and non-2xx statuses are
logged and turned into ``None`` so that a failed probe simply yields
nothing; nothing network-related propagates to the orchestrator.

Redirects are always followed and callers read ``response.url`` for the
final resolved location.
"""

import httpx
from loguru import logger

from llms_forge.config import settings

CONTENT_ACCEPT = "text/plain, text/markdown, */*"
HTML_ACCEPT = "text/html"
XML_ACCEPT = "application/xml, text/xml, */*"
TEXT_ACCEPT = "text/plain"


def _headers(accept: str) -> dict[str, str]:
    return {"User-Agent": settings.user_agent, "Accept": accept}


async def fetch(
    url: str,
    *,
    accept: str = "*/*",
    timeout: float | None = None,
    method: str = "GET",
) -> httpx.Response | None:
    """Fetch ``url`` and return the response if it succeeded.

    Args:
        url: Absolute URL to request.
        accept: ``Accept`` header value.
        timeout: Per-request timeout in seconds (defaults to ``fetch_timeout``).
        method: ``GET`` or ``HEAD``.

    Returns:
        The response for a 2xx status, otherwise ``None``.
    """
    if timeout is None:
        timeout = settings.fetch_timeout
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            if method == "HEAD":
                resp = await client.head(url, headers=_headers(accept))
            else:
                resp = await client.get(url, headers=_headers(accept))
    except Exception as e:
        logger.debug(f"{method} {url} failed: {e}")
        return None

    if not 200 <= resp.status_code < 300:
        logger.debug(f"{method} {url} -> HTTP {resp.status_code}")
        return None
    return resp


async def fetch_text(
    url: str,
    *,
    accept: str = CONTENT_ACCEPT,
    timeout: float | None = None,
) -> tuple[str, str] | None:
    """GET ``url`` and return ``(text, final_url)`` or ``None``."""
    resp = await fetch(url, accept=accept, timeout=timeout)
    if resp is None:
        return None
    return resp.text, str(resp.url)


async def head_ok(url: str, timeout: float | None = None) -> bool:
    """Return True when a HEAD request for ``url`` succeeds."""
    if timeout is None:
        timeout = settings.probe_timeout
    return await fetch(url, method="HEAD", timeout=timeout) is not None
