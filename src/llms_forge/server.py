"""llms-forge MCP Server - Main server definition."""

import asyncio
import functools
import json
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from loguru import logger
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from llms_forge.cache import ResultCache
from llms_forge.config import settings
from llms_forge.security import is_safe_url, wrap_external_content
from llms_forge.sources.content import (
    build_readme_index,
    classify_content_type,
    detect_linked_files,
    is_valid_llms_content,
    segment_content,
)
from llms_forge.sources.discovery import discover as _discover
from llms_forge.sources.discovery import quick_check, verify_site
from llms_forge.sources.extract import extract_documentation
from llms_forge.sources.install_generator import (
    INSTALL_MD_TEMPLATES,
    generate_install_md,
    template_data,
)
from llms_forge.sources.install_md import (
    fetch_install_md,
    find_install_md,
    get_install_md_summary,
    is_valid_install_md,
    parse_install_md,
    validate_install_md,
)
from llms_forge.sources.urls import InvalidUrlError, normalize_url, site_name

# Configure logging
logger.remove()
logger.add(sys.stderr, level=settings.log_level)

# Module-level state (set during lifespan)
_result_cache: ResultCache | None = None


@asynccontextmanager
async def _lifespan(_server: FastMCP):
    """Server lifespan: open the result cache, close it on shutdown."""
    global _result_cache

    logger.info("Starting llms-forge MCP Server...")

    if settings.cache_enabled:
        cache_path = settings.get_cache_db_path()
        _result_cache = ResultCache(cache_path, ttl=settings.cache_ttl)
        logger.info(f"Result cache enabled (TTL={settings.cache_ttl}s)")

    try:
        yield
    finally:
        if _result_cache:
            _result_cache.close()
            _result_cache = None
        logger.info("llms-forge MCP Server stopped")


mcp = FastMCP(
    name="llms-forge",
    instructions=(
        "llms.txt discovery and documentation extraction. Use `discover` to "
        "find where a site publishes llms.txt, `extract` to fetch and split "
        "it into documents, and `install_md` to parse, validate or template "
        "install.md files."
    ),
    lifespan=_lifespan,
)


def _wrap_tool(tool_name: str):
    """Decorator to wrap tool results with untrusted-content markers.

    Error responses are passed through unwrapped.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            result = await func(*args, **kwargs)
            return wrap_external_content(tool_name, result)

        return wrapper

    return decorator


async def _with_timeout(coro, action: str) -> str:
    """Wrap coroutine with hard timeout.

    Uses ``asyncio.wait`` so the deadline holds even if the inner task is
    slow to honour cancellation. After cancelling, the task gets
    ``cancel_grace_period`` seconds to close its connections before it is
    abandoned.
    """
    timeout = settings.tool_timeout
    if timeout <= 0:
        return await coro

    task = asyncio.create_task(coro)
    done, _pending = await asyncio.wait({task}, timeout=timeout)

    if done:
        # Propagate any exception raised by the task
        return task.result()

    task.cancel()
    logger.warning(f"Tool '{action}' timed out after {timeout}s, cancelling...")
    try:
        await asyncio.wait_for(
            asyncio.shield(task), timeout=settings.cancel_grace_period
        )
    except (asyncio.CancelledError, TimeoutError, Exception):
        # Cancelled cleanly, timed out again, or raised -- all OK
        pass

    return (
        f"Error: '{action}' timed out after {timeout}s. "
        "Increase TOOL_TIMEOUT or try a smaller timeout_ms."
    )


def _check_url(url: str | None, action: str) -> str | None:
    """Return an error string if ``url`` may not be used, else None."""
    if not url:
        return f"Error: url is required for {action} action"
    try:
        parts = normalize_url(url)
    except InvalidUrlError as e:
        return f"Error: Invalid URL {url!r}: {e}"
    if not settings.allow_private_hosts and not is_safe_url(parts.origin):
        return f"Error: Security Alert: refusing to fetch private or unsafe host {parts.hostname}"
    return None


def _dumps(data) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2, default=str)


def _cached(kind: str, url: str) -> str | None:
    if _result_cache:
        return _result_cache.get(kind, url)
    return None


def _store(kind: str, url: str, result: str) -> None:
    if _result_cache and not result.startswith("Error"):
        _result_cache.set(kind, url, result)


# ---------------------------------------------------------------------------
# discover tool: discover, quick_check, verify
# ---------------------------------------------------------------------------


async def _do_discover(
    url: str, timeout_ms: int | None, strategies: list[str] | None
) -> str:
    result = await _discover(url, timeout_ms=timeout_ms, strategies=strategies)
    return _dumps(result.model_dump())


async def _do_quick_check(url: str) -> str:
    return _dumps((await quick_check(url)).model_dump())


async def _do_verify(url: str) -> str:
    return _dumps((await verify_site(url)).model_dump())


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=True,
        idempotentHint=True,
    ),
)
@_wrap_tool("discover")
async def discover(
    action: str,
    url: str | None = None,
    timeout_ms: int | None = None,
    strategies: list[str] | None = None,
) -> str:
    """Find where a site publishes llms.txt.
    - discover: Multi-strategy scan (well-known paths, subdomains, robots.txt, sitemaps, homepage links, platform, GitHub, OpenAPI)
    - quick_check: Check a single URL for llms-full.txt / llms.txt, no fan-out
    - verify: Report llms.txt, llms-full.txt and install.md availability for a site
    """
    if action not in ("discover", "quick_check", "verify"):
        return f"Error: Unknown action '{action}'. Valid actions: discover, quick_check, verify"
    error = _check_url(url, action)
    if error:
        return error

    match action:
        case "discover":
            # Custom budgets or strategy subsets are not cached
            cacheable = timeout_ms is None and not strategies
            if cacheable and (cached := _cached("discover", url)):
                return cached
            result = await _with_timeout(
                _do_discover(url, timeout_ms, strategies), "discover"
            )
            if cacheable:
                _store("discover", url, result)
            return result

        case "quick_check":
            return await _with_timeout(_do_quick_check(url), "quick_check")

        case "verify":
            if cached := _cached("verify", url):
                return cached
            result = await _with_timeout(_do_verify(url), "verify")
            _store("verify", url, result)
            return result


# ---------------------------------------------------------------------------
# extract tool: extract, segment
# ---------------------------------------------------------------------------


async def _do_extract(url: str, discover: bool) -> str:
    result = await extract_documentation(url, discover=discover)
    if result is None:
        return (
            f"Error: No llms.txt found for {url}. "
            "Try a different URL or check if this site supports llms.txt."
        )
    data = result.model_dump(exclude={"raw_content"})
    data["readme"] = build_readme_index(
        site_name(url), result.source_url, result.documents, _now_iso()
    )
    return _dumps(data)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _do_segment(content: str) -> str:
    documents = segment_content(content)
    return _dumps(
        {
            "valid": is_valid_llms_content(content),
            "content_type": classify_content_type(content),
            "documents": [d.model_dump() for d in documents],
            "linked_files": [f.model_dump() for f in detect_linked_files(content)],
            "total_tokens": sum(d.token_estimate for d in documents),
        }
    )


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=True,
    ),
)
@_wrap_tool("extract")
async def extract(
    action: str,
    url: str | None = None,
    content: str | None = None,
    discover: bool = True,
) -> str:
    """Extract llms.txt documentation as split markdown documents.
    - extract: Fetch llms.txt for a site (runs discovery if needed), split it, merge sibling llms-*.txt files, find install.md (requires url)
    - segment: Split raw llms.txt text into documents (requires content)
    """
    match action:
        case "extract":
            error = _check_url(url, action)
            if error:
                return error
            if discover and (cached := _cached("extract", url)):
                return cached
            result = await _with_timeout(_do_extract(url, discover), "extract")
            if discover:
                _store("extract", url, result)
            return result

        case "segment":
            if not content:
                return "Error: content is required for segment action"
            return _do_segment(content)

        case _:
            return f"Error: Unknown action '{action}'. Valid actions: extract, segment"


# ---------------------------------------------------------------------------
# install_md tool: parse, validate, fetch, template
# ---------------------------------------------------------------------------


async def _do_fetch_install_md(url: str) -> str:
    if url.lower().endswith(".md"):
        parsed, found_at = await fetch_install_md(url), url
    else:
        parsed, found_at = await find_install_md(url)
    if parsed is None:
        return f"Error: No install.md found for {url}"
    return _dumps(
        {
            "url": found_at,
            "summary": get_install_md_summary(parsed),
            "parsed": parsed.model_dump(),
        }
    )


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=True,
        idempotentHint=True,
    ),
)
@_wrap_tool("install_md")
async def install_md(
    action: str,
    content: str | None = None,
    url: str | None = None,
    template: str | None = None,
    product_name: str | None = None,
) -> str:
    """Work with install.md (LLM-executable installation instructions).
    - parse: Parse install.md text into product, objective, TODO items and steps (requires content)
    - validate: Quick check plus the full list of structural errors (requires content)
    - fetch: Fetch install.md from a URL, or probe a site's usual locations (requires url)
    - template: Render a starter install.md (template: npm|cli|python|docker|binary)
    """
    match action:
        case "parse":
            if not content:
                return "Error: content is required for parse action"
            parsed = parse_install_md(content)
            return _dumps(
                {"summary": get_install_md_summary(parsed), "parsed": parsed.model_dump()}
            )

        case "validate":
            if not content:
                return "Error: content is required for validate action"
            errors = validate_install_md(content)
            return _dumps(
                {
                    "quick_check": is_valid_install_md(content),
                    "is_valid": not errors,
                    "errors": errors,
                }
            )

        case "fetch":
            error = _check_url(url, action)
            if error:
                return error
            return await _with_timeout(_do_fetch_install_md(url), "fetch")

        case "template":
            if template not in INSTALL_MD_TEMPLATES:
                valid = ", ".join(INSTALL_MD_TEMPLATES)
                return f"Error: Unknown template '{template}'. Valid templates: {valid}"
            info = INSTALL_MD_TEMPLATES[template]
            data = template_data(template, product_name=product_name or "")
            return _dumps(
                {
                    "template": template,
                    "name": info.name,
                    "description": info.description,
                    "content": generate_install_md(data),
                }
            )

        case _:
            return (
                f"Error: Unknown action '{action}'. "
                "Valid actions: parse, validate, fetch, template"
            )


# ---------------------------------------------------------------------------
# config tool: status, cache_clear
# ---------------------------------------------------------------------------


@mcp.tool(
    annotations=ToolAnnotations(
        title="Config",
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    ),
)
async def config(action: str, kind: str | None = None) -> str:
    """Server configuration and cache management.
    - status: Show current settings and cache statistics
    - cache_clear: Clear cached results (optionally only one kind: discover|extract|verify)
    """
    match action:
        case "status":
            return _dumps(
                {
                    "discovery_timeout_ms": settings.discovery_timeout_ms,
                    "batch_size": settings.batch_size,
                    "max_candidates": settings.max_candidates,
                    "tool_timeout": settings.tool_timeout,
                    "allow_private_hosts": settings.allow_private_hosts,
                    "cache": {
                        "enabled": _result_cache is not None,
                        "ttl": settings.cache_ttl,
                        "path": str(settings.get_cache_db_path()),
                        "stats": _result_cache.stats() if _result_cache else {},
                    },
                    "log_level": settings.log_level,
                }
            )

        case "cache_clear":
            if not _result_cache:
                return _dumps({"error": "Cache is not enabled"})
            removed = _result_cache.clear(kind)
            return _dumps({"status": "cache cleared", "removed": removed})

        case _:
            return f"Error: Unknown action '{action}'. Valid actions: status, cache_clear"


def main() -> None:
    """Entry point for the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
