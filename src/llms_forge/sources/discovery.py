"""llms.txt discovery orchestrator.

Phases, all sharing one wall-clock budget:

1. Well-known paths (fast path, returns immediately on a hit)
2. Every enabled strategy concurrently, failures isolated
3. Sitemaps from robots.txt plus ``/sitemap.xml`` guesses
4. Deduplicate, rank by priority, cap
5. Verify candidates in fixed-size batches, first hit wins

Whenever the orchestrator stops waiting on tasks it started (budget spent,
or a batch already produced a hit) the unfinished ones are left running
for ``cancel_grace_period`` seconds and then cancelled. Cancellation closes
their HTTP clients.
"""

import asyncio
import re
import time
from datetime import datetime, timezone

from loguru import logger

from llms_forge.config import settings
from llms_forge.models import (
    Confidence,
    DiscoveredCandidate,
    DiscoveryResult,
    InstallMdLocation,
    LlmsFileInfo,
    PlatformHints,
    SiteVerification,
)
from llms_forge.sources.content import classify_content_type, is_valid_llms_content
from llms_forge.sources.http import fetch
from llms_forge.sources.probes import (
    LlmsHit,
    fetch_llms_file,
    git_probe,
    homepage_probe,
    openapi_probe,
    platform_probe,
    robots_probe,
    sitemap_probe,
    well_known_probe,
)
from llms_forge.sources.urls import (
    DomainParts,
    InvalidUrlError,
    dedupe_candidates,
    generate_candidates,
    normalize_url,
)

DEFAULT_STRATEGIES = (
    "wellknown",
    "patterns",
    "platform",
    "homepage",
    "robots",
    "sitemap",
    "github",
    "openapi",
)

_HIGH_CONFIDENCE_PREFIXES = ("user-provided", "well-known", "platform-", "github-")
_LLMS_SUFFIX_RE = re.compile(r"/llms(-full)?\.txt$")

VERIFY_LLMS_PATHS = ("/llms.txt", "/llms-full.txt", "/docs/llms.txt", "/docs/llms-full.txt")
VERIFY_INSTALL_PATHS = ("/install.md", "/docs/install.md", "/INSTALL.md")


def confidence_for(source: str) -> Confidence:
    """Map the strategy that produced a hit to a confidence level."""
    if source.startswith(_HIGH_CONFIDENCE_PREFIXES):
        return "high"
    return "medium"


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _cancel_later(tasks: set[asyncio.Task]) -> None:
    """Cancel unfinished tasks once the grace period has passed."""
    if not tasks:
        return
    loop = asyncio.get_running_loop()
    for task in tasks:
        loop.call_later(settings.cancel_grace_period, task.cancel)


async def check_for_llms_txt(
    base_url: str, timeout: float | None = None
) -> LlmsHit | None:
    """Look for llms.txt at a single candidate location.

    A candidate that already names a ``.txt`` file is fetched directly,
    otherwise ``llms-full.txt`` then ``llms.txt`` are tried under it.
    """
    base = base_url.rstrip("/")
    if base.lower().endswith(".txt"):
        return await fetch_llms_file(base, timeout=timeout)
    for filename in ("llms-full.txt", "llms.txt"):
        hit = await fetch_llms_file(f"{base}/{filename}", timeout=timeout)
        if hit is not None:
            return hit
    return None


def _found(
    hit: LlmsHit,
    scanned: list[str],
    start: float,
    method: str,
    confidence: Confidence,
    hints: PlatformHints | None = None,
) -> DiscoveryResult:
    return DiscoveryResult(
        found=True,
        canonical_url=_LLMS_SUFFIX_RE.sub("", hit.url),
        content_url=hit.final_url,
        content_type=classify_content_type(hit.content),
        scanned_urls=scanned,
        elapsed_ms=_elapsed_ms(start),
        method=method,
        confidence=confidence,
        platform_hints=hints or PlatformHints(),
    )


async def _gather_candidates(
    parts: DomainParts, strategies: set[str], remaining: float
) -> tuple[list[DiscoveredCandidate], dict]:
    """Run the candidate-producing strategies concurrently.

    A strategy that raises or outlives the budget contributes nothing.
    """
    candidates: list[DiscoveredCandidate] = []
    hints: dict = {}

    if "patterns" in strategies:
        candidates.extend(generate_candidates(parts))

    probes = {
        "robots": robots_probe,
        "homepage": homepage_probe,
        "platform": platform_probe,
        "github": git_probe,
        "openapi": openapi_probe,
    }
    tasks = {
        asyncio.create_task(probe(parts)): name
        for name, probe in probes.items()
        if name in strategies
    }
    if not tasks:
        return candidates, hints

    done, pending = await asyncio.wait(tasks, timeout=max(remaining, 0))
    if pending:
        logger.debug(f"{len(pending)} discovery strategies still running at budget")
        _cancel_later(pending)

    for task in done:
        name = tasks[task]
        if task.exception() is not None:
            logger.warning(f"Discovery strategy {name} failed: {task.exception()}")
            continue
        result = task.result()
        if name == "platform":
            platform, found = result
            if platform:
                hints["platform"] = platform
            candidates.extend(found)
        elif name == "github":
            repo_url, found = result
            if repo_url:
                hints["git_repo_url"] = repo_url
            candidates.extend(found)
        else:
            if name == "robots":
                hints["robots_found"] = bool(result)
            candidates.extend(result)

    return candidates, hints


async def discover(
    input_url: str,
    timeout_ms: int | None = None,
    strategies: list[str] | tuple[str, ...] | None = None,
) -> DiscoveryResult:
    """Discover where a site publishes llms.txt.

    Args:
        input_url: Domain or URL entered by the user; ``https://`` is assumed.
        timeout_ms: Wall-clock budget (defaults to ``discovery_timeout_ms``).
        strategies: Subset of :data:`DEFAULT_STRATEGIES` to run.

    Returns:
        A :class:`DiscoveryResult`; not finding anything is ``found=False``.

    Raises:
        InvalidUrlError: If ``input_url`` cannot be parsed. No request is made.
    """
    parts = normalize_url(input_url)
    enabled = set(strategies or DEFAULT_STRATEGIES)
    budget = (timeout_ms if timeout_ms is not None else settings.discovery_timeout_ms) / 1000
    start = time.monotonic()
    scanned: list[str] = []

    def remaining() -> float:
        return budget - (time.monotonic() - start)

    logger.info(f"Discovering llms.txt for {parts.hostname}")

    # Phase 1: well-known paths
    if "wellknown" in enabled and remaining() > 0:
        try:
            hit = await asyncio.wait_for(well_known_probe(parts), timeout=remaining())
        except asyncio.TimeoutError:
            hit = None
        if hit is not None:
            scanned.append(hit.url)
            return _found(hit, scanned, start, "well-known-path", "high")

    # Phase 2: candidate strategies
    candidates, hints = await _gather_candidates(parts, enabled, remaining())

    # Phase 3: sitemaps
    if "sitemap" in enabled and remaining() > 0:
        sitemap_urls = [c.url for c in candidates if c.source == "robots-sitemap"]
        sitemap_urls += [
            f"{parts.origin}/sitemap.xml",
            f"{parts.url_for(parts.full_domain)}/sitemap.xml",
        ]
        sitemap_found = False
        for sitemap_url in list(dict.fromkeys(sitemap_urls))[: settings.max_sitemaps]:
            if remaining() <= 0:
                break
            try:
                found = await asyncio.wait_for(
                    sitemap_probe(sitemap_url), timeout=remaining()
                )
            except asyncio.TimeoutError:
                break
            if found:
                sitemap_found = True
                candidates.extend(found)
        hints["sitemap_found"] = sitemap_found

    platform_hints = PlatformHints(**hints)

    # Phase 4: rank
    ranked = [
        c for c in dedupe_candidates(candidates) if c.source != "robots-sitemap"
    ][: settings.max_candidates]
    logger.debug(f"Verifying {len(ranked)} candidate locations for {parts.hostname}")

    # Phase 5: batch verification
    for offset in range(0, len(ranked), settings.batch_size):
        if remaining() <= 0:
            break
        batch = ranked[offset : offset + settings.batch_size]
        scanned.extend(c.url for c in batch)
        tasks = {asyncio.create_task(check_for_llms_txt(c.url)): c for c in batch}

        pending = set(tasks)
        hits: list[tuple[DiscoveredCandidate, LlmsHit]] = []
        while pending and not hits and remaining() > 0:
            done, pending = await asyncio.wait(
                pending, timeout=remaining(), return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                if task.exception() is not None:
                    logger.debug(f"Check of {tasks[task].url} failed: {task.exception()}")
                    continue
                if task.result() is not None:
                    hits.append((tasks[task], task.result()))
        _cancel_later(pending)

        if hits:
            candidate, hit = min(hits, key=lambda h: h[0].priority)
            logger.info(f"Found llms.txt for {parts.hostname} at {hit.final_url}")
            return _found(
                hit,
                scanned,
                start,
                candidate.source,
                confidence_for(candidate.source),
                platform_hints,
            )
        if pending:
            break

    logger.info(f"No llms.txt found for {parts.hostname} ({len(scanned)} locations)")
    return DiscoveryResult(
        found=False,
        scanned_urls=scanned,
        elapsed_ms=_elapsed_ms(start),
        platform_hints=platform_hints,
    )


async def quick_check(url: str) -> DiscoveryResult:
    """Check a single location for llms.txt without strategy fan-out."""
    start = time.monotonic()
    try:
        parts = normalize_url(url)
    except InvalidUrlError as e:
        logger.debug(f"Quick check rejected {url!r}: {e}")
        return DiscoveryResult(found=False, scanned_urls=[url], method="direct")

    base = f"{parts.origin}{parts.path}".rstrip("/")
    hit = await check_for_llms_txt(base)
    if hit is None:
        return DiscoveryResult(
            found=False,
            scanned_urls=[base],
            elapsed_ms=_elapsed_ms(start),
            method="direct",
        )
    return _found(hit, [base], start, "direct", "high")


async def batch_discover(
    urls: list[str],
    concurrency: int = 3,
    timeout_ms: int | None = None,
) -> dict[str, DiscoveryResult]:
    """Run :func:`discover` over several sites, ``concurrency`` at a time.

    A site that fails (invalid URL or unexpected error) maps to ``found=False``.
    """
    semaphore = asyncio.Semaphore(max(concurrency, 1))

    async def _one(url: str) -> DiscoveryResult:
        async with semaphore:
            return await discover(url, timeout_ms=timeout_ms)

    results = await asyncio.gather(*[_one(u) for u in urls], return_exceptions=True)
    output: dict[str, DiscoveryResult] = {}
    for url, result in zip(urls, results):
        if isinstance(result, BaseException):
            logger.warning(f"Discovery failed for {url}: {result}")
            result = DiscoveryResult(found=False)
        output[url] = result
    return output


# ---------------------------------------------------------------------------
# Site verification
# ---------------------------------------------------------------------------


async def _llms_file_info(url: str) -> LlmsFileInfo | None:
    resp = await fetch(url, accept="text/plain, text/markdown, */*")
    if resp is None:
        return None
    text = resp.text
    if not is_valid_llms_content(text):
        return None
    length = resp.headers.get("content-length")
    return LlmsFileInfo(
        url=str(resp.url),
        size=int(length) if length and length.isdigit() else len(text),
        type=classify_content_type(text),
        last_modified=resp.headers.get("last-modified"),
    )


async def _install_md_location(origin: str) -> InstallMdLocation:
    for path in VERIFY_INSTALL_PATHS:
        resp = await fetch(
            f"{origin}{path}", method="HEAD", timeout=settings.probe_timeout
        )
        if resp is not None:
            return InstallMdLocation(exists=True, url=str(resp.url))
    return InstallMdLocation(exists=False)


async def verify_site(url: str) -> SiteVerification:
    """Report which llms.txt files and install.md a site currently serves."""
    start = time.monotonic()
    try:
        parts = normalize_url(url)
    except InvalidUrlError as e:
        return SiteVerification(
            status="error",
            response_time_ms=_elapsed_ms(start),
            checked_at=datetime.now(timezone.utc).isoformat(),
            error=str(e),
        )

    origin = parts.origin
    infos, install_md = await asyncio.gather(
        asyncio.gather(*[_llms_file_info(f"{origin}{p}") for p in VERIFY_LLMS_PATHS]),
        _install_md_location(origin),
    )

    llms_txt = llms_full_txt = None
    for path, info in zip(VERIFY_LLMS_PATHS, infos):
        if info is None:
            continue
        if "llms-full.txt" in path:
            llms_full_txt = llms_full_txt or info
        else:
            llms_txt = llms_txt or info

    return SiteVerification(
        status="online" if llms_txt or llms_full_txt else "offline",
        llms_txt=llms_txt,
        llms_full_txt=llms_full_txt,
        install_md=install_md,
        response_time_ms=_elapsed_ms(start),
        checked_at=datetime.now(timezone.utc).isoformat(),
    )
