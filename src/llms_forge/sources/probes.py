"""Discovery strategies.

Each probe takes normalized domain parts and returns candidate locations
(the well-known probe returns a direct hit instead). Probes never raise for
network or parse problems: a probe that cannot reach its target simply
contributes nothing.

HTML handling here is regex-based and approximate on purpose. Homepage
scraping, platform fingerprinting and repository detection return
best-effort partial results.
"""

import asyncio
import json
import re
from typing import NamedTuple
from urllib.parse import urlparse

from loguru import logger

from llms_forge.config import settings
from llms_forge.models import DiscoveredCandidate
from llms_forge.sources.content import is_valid_llms_content
from llms_forge.sources.http import (
    CONTENT_ACCEPT,
    HTML_ACCEPT,
    TEXT_ACCEPT,
    XML_ACCEPT,
    fetch,
    fetch_text,
)
from llms_forge.sources.urls import DomainParts

WELL_KNOWN_PATHS = (
    "/.well-known/llms.txt",
    "/.well-known/llms-full.txt",
    "/llms.txt",
    "/llms-full.txt",
)

# platform -> (indicators, llms.txt paths); first match wins
DOC_PLATFORMS: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "gitbook": (("gitbook.io", "gitbook.com", "x-gitbook"), ("/llms.txt", "/llms-full.txt")),
    "readme": (("readme.io", "readme.com", "x-readme"), ("/llms.txt", "/llms-full.txt")),
    "mintlify": (("mintlify.", "x-mintlify"), ("/llms.txt", "/llms-full.txt")),
    "docusaurus": (("docusaurus", "__docusaurus"), ("/llms.txt", "/docs/llms.txt")),
    "notion": (("notion.site", "notion.so"), ("/llms.txt",)),
    "confluence": (("confluence", "atlassian.net"), ("/llms.txt",)),
    "vitepress": (("vitepress", ".vitepress"), ("/llms.txt", "/guide/llms.txt")),
    "docsify": (("docsify", "window.$docsify"), ("/llms.txt", "/#/llms.txt")),
    "mkdocs": (("mkdocs", "material for mkdocs"), ("/llms.txt", "/llms-full.txt")),
    "sphinx": (("sphinx", "readthedocs"), ("/llms.txt", "/_static/llms.txt")),
    "readthedocs": (
        ("readthedocs.io", "readthedocs.org"),
        ("/llms.txt", "/en/latest/llms.txt", "/en/stable/llms.txt"),
    ),
}

OPENAPI_PATHS = (
    "/openapi.json",
    "/openapi.yaml",
    "/swagger.json",
    "/swagger.yaml",
    "/api/openapi.json",
    "/api/swagger.json",
    "/v1/openapi.json",
    "/v2/openapi.json",
    "/v3/openapi.json",
    "/api-docs",
    "/api-docs/swagger.json",
)

DOC_KEYWORD_RE = re.compile(r"docs?|api|developer|reference|guide|help", re.IGNORECASE)
_SITEMAP_DOC_RE = re.compile(
    r"docs?|api|developer|reference|guide|help|getting-started|quickstart",
    re.IGNORECASE,
)
_DOC_HOST_RE = re.compile(r"docs?|api-docs?|documentation|developer|reference|guide|help|learn")
_DOC_PATH_RE = re.compile(r"docs?|api|developer|reference|guide|help|getting-started")
_DOC_PLATFORM_HOST_RE = re.compile(r"gitbook|readme|notion|mintlify|docusaurus|readthedocs")

_SITEMAP_DIRECTIVE_RE = re.compile(r"Sitemap:\s*(\S+)", re.IGNORECASE)
_ALLOW_DIRECTIVE_RE = re.compile(r"Allow:\s*(\S+)", re.IGNORECASE)
_LOC_RE = re.compile(r"<loc>([^<]+)</loc>", re.IGNORECASE)
_HREF_RE = re.compile(r"href=[\"']([^\"']+)[\"']", re.IGNORECASE)
_CANONICAL_RE = re.compile(
    r"<link[^>]+rel=[\"']canonical[\"'][^>]+href=[\"']([^\"']+)[\"']", re.IGNORECASE
)
_NAV_LINK_RES = (
    re.compile(
        r"href=[\"']([^\"']+)[\"'][^>]*>(?:[^<]*(?:docs?|documentation|api|developers?|reference|guide))",
        re.IGNORECASE,
    ),
    re.compile(
        r"<a[^>]+href=[\"']([^\"']+)[\"'][^>]*class=[\"'][^\"']*(?:docs?|nav|menu)[^\"']*[\"']",
        re.IGNORECASE,
    ),
)
_GITHUB_REPO_RE = re.compile(r"href=[\"'](https://github\.com/[^\"'/]+/[^\"'/]+)", re.IGNORECASE)
_GITHUB_OWNER_REPO_RE = re.compile(r"github\.com/([^/]+)/([^/]+)")
_GITLAB_REPO_RE = re.compile(r"href=[\"'](https://gitlab\.com/[^\"']+)", re.IGNORECASE)


class LlmsHit(NamedTuple):
    """A validated llms.txt fetch."""

    url: str  # URL that was requested
    final_url: str  # URL after redirects
    content: str


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def _homepages(parts: DomainParts) -> list[str]:
    return _unique([parts.origin, parts.url_for(parts.full_domain)])


async def fetch_llms_file(url: str, timeout: float | None = None) -> LlmsHit | None:
    """GET ``url`` and return a hit if the body passes the content validator."""
    if timeout is None:
        timeout = settings.probe_timeout
    fetched = await fetch_text(url, accept=CONTENT_ACCEPT, timeout=timeout)
    if fetched is None:
        return None
    text, final_url = fetched
    if not is_valid_llms_content(text):
        logger.debug(f"Rejected non-llms content at {url}")
        return None
    return LlmsHit(url=url, final_url=final_url, content=text)


# ---------------------------------------------------------------------------
# Well-known paths (fast path)
# ---------------------------------------------------------------------------


async def well_known_probe(parts: DomainParts) -> LlmsHit | None:
    """Check the well-known llms.txt paths on hostname, domain and ``www.``.

    Bases are tried one after another; the four paths of a base are fetched
    concurrently and the first valid one in declared order wins.
    """
    bases = _unique(
        [
            parts.origin,
            parts.url_for(parts.full_domain),
            parts.url_for(f"www.{parts.full_domain}"),
        ]
    )
    for base in bases:
        results = await asyncio.gather(
            *[fetch_llms_file(f"{base}{path}") for path in WELL_KNOWN_PATHS]
        )
        for hit in results:
            if hit is not None:
                logger.info(f"Found llms.txt at well-known path {hit.url}")
                return hit
    return None


# ---------------------------------------------------------------------------
# robots.txt and sitemaps
# ---------------------------------------------------------------------------


async def robots_probe(parts: DomainParts) -> list[DiscoveredCandidate]:
    """Read ``Sitemap:`` and documentation-like ``Allow:`` directives."""
    candidates: list[DiscoveredCandidate] = []

    for origin in _homepages(parts):
        robots_url = f"{origin}/robots.txt"
        fetched = await fetch_text(
            robots_url, accept=TEXT_ACCEPT, timeout=settings.probe_timeout
        )
        if fetched is None:
            continue
        text = fetched[0]

        for match in _SITEMAP_DIRECTIVE_RE.finditer(text):
            candidates.append(
                DiscoveredCandidate(
                    url=match.group(1).strip(), priority=15, source="robots-sitemap"
                )
            )

        for line in text.split("\n"):
            allow = _ALLOW_DIRECTIVE_RE.search(line)
            if allow and DOC_KEYWORD_RE.search(allow.group(1)):
                path = allow.group(1).replace("*", "")
                candidates.append(
                    DiscoveredCandidate(
                        url=f"{origin}{path}", priority=30, source="robots-allow"
                    )
                )

    return candidates


def _docs_root(url: str) -> str | None:
    """Truncate ``url`` after its first documentation-keyword path segment."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    segments = [s for s in parsed.path.split("/") if s]
    for i, segment in enumerate(segments):
        if DOC_KEYWORD_RE.search(segment):
            return f"{parsed.scheme}://{parsed.netloc}/{'/'.join(segments[: i + 1])}"
    return None


async def sitemap_probe(sitemap_url: str, depth: int = 0) -> list[DiscoveredCandidate]:
    """Extract documentation roots from a sitemap, following sitemap indexes.

    Nested sitemaps are followed down to ``sitemap_max_depth``.
    """
    if depth > settings.sitemap_max_depth:
        return []

    fetched = await fetch_text(
        sitemap_url, accept=XML_ACCEPT, timeout=settings.probe_timeout
    )
    if fetched is None:
        return []
    text = fetched[0]

    candidates: list[DiscoveredCandidate] = []
    locs = [m.group(1).strip() for m in _LOC_RE.finditer(text)]

    if "<sitemapindex" in text:
        for nested in locs:
            if "sitemap" in nested and nested.endswith(".xml"):
                candidates.extend(await sitemap_probe(nested, depth + 1))

    for loc in locs:
        if not _SITEMAP_DOC_RE.search(loc):
            continue
        root = _docs_root(loc)
        if root:
            candidates.append(
                DiscoveredCandidate(url=root, priority=20, source="sitemap-docs")
            )

    return candidates


# ---------------------------------------------------------------------------
# Homepage scraping
# ---------------------------------------------------------------------------


def _absolute(href: str, page_url: str) -> str | None:
    if href.startswith("/"):
        return f"{page_url}{href}"
    if href.startswith("http"):
        return href
    return None


def extract_homepage_links(
    html: str, page_url: str, base_domain: str
) -> list[DiscoveredCandidate]:
    """Documentation-looking links, the canonical link and nav links from HTML."""
    candidates: list[DiscoveredCandidate] = []
    page_host = (urlparse(page_url).hostname or "").replace("www.", "", 1)

    for match in _HREF_RE.finditer(html):
        href = match.group(1)
        if href.startswith(("#", "javascript:", "mailto:", "tel:")):
            continue
        url = _absolute(href, page_url)
        if url is None:
            continue
        try:
            parsed = urlparse(url)
            host = parsed.hostname or ""
        except ValueError:
            continue

        bare = host.replace("www.", "", 1)
        related = (
            page_host in bare
            or base_domain in bare
            or _DOC_PLATFORM_HOST_RE.search(bare) is not None
        )
        if not related:
            continue
        if _DOC_HOST_RE.search(host) or _DOC_PATH_RE.search(parsed.path):
            candidates.append(
                DiscoveredCandidate(
                    url=url.rstrip("/"), priority=25, source="homepage-link"
                )
            )

    canonical = _CANONICAL_RE.search(html)
    if canonical:
        candidates.append(
            DiscoveredCandidate(url=canonical.group(1), priority=5, source="canonical")
        )

    for pattern in _NAV_LINK_RES:
        for match in pattern.finditer(html):
            url = _absolute(match.group(1), page_url)
            if url:
                candidates.append(
                    DiscoveredCandidate(
                        url=url.rstrip("/"), priority=15, source="nav-link"
                    )
                )

    return candidates


async def homepage_probe(parts: DomainParts) -> list[DiscoveredCandidate]:
    candidates: list[DiscoveredCandidate] = []
    for page_url in _homepages(parts):
        fetched = await fetch_text(
            page_url, accept=HTML_ACCEPT, timeout=settings.probe_timeout
        )
        if fetched is None:
            continue
        candidates.extend(
            extract_homepage_links(fetched[0], page_url, parts.base_domain)
        )
    return candidates


# ---------------------------------------------------------------------------
# Platform fingerprinting
# ---------------------------------------------------------------------------


def detect_platform(html: str, headers: dict[str, str]) -> str | None:
    """Match lower-cased HTML and headers against the platform table."""
    body = html.lower()
    header_text = json.dumps(headers).lower()
    for platform, (indicators, _paths) in DOC_PLATFORMS.items():
        if any(i in body or i in header_text for i in indicators):
            return platform
    return None


async def platform_probe(
    parts: DomainParts,
) -> tuple[str | None, list[DiscoveredCandidate]]:
    """Fingerprint the documentation platform serving the homepage.

    Returns ``(platform, candidates)``; stops at the first match.
    """
    for page_url in _homepages(parts):
        resp = await fetch(page_url, accept=HTML_ACCEPT, timeout=settings.probe_timeout)
        if resp is None:
            continue
        platform = detect_platform(resp.text, dict(resp.headers))
        if platform is None:
            continue
        logger.debug(f"Detected {platform} at {page_url}")
        return platform, [
            DiscoveredCandidate(
                url=f"{page_url}{path}", priority=5, source=f"platform-{platform}"
            )
            for path in DOC_PLATFORMS[platform][1]
        ]
    return None, []


# ---------------------------------------------------------------------------
# GitHub / GitLab
# ---------------------------------------------------------------------------


def repository_candidates(html: str) -> tuple[str | None, list[DiscoveredCandidate]]:
    """Derive raw llms.txt URLs from the first GitHub or GitLab repo link."""
    github = _GITHUB_REPO_RE.search(html)
    if github:
        repo_url = github.group(1)
        raw = repo_url.replace("github.com", "raw.githubusercontent.com")
        candidates = [
            DiscoveredCandidate(url=f"{raw}/main/llms.txt", priority=10, source="github-main"),
            DiscoveredCandidate(url=f"{raw}/master/llms.txt", priority=11, source="github-master"),
            DiscoveredCandidate(url=f"{raw}/main/docs/llms.txt", priority=12, source="github-docs"),
            DiscoveredCandidate(url=f"{raw}/master/docs/llms.txt", priority=13, source="github-docs"),
            DiscoveredCandidate(url=f"{raw}/main/llms-full.txt", priority=14, source="github-main"),
            DiscoveredCandidate(url=f"{raw}/master/llms-full.txt", priority=15, source="github-master"),
        ]
        owner_repo = _GITHUB_OWNER_REPO_RE.search(repo_url)
        if owner_repo:
            owner, repo = owner_repo.groups()
            pages = f"https://{owner}.github.io/{repo}"
            candidates.append(
                DiscoveredCandidate(url=f"{pages}/llms.txt", priority=8, source="github-pages")
            )
            candidates.append(
                DiscoveredCandidate(url=f"{pages}/llms-full.txt", priority=9, source="github-pages")
            )
        return repo_url, candidates

    gitlab = _GITLAB_REPO_RE.search(html)
    if gitlab:
        repo_url = gitlab.group(1)
        return repo_url, [
            DiscoveredCandidate(url=f"{repo_url}/-/raw/main/llms.txt", priority=10, source="gitlab-main"),
            DiscoveredCandidate(url=f"{repo_url}/-/raw/master/llms.txt", priority=11, source="gitlab-master"),
        ]

    return None, []


async def git_probe(parts: DomainParts) -> tuple[str | None, list[DiscoveredCandidate]]:
    """Look for a linked source repository on the homepage."""
    fetched = await fetch_text(
        parts.origin, accept=HTML_ACCEPT, timeout=settings.probe_timeout
    )
    if fetched is None:
        return None, []
    return repository_candidates(fetched[0])


# ---------------------------------------------------------------------------
# OpenAPI / Swagger
# ---------------------------------------------------------------------------


async def _openapi_base(base: str) -> list[DiscoveredCandidate]:
    for path in OPENAPI_PATHS:
        resp = await fetch(
            f"{base}{path}", method="HEAD", timeout=settings.probe_timeout
        )
        if resp is not None:
            logger.debug(f"OpenAPI spec found at {base}{path}")
            return [
                DiscoveredCandidate(url=base, priority=8, source="openapi-base"),
                DiscoveredCandidate(url=f"{base}/docs", priority=9, source="openapi-docs"),
            ]
    return []


async def openapi_probe(parts: DomainParts) -> list[DiscoveredCandidate]:
    """HEAD-check conventional OpenAPI endpoints on each base concurrently."""
    bases = _unique(
        [
            parts.origin,
            parts.url_for(parts.full_domain),
            parts.url_for(f"api.{parts.full_domain}"),
        ]
    )
    results = await asyncio.gather(*[_openapi_base(b) for b in bases])
    return [c for found in results for c in found]
