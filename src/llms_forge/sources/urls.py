"""URL normalization and candidate documentation locations.

``normalize_url`` splits a user-supplied string into protocol, host and
registrable-domain parts. ``generate_candidates`` turns those parts into a
priority-ranked list of places that commonly host documentation.
"""

import ipaddress
import re
from typing import NamedTuple
from urllib.parse import urlparse

from llms_forge.models import DiscoveredCandidate

# Two-label public suffixes treated as a single TLD
COMPOUND_TLDS = frozenset(
    {"co.uk", "com.au", "co.nz", "co.jp", "com.br", "co.in", "org.uk", "net.au"}
)

# Common documentation subdomains, ordered by likelihood
DOC_SUBDOMAINS = (
    "docs",
    "api-docs",
    "documentation",
    "developers",
    "developer",
    "dev",
    "api",
    "reference",
    "help",
    "support",
    "learn",
    "guide",
    "guides",
    "wiki",
    "kb",
    "knowledge",
    "manual",
    "handbook",
    "resources",
    "devdocs",
    "apidocs",
    "dev-docs",
    "api-reference",
    "portal",
    "devportal",
    "dev-portal",
    "platform",
    "openapi",
    "swagger",
    "spec",
    "specs",
)

# Common documentation paths, ordered by likelihood
DOC_PATHS = (
    "/docs",
    "/documentation",
    "/api",
    "/api-docs",
    "/developer",
    "/developers",
    "/reference",
    "/help",
    "/guide",
    "/guides",
    "/learn",
    "/manual",
    "/handbook",
    "/resources",
    "/wiki",
    "/kb",
    "/knowledge-base",
    "/support",
    "/getting-started",
    "/quickstart",
    "/tutorials",
    "/examples",
    "/api-reference",
    "/openapi",
    "/swagger",
)

_HOST_RE = re.compile(r"^[a-z0-9_]([a-z0-9_-]*[a-z0-9_])?(\.[a-z0-9_]([a-z0-9_-]*[a-z0-9_])?)*$")


class InvalidUrlError(ValueError):
    """Raised when input cannot be parsed as a URL, even with ``https://`` added."""


class DomainParts(NamedTuple):
    protocol: str  # "https" or "http"
    hostname: str  # Lower-cased host without port
    netloc: str  # Host plus explicit port, as the user gave it
    path: str
    base_domain: str
    tld: str
    full_domain: str  # base_domain + tld, no subdomain
    has_subdomain: bool
    subdomain: str | None

    @property
    def origin(self) -> str:
        return f"{self.protocol}://{self.netloc}"

    def url_for(self, host: str, path: str = "") -> str:
        return f"{self.protocol}://{host}{path}"


def normalize_url(raw: str) -> DomainParts:
    """Parse a user-supplied URL or bare domain into its domain parts.

    Compound TLDs (``co.uk``, ``com.au``, ...) keep the third-from-last
    label as the base domain. A ``www`` subdomain counts as no subdomain.

    Raises:
        InvalidUrlError: If the string is not a usable http(s) URL.
    """
    text = (raw or "").strip()
    if not text:
        raise InvalidUrlError("URL is empty")
    if not text.lower().startswith(("http://", "https://")):
        text = f"https://{text}"

    try:
        parsed = urlparse(text)
        hostname = (parsed.hostname or "").rstrip(".")
        port = parsed.port
    except ValueError as e:
        raise InvalidUrlError(f"Invalid URL: {raw!r} ({e})") from e

    if not hostname:
        raise InvalidUrlError(f"Invalid URL: {raw!r} has no host")

    netloc = f"{hostname}:{port}" if port else hostname
    protocol = parsed.scheme.lower()

    try:
        ipaddress.ip_address(hostname)
        is_ip = True
    except ValueError:
        is_ip = False

    if is_ip:
        return DomainParts(
            protocol, hostname, netloc, parsed.path, hostname, "", hostname, False, None
        )

    if not _HOST_RE.match(hostname):
        raise InvalidUrlError(f"Invalid URL: {raw!r} has a malformed host")

    parts = hostname.split(".")
    subdomain: str | None = None
    last_two = ".".join(parts[-2:])

    if last_two in COMPOUND_TLDS and len(parts) >= 3:
        tld = last_two
        base_domain = parts[-3]
        if len(parts) > 3:
            subdomain = ".".join(parts[:-3])
    elif len(parts) >= 2:
        tld = parts[-1]
        base_domain = parts[-2]
        if len(parts) > 2:
            subdomain = ".".join(parts[:-2])
    else:
        # Single-label host (intranet names, localhost)
        tld = ""
        base_domain = parts[0]

    full_domain = f"{base_domain}.{tld}" if tld else base_domain
    if subdomain == "www":
        subdomain = None

    return DomainParts(
        protocol=protocol,
        hostname=hostname,
        netloc=netloc,
        path=parsed.path,
        base_domain=base_domain,
        tld=tld,
        full_domain=full_domain,
        has_subdomain=subdomain is not None,
        subdomain=subdomain,
    )


def normalize_url_key(url: str) -> str:
    """Normalize a URL for deduplication and cache keys.

    Scheme and host are lower-cased; the path keeps its case and loses a
    trailing slash.
    """
    text = url.strip()
    if "://" not in text:
        text = f"https://{text}"
    parsed = urlparse(text)
    path = parsed.path.rstrip("/")
    key = f"{parsed.scheme.lower()}://{parsed.netloc.lower()}{path}"
    if parsed.query:
        key += f"?{parsed.query}"
    return key


def dedupe_candidates(
    candidates: list[DiscoveredCandidate],
) -> list[DiscoveredCandidate]:
    """Sort by priority and drop repeats; the lowest-priority instance wins."""
    seen: set[str] = set()
    unique: list[DiscoveredCandidate] = []
    for candidate in sorted(candidates, key=lambda c: c.priority):
        key = normalize_url_key(candidate.url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique


def generate_candidates(parts: DomainParts) -> list[DiscoveredCandidate]:
    """Produce ranked documentation locations for a normalized domain.

    Priorities: 0 for an explicit user subdomain, 1 for an explicit user
    path, 5/6 for the bare and ``www.`` domain, 10+ for the subdomain table
    and 50+ for the path table.
    """
    candidates: list[DiscoveredCandidate] = []
    full = parts.full_domain

    if parts.has_subdomain:
        candidates.append(
            DiscoveredCandidate(
                url=parts.origin, priority=0, source="user-provided-subdomain"
            )
        )

    path = parts.path.rstrip("/")
    if path:
        candidates.append(
            DiscoveredCandidate(
                url=f"{parts.origin}{path}", priority=1, source="user-provided-path"
            )
        )

    candidates.append(
        DiscoveredCandidate(url=parts.url_for(full), priority=5, source="main-domain")
    )
    candidates.append(
        DiscoveredCandidate(
            url=parts.url_for(f"www.{full}"), priority=6, source="www-domain"
        )
    )

    for index, sub in enumerate(DOC_SUBDOMAINS):
        candidates.append(
            DiscoveredCandidate(
                url=parts.url_for(f"{sub}.{full}"),
                priority=10 + index,
                source="subdomain-pattern",
            )
        )

    for index, doc_path in enumerate(DOC_PATHS):
        candidates.append(
            DiscoveredCandidate(
                url=parts.url_for(full, doc_path),
                priority=50 + index,
                source="path-pattern",
            )
        )
        candidates.append(
            DiscoveredCandidate(
                url=parts.url_for(f"www.{full}", doc_path),
                priority=51 + index,
                source="path-pattern",
            )
        )

    return dedupe_candidates(candidates)


def site_name(url: str) -> str:
    """Short site name: host without ``www.``/``docs.``, first label."""
    text = url.strip()
    if "://" not in text:
        text = f"https://{text}"
    host = (urlparse(text).hostname or "").removeprefix("www.").removeprefix("docs.")
    return host.split(".")[0] if host else "site"
