"""Documentation extraction pipeline.

Locates a site's llms.txt (directly, then via discovery), segments it,
pulls in sibling ``llms-*.txt`` files, builds the combined document and
agent guide, and looks for an install.md alongside.
"""

import time

from loguru import logger

from llms_forge.config import settings
from llms_forge.models import ExtractionResult, ExtractionStats
from llms_forge.sources.content import (
    build_agent_guide,
    build_full_document,
    detect_linked_files,
    fetch_linked_files,
    segment_content,
    segment_linked_files,
)
from llms_forge.sources.discovery import (
    check_for_llms_txt,
    discover as discover_llms_txt,
)
from llms_forge.sources.install_md import find_install_md
from llms_forge.sources.probes import fetch_llms_file
from llms_forge.sources.urls import normalize_url, site_name

# Discovery budget when extraction falls back to a full scan
EXTRACT_DISCOVERY_TIMEOUT_MS = 20000


async def _locate(url: str, discover: bool) -> tuple[str, str, str | None] | None:
    """Return ``(content, source_url, discovered_from)`` or None."""
    parts = normalize_url(url)
    base = f"{parts.origin}{parts.path.rstrip('/')}"

    hit = await check_for_llms_txt(base, timeout=settings.fetch_timeout)
    if hit is not None:
        return hit.content, hit.final_url, None

    if not discover:
        return None

    logger.info(f"No llms.txt at {base}, running discovery")
    result = await discover_llms_txt(url, timeout_ms=EXTRACT_DISCOVERY_TIMEOUT_MS)
    if not result.found or not result.content_url:
        return None

    hit = await fetch_llms_file(result.content_url, timeout=settings.fetch_timeout)
    if hit is None:
        logger.warning(f"Discovered {result.content_url} but could not fetch it")
        return None
    return hit.content, hit.final_url, result.canonical_url


async def extract_documentation(
    url: str, discover: bool = True
) -> ExtractionResult | None:
    """Fetch and segment a site's llms.txt documentation.

    Args:
        url: Site or documentation URL.
        discover: Run discovery when llms.txt is not at ``url`` itself.

    Returns:
        The extraction, or None when no llms.txt could be found.

    Raises:
        InvalidUrlError: If ``url`` cannot be parsed.
    """
    start = time.monotonic()
    located = await _locate(url, discover)
    if located is None:
        logger.info(f"No llms.txt found for {url}")
        return None
    content, source_url, discovered_from = located
    site = site_name(url)

    documents = segment_content(content, source_url=source_url)

    linked = await fetch_linked_files(detect_linked_files(content, source_url))
    documents += segment_linked_files(linked, start_index=len(documents) + 1)

    full_document = build_full_document(site, content, linked)
    agent_guide = build_agent_guide(site, source_url, linked)

    install_md, install_md_url = await find_install_md(url)

    fetched_count = sum(1 for item in linked if item.content)
    total_tokens = (
        sum(d.token_estimate for d in documents)
        + full_document.token_estimate
        + agent_guide.token_estimate
    )
    logger.info(
        f"Extracted {len(documents)} documents from {source_url} "
        f"({fetched_count} linked sources)"
    )

    return ExtractionResult(
        url=url,
        source_url=source_url,
        discovered_from=discovered_from,
        raw_content=content,
        documents=documents,
        full_document=full_document,
        agent_guide=agent_guide,
        linked_sources=linked,
        install_md=install_md,
        install_md_url=install_md_url,
        stats=ExtractionStats(
            total_tokens=total_tokens,
            document_count=len(documents),
            processing_ms=int((time.monotonic() - start) * 1000),
            linked_source_count=fetched_count,
        ),
    )
