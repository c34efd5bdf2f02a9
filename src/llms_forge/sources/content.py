"""llms.txt content validation and segmentation.

The validity and full/standard checks are deliberately coarse heuristics:
a short genuine llms.txt and a long non-documentation page can both land
on the wrong side. Downstream consumers rely on these exact thresholds, so
they are kept as-is rather than replaced with a smarter classifier.
"""

import asyncio
import math
import re

from loguru import logger

from llms_forge.config import settings
from llms_forge.models import ContentType, Document, LinkedSource
from llms_forge.sources.http import CONTENT_ACCEPT, fetch_text

# Sections shorter than this (after trimming) are dropped
MIN_SECTION_CHARS = 20
# Line/byte thresholds above which content counts as "full"
FULL_LINE_THRESHOLD = 50
FULL_BYTE_THRESHOLD = 5000

_HTML_PREFIXES = ("<!doctype", "<html", "<head")
_MARKDOWN_SIGNALS = ("#", ">", "- ", "* ", "[", "```")

_SECTION_SPLIT_RE = re.compile(r"^## ", re.MULTILINE)
_SLUG_RE = re.compile(r"[^a-z0-9]+")
_LINKED_URL_RE = re.compile(r"https?://[^\s<>\"']+/llms[^/\s<>\"']*\.txt", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def is_valid_llms_content(text: str | None) -> bool:
    """Return True if ``text`` looks like llms.txt rather than an HTML page.

    Requires non-empty text that does not open with an HTML document tag
    and carries at least one markdown signal (heading, blockquote, list
    marker, link bracket or code fence).
    """
    if not text or not text.strip():
        return False
    lowered = text.strip().lower()
    if lowered.startswith(_HTML_PREFIXES):
        return False
    return any(signal in text for signal in _MARKDOWN_SIGNALS)


def classify_content_type(text: str) -> ContentType:
    """Classify llms.txt content as ``full`` or ``standard``.

    Known approximation: any ``## ``/``### `` header, more than 50 lines,
    or more than 5000 bytes makes it "full".
    """
    if "## " in text or "### " in text:
        return "full"
    if len(text.split("\n")) > FULL_LINE_THRESHOLD:
        return "full"
    if len(text.encode("utf-8")) > FULL_BYTE_THRESHOLD:
        return "full"
    return "standard"


# ---------------------------------------------------------------------------
# Segmentation
# ---------------------------------------------------------------------------


def slugify(text: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to ``-``, trim, cap at 50 chars."""
    return _SLUG_RE.sub("-", text.lower()).strip("-")[:50]


def estimate_tokens(text: str) -> int:
    """Coarse token estimate: one token per four characters, rounded up.

    Not a real tokenizer; fixtures and UI copy assume this exact formula.
    """
    return math.ceil(len(text) / 4)


def _make_document(
    index: int,
    stem: str,
    title: str,
    content: str,
    source_url: str | None,
) -> Document:
    return Document(
        filename=f"{index:02d}-{stem}.md",
        title=title,
        content=content,
        token_estimate=estimate_tokens(content),
        source_url=source_url,
    )


def segment_content(
    content: str,
    *,
    start_index: int = 1,
    intro_title: str = "Introduction",
    source_url: str | None = None,
    name: str = "",
) -> list[Document]:
    """Split llms.txt content into one document per ``## `` section.

    The chunk before the first ``## `` header is the introduction. Every
    other chunk takes its first line as title and is stored re-prefixed
    with ``## ``. Filenames are ``{index:02d}-{slug}.md`` with a running
    index starting at ``start_index``, so they are unique within one call.

    When ``name`` is given (sibling files), titles become ``"{name}: {title}"``
    and filenames embed ``slug(name)``.
    """
    documents: list[Document] = []
    name_slug = slugify(name) if name else ""

    for i, chunk in enumerate(_SECTION_SPLIT_RE.split(content)):
        section = chunk.strip()
        if len(section) < MIN_SECTION_CHARS:
            continue

        lines = section.split("\n")
        if i == 0:
            title = intro_title
            body = section
        else:
            heading = lines[0].strip()
            title = heading or f"Section {i}"
            rest = "\n".join(lines[1:]).strip()
            body = f"## {heading}\n\n{rest}"

        stem = f"{name_slug}-{slugify(title)}" if name_slug else slugify(title)
        documents.append(
            _make_document(
                start_index + len(documents),
                stem,
                f"{name}: {title}" if name else title,
                body,
                source_url,
            )
        )

    if not documents and len(content.strip()) > MIN_SECTION_CHARS:
        title = f"{name}: Documentation" if name else "Documentation"
        stem = f"{name_slug}-documentation" if name_slug else "documentation"
        documents.append(
            _make_document(start_index, stem, title, content, source_url)
        )

    return documents


# ---------------------------------------------------------------------------
# Sibling llms-*.txt files
# ---------------------------------------------------------------------------


def _linked_name(filename: str) -> str:
    base = re.sub(r"^llms-?", "", filename, flags=re.IGNORECASE)
    base = re.sub(r"-full\.txt$", "", base, flags=re.IGNORECASE)
    base = re.sub(r"\.txt$", "", base, flags=re.IGNORECASE)
    base = base.replace("-", " ").strip()
    if not base:
        return "Documentation"
    return base[0].upper() + base[1:]


def _linked_description(content: str, url: str) -> str | None:
    line = next((ln for ln in content.split("\n") if url in ln), "")
    text = line.replace(url, "")
    text = re.sub(r"[-–—:]", "", text)
    text = re.sub(r"\[.*?\]", "", text)
    text = re.sub(r"\(.*?\)", "", text)
    return text.strip() or None


def detect_linked_files(content: str, source_url: str = "") -> list[LinkedSource]:
    """Find sibling ``llms*.txt`` URLs referenced in ``content``.

    The canonical ``llms.txt`` (and ``source_url`` itself) is skipped. When
    several URLs share a base name, the ``-full`` variant wins.
    """
    by_base: dict[str, list[LinkedSource]] = {}
    seen: set[str] = set()

    for match in _LINKED_URL_RE.finditer(content):
        url = match.group(0)
        if url in seen:
            continue
        seen.add(url)

        filename = url.rsplit("/", 1)[-1]
        if filename.lower() == "llms.txt" or url == source_url:
            continue

        name = _linked_name(filename)
        linked = LinkedSource(
            url=url,
            name=name,
            description=_linked_description(content, url),
            is_full="-full" in filename.lower(),
        )
        by_base.setdefault(name.lower(), []).append(linked)

    selected: list[LinkedSource] = []
    for variants in by_base.values():
        full = [v for v in variants if v.is_full]
        selected.append(full[0] if full else variants[0])
    return selected


async def fetch_linked_files(files: list[LinkedSource]) -> list[LinkedSource]:
    """Fetch sibling files with bounded concurrency.

    Returns every input entry, with ``content`` filled in for those that
    were fetched and validated.
    """
    if not files:
        return []

    semaphore = asyncio.Semaphore(settings.linked_fetch_concurrency)

    async def _fetch_one(linked: LinkedSource) -> LinkedSource:
        async with semaphore:
            fetched = await fetch_text(linked.url, accept=CONTENT_ACCEPT)
        if fetched is None or not is_valid_llms_content(fetched[0]):
            logger.debug(f"Linked llms file unavailable: {linked.url}")
            return linked
        return linked.model_copy(update={"content": fetched[0]})

    return list(await asyncio.gather(*[_fetch_one(f) for f in files]))


def segment_linked_files(
    linked: list[LinkedSource], start_index: int
) -> list[Document]:
    """Segment fetched sibling files, continuing the running filename index."""
    documents: list[Document] = []
    for source in linked:
        if not source.content:
            continue
        documents.extend(
            segment_content(
                source.content,
                start_index=start_index + len(documents),
                intro_title=source.name or "Documentation",
                source_url=source.url,
                name=source.name,
            )
        )
    return documents


# ---------------------------------------------------------------------------
# Combined outputs
# ---------------------------------------------------------------------------


def build_full_document(
    site: str, content: str, linked: list[LinkedSource]
) -> Document:
    """Concatenate primary and sibling content into a single ``docs.md``."""
    combined = content
    fetched = [item for item in linked if item.content]
    if fetched:
        combined += "\n\n---\n\n# Additional Documentation Sources\n\n"
        for item in fetched:
            combined += (
                f"\n\n---\n\n## {item.name}\n\n> Source: {item.url}\n\n{item.content}"
            )
    return Document(
        filename="docs.md",
        title=f"{site} Documentation",
        content=combined,
        token_estimate=estimate_tokens(combined),
    )


def build_agent_guide(
    site: str, source_url: str, linked: list[LinkedSource]
) -> Document:
    text = (
        f"# {site} Documentation\n\nExtracted from {source_url}\n\n"
        f"Use this documentation to answer questions about {site}."
    )
    fetched = [item for item in linked if item.content]
    if fetched:
        text += (
            "\n\n## Documentation Sources\n\n"
            "This extraction includes content from multiple documentation sources:\n"
            f"\n- Main: {source_url}"
        )
        for item in fetched:
            text += f"\n- {item.name}: {item.url}"
    return Document(
        filename="AGENT-GUIDE.md",
        title="Agent Guide",
        content=text,
        token_estimate=estimate_tokens(text),
    )


def build_readme_index(
    site: str, source_url: str, documents: list[Document], extracted_at: str
) -> str:
    """Markdown index linking every split document."""
    pages = "\n".join(f"- [{d.title}](./{d.filename})" for d in documents)
    return (
        f"# {site} Documentation\n\n"
        f"Extracted from: {source_url}\n"
        f"Date: {extracted_at}\n"
        f"Total Pages: {len(documents)}\n\n"
        f"## Pages\n\n{pages}\n"
    )
