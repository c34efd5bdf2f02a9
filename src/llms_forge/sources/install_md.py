"""install.md parsing and validation.

install.md is a markdown convention for LLM-executable installation
instructions: an H1 product name, a blockquote description, ``OBJECTIVE:``
and ``DONE WHEN:`` lines, a ``## TODO`` checklist, one ``##`` section per
step and a closing ``EXECUTE NOW:`` call-to-action.

Extraction is regex-based. Structural problems are reported as data in
``ParsedInstallMd.validation_errors``; nothing here raises on bad input.
"""

import re

from loguru import logger

from llms_forge.models import CodeBlock, InstallStep, ParsedInstallMd, TodoItem
from llms_forge.sources.http import fetch_text
from llms_forge.sources.urls import normalize_url

_H1_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)
_H1_PRESENT_RE = re.compile(r"^#\s+\S", re.MULTILINE)
_BLOCKQUOTE_RE = re.compile(r"^>\s*(.+)$", re.MULTILINE)
_ACTION_PROMPT_RE = re.compile(r"^I want you .+$", re.MULTILINE)
_OBJECTIVE_RE = re.compile(r"OBJECTIVE:[ \t]*([^\n]*)", re.IGNORECASE)
_DONE_WHEN_RE = re.compile(r"DONE WHEN:[ \t]*([^\n]*)", re.IGNORECASE)
_TODO_HEADER_RE = re.compile(r"##\s*TODO", re.IGNORECASE)
_TODO_SECTION_RE = re.compile(
    r"##\s*TODO\s*\n([\s\S]*?)(?=\n##|\n---|\nEXECUTE NOW|\Z)", re.IGNORECASE
)
_CHECKBOX_RE = re.compile(r"^-\s*\[([ xX])\]\s*(.+)$", re.MULTILINE)
_STEP_HEADER_RE = re.compile(r"^##\s+(?!TODO\b)(.+)$", re.MULTILINE)
_CODE_BLOCK_RE = re.compile(r"```(\w*)\n([\s\S]*?)```")
_EXECUTE_NOW_RE = re.compile(r"EXECUTE NOW:", re.IGNORECASE)

_SKIPPED_STEP_TITLES = ("TODO", "EXECUTE NOW")


# ---------------------------------------------------------------------------
# Field extraction
# ---------------------------------------------------------------------------


def _first_group(pattern: re.Pattern, content: str) -> str:
    match = pattern.search(content)
    return match.group(1).strip() if match else ""


def _extract_action_prompt(content: str) -> str:
    match = _ACTION_PROMPT_RE.search(content)
    if match:
        return match.group(0).strip()

    # Fall back to the last instruction-looking line before OBJECTIVE:
    index = content.find("OBJECTIVE:")
    if index == -1:
        return ""
    lines = [
        line
        for line in content[:index].split("\n")
        if line.strip() and not line.startswith(("#", ">", "```"))
    ]
    for line in reversed(lines):
        if "Execute" in line or "install" in line or "I want" in line:
            return line.strip()
    return ""


def _extract_todo_items(content: str) -> list[TodoItem]:
    section = _TODO_SECTION_RE.search(content)
    if not section:
        return []
    return [
        TodoItem(
            id=f"todo-{i}",
            text=match.group(2).strip(),
            completed=match.group(1).lower() == "x",
        )
        for i, match in enumerate(_CHECKBOX_RE.finditer(section.group(1)), start=1)
    ]


def _extract_code_blocks(section: str) -> list[CodeBlock]:
    blocks: list[CodeBlock] = []
    for match in _CODE_BLOCK_RE.finditer(section):
        label = None
        preceding = [
            line.strip()
            for line in section[: match.start()].split("\n")
            if line.strip() and not line.lstrip().startswith("#")
        ]
        # A closing fence right before the block means no label line
        if preceding and not preceding[-1].startswith("```"):
            last = preceding[-1]
            if last.endswith(":") or "using" in last.lower():
                label = last.removesuffix(":").strip()
        blocks.append(
            CodeBlock(
                language=match.group(1) or "bash",
                code=match.group(2).strip(),
                label=label,
            )
        )
    return blocks


def _extract_steps(content: str) -> list[InstallStep]:
    headers = [
        (match.start(), match.group(1).strip())
        for match in _STEP_HEADER_RE.finditer(content)
        if not any(skip in match.group(1).upper() for skip in _SKIPPED_STEP_TITLES)
    ]

    steps: list[InstallStep] = []
    for i, (start, title) in enumerate(headers):
        end = headers[i + 1][0] if i + 1 < len(headers) else len(content)
        execute_now = content.find("EXECUTE NOW:", start)
        if start < execute_now < end:
            end = execute_now
        section = content[start:end]

        header_end = section.find("\n") + 1
        first_fence = section.find("```")
        description_end = first_fence if first_fence > -1 else len(section)
        description = "\n".join(
            line
            for line in section[header_end:description_end].split("\n")
            if line.strip() and not line.startswith("#")
        ).strip()

        steps.append(
            InstallStep(
                id=f"step-{i + 1}",
                title=title,
                description=description,
                code_blocks=_extract_code_blocks(section),
            )
        )
    return steps


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_install_md(content: str) -> list[str]:
    """Run every structural check and collect all failures."""
    errors: list[str] = []
    if not _H1_PRESENT_RE.search(content):
        errors.append("Missing product name (H1 header)")
    if not _OBJECTIVE_RE.search(content):
        errors.append("Missing OBJECTIVE declaration")
    if not _DONE_WHEN_RE.search(content):
        errors.append("Missing DONE WHEN criteria")
    if not _TODO_HEADER_RE.search(content):
        errors.append("Missing TODO section with checkbox items")
    # Counts every non-TODO "## " header, so two are needed for one step
    if len(_STEP_HEADER_RE.findall(content)) < 2:
        errors.append("Should have at least one step section beyond TODO")
    if not _EXECUTE_NOW_RE.search(content):
        errors.append("Missing EXECUTE NOW call-to-action")
    return errors


def is_valid_install_md(content: str) -> bool:
    """Cheap pre-filter: H1, OBJECTIVE, DONE WHEN and a TODO header.

    Unlike :func:`validate_install_md` this does not require
    ``EXECUTE NOW:``, so a document can pass here and still be invalid.
    """
    return bool(
        _H1_PRESENT_RE.search(content)
        and _OBJECTIVE_RE.search(content)
        and _DONE_WHEN_RE.search(content)
        and _TODO_HEADER_RE.search(content)
    )


def parse_install_md(content: str) -> ParsedInstallMd:
    """Parse install.md content into its structured parts."""
    errors = validate_install_md(content)
    return ParsedInstallMd(
        raw=content,
        product_name=_first_group(_H1_RE, content),
        description=_first_group(_BLOCKQUOTE_RE, content),
        action_prompt=_extract_action_prompt(content),
        objective=_first_group(_OBJECTIVE_RE, content),
        done_when=_first_group(_DONE_WHEN_RE, content),
        todo_items=_extract_todo_items(content),
        steps=_extract_steps(content),
        is_valid=not errors,
        validation_errors=errors,
    )


def get_install_md_summary(parsed: ParsedInstallMd) -> dict:
    return {
        "product_name": parsed.product_name,
        "objective": parsed.objective,
        "step_count": len(parsed.steps),
        "todo_count": len(parsed.todo_items),
        "has_code_blocks": any(step.code_blocks for step in parsed.steps),
    }


# ---------------------------------------------------------------------------
# Remote install.md
# ---------------------------------------------------------------------------


async def fetch_install_md(url: str) -> ParsedInstallMd | None:
    """Fetch and parse install.md at ``url``.

    Returns None when the fetch fails or the body does not pass the quick check.
    """
    fetched = await fetch_text(url, accept="text/markdown, text/plain, */*")
    if fetched is None:
        return None
    if not is_valid_install_md(fetched[0]):
        logger.debug(f"{url} does not look like install.md")
        return None
    return parse_install_md(fetched[0])


async def find_install_md(url: str) -> tuple[ParsedInstallMd | None, str | None]:
    """Probe the usual install.md locations for the site behind ``url``.

    Tries ``/install.md`` and ``/docs/install.md`` on the given host, then
    ``install.md`` on its ``docs.`` subdomain.
    """
    parts = normalize_url(url)
    bare = parts.netloc.removeprefix("docs.")
    locations = [
        f"{parts.origin}/install.md",
        f"{parts.origin}/docs/install.md",
        f"https://docs.{bare}/install.md",
    ]
    for location in locations:
        parsed = await fetch_install_md(location)
        if parsed is not None:
            logger.info(f"Found install.md at {location}")
            return parsed, location
    return None, None
