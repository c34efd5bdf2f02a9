"""Tests for src/llms_forge/sources/content.py: validation and segmentation."""

import pytest

from llms_forge.models import LinkedSource
from llms_forge.sources.content import (
    build_agent_guide,
    build_full_document,
    build_readme_index,
    classify_content_type,
    detect_linked_files,
    estimate_tokens,
    fetch_linked_files,
    is_valid_llms_content,
    segment_content,
    segment_linked_files,
    slugify,
)

ACME_LLMS = (
    "# Acme\n\n> Acme docs intro here.\n\n"
    "## Getting Started\n\nInstall the thing and run it.\n\n"
    "## API Reference\n\nCall the endpoints with a token."
)

LINKS = (
    "- [API](https://acme.com/llms-api.txt): API reference\n"
    "- [API full](https://acme.com/llms-api-full.txt)\n"
    "- https://acme.com/llms.txt\n"
    "- [Guides](https://acme.com/llms-guides.txt)\n"
)

# -----------------------------------------------------------------------
# Validation heuristics
# -----------------------------------------------------------------------


class TestIsValidLlmsContent:
    @pytest.mark.parametrize(
        "text",
        ["# Title", "> quote", "- item", "* item", "[link](x)", "```\ncode\n```"],
    )
    def test_markdown_signals(self, text):
        assert is_valid_llms_content(text) is True

    @pytest.mark.parametrize(
        "text",
        [
            "<!DOCTYPE html><html># not docs</html>",
            "  <html><body>- x</body></html>",
            "<head><title># x</title></head>",
        ],
    )
    def test_html_rejected(self, text):
        """HTML pages are rejected even when they contain markdown-ish text."""
        assert is_valid_llms_content(text) is False

    @pytest.mark.parametrize("text", [None, "", "   \n ", "plain words only"])
    def test_empty_or_plain(self, text):
        assert is_valid_llms_content(text) is False


class TestClassifyContentType:
    def test_short_plain_is_standard(self):
        assert classify_content_type("# T\n\n- [a](b)") == "standard"

    def test_h2_header_is_full(self):
        assert classify_content_type("# T\n\n## Section") == "full"

    def test_h3_header_is_full(self):
        assert classify_content_type("### Sub") == "full"

    def test_many_lines_is_full(self):
        """More than 50 lines counts as full."""
        assert classify_content_type("line\n" * 51) == "full"
        assert classify_content_type("\n".join(["line"] * 50)) == "standard"

    def test_thirty_line_document_is_standard(self):
        text = "\n".join(["- " + "x" * 24] * 30)
        assert len(text) < 1000
        assert classify_content_type(text) == "standard"

    def test_large_body_is_full(self):
        assert classify_content_type("a" * 5001) == "full"
        assert classify_content_type("a" * 5000) == "standard"


class TestHelpers:
    def test_slugify(self):
        assert slugify("Hello, World!") == "hello-world"
        assert slugify("  --Foo--  ") == "foo"
        assert len(slugify("x" * 80)) == 50

    def test_estimate_tokens(self):
        """ceil(len / 4)."""
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2


# -----------------------------------------------------------------------
# segment_content
# -----------------------------------------------------------------------


class TestSegmentContent:
    def test_intro_and_sections(self):
        docs = segment_content(ACME_LLMS)
        assert [d.filename for d in docs] == [
            "01-introduction.md",
            "02-getting-started.md",
            "03-api-reference.md",
        ]
        assert docs[0].title == "Introduction"
        assert docs[0].content == "# Acme\n\n> Acme docs intro here."
        assert docs[1].title == "Getting Started"
        assert docs[1].content == "## Getting Started\n\nInstall the thing and run it."

    def test_sections_reproduced_in_order(self):
        """Joined section documents contain every section of the input."""
        joined = "\n\n".join(d.content for d in segment_content(ACME_LLMS)[1:])
        assert joined == ACME_LLMS[ACME_LLMS.index("## Getting Started") :]

    def test_token_estimates(self):
        for doc in segment_content(ACME_LLMS):
            assert doc.token_estimate == estimate_tokens(doc.content)

    def test_short_sections_dropped(self):
        """Sections under 20 characters after trimming are skipped."""
        text = ACME_LLMS + "\n\n## A\n\nhi"
        docs = segment_content(text)
        assert len(docs) == 3

    def test_fallback_single_document(self):
        """Only short sections, but enough text overall: one Documentation page."""
        text = "## A\n\nshort\n\n## B\n\nshort"
        docs = segment_content(text)
        assert len(docs) == 1
        assert docs[0].filename == "01-documentation.md"
        assert docs[0].title == "Documentation"
        assert docs[0].content == text

    def test_empty_content(self):
        assert segment_content("") == []
        assert segment_content("tiny") == []

    def test_filenames_unique_with_duplicate_titles(self):
        text = (
            "## Setup\n\nFirst setup section with text.\n\n"
            "## Setup\n\nSecond setup section with text."
        )
        names = [d.filename for d in segment_content(text)]
        assert names == ["01-setup.md", "02-setup.md"]

    def test_named_segments(self):
        """Sibling-file segments embed the file name in titles and filenames."""
        text = "Intro text long enough for a doc\n\n## Auth\n\nUse bearer tokens for calls."
        docs = segment_content(text, name="API", start_index=4, source_url="https://x/llms-api.txt")
        assert [d.filename for d in docs] == ["04-api-introduction.md", "05-api-auth.md"]
        assert [d.title for d in docs] == ["API: Introduction", "API: Auth"]
        assert all(d.source_url == "https://x/llms-api.txt" for d in docs)


# -----------------------------------------------------------------------
# Sibling files
# -----------------------------------------------------------------------


class TestDetectLinkedFiles:
    def test_full_variant_preferred(self):
        linked = detect_linked_files(LINKS)
        assert [item.url for item in linked] == [
            "https://acme.com/llms-api-full.txt",
            "https://acme.com/llms-guides.txt",
        ]
        assert linked[0].name == "Api"
        assert linked[0].is_full is True
        assert linked[1].name == "Guides"

    def test_description_from_line(self):
        linked = detect_linked_files("- [API](https://acme.com/llms-api.txt): API reference")
        assert linked[0].description == "API reference"

    def test_canonical_and_source_skipped(self):
        text = "see https://acme.com/llms.txt and https://acme.com/llms-full.txt"
        assert detect_linked_files(text, source_url="https://acme.com/llms-full.txt") == []

    def test_no_links(self):
        assert detect_linked_files(ACME_LLMS) == []


class TestFetchLinkedFiles:
    async def test_fills_content_for_fetched(self, http):
        http.add(
            "https://acme.com/llms-api-full.txt",
            "# API\n\n## Auth\n\nUse bearer tokens for every call.",
        )
        linked = await fetch_linked_files(detect_linked_files(LINKS))
        assert len(linked) == 2
        assert linked[0].content.startswith("# API")
        assert linked[1].content is None

    async def test_invalid_content_ignored(self, http):
        http.add("https://acme.com/llms-guides.txt", "<html>not docs</html>")
        linked = await fetch_linked_files(
            [LinkedSource(url="https://acme.com/llms-guides.txt", name="Guides")]
        )
        assert linked[0].content is None

    async def test_empty_input(self, http):
        assert await fetch_linked_files([]) == []
        assert http.requested() == []


class TestSegmentLinkedFiles:
    def test_continues_index(self):
        linked = [
            LinkedSource(
                url="https://acme.com/llms-api-full.txt",
                name="Api",
                content="# API\n\n## Auth\n\nUse bearer tokens for every call.",
            ),
            LinkedSource(url="https://acme.com/llms-guides.txt", name="Guides"),
        ]
        docs = segment_linked_files(linked, start_index=3)
        assert [d.filename for d in docs] == ["03-api-auth.md"]
        assert docs[0].title == "Api: Auth"
        assert docs[0].source_url == "https://acme.com/llms-api-full.txt"


# -----------------------------------------------------------------------
# Combined outputs
# -----------------------------------------------------------------------


class TestCombinedOutputs:
    linked = [
        LinkedSource(
            url="https://acme.com/llms-api-full.txt", name="Api", content="# API docs"
        ),
        LinkedSource(url="https://acme.com/llms-guides.txt", name="Guides"),
    ]

    def test_full_document_with_linked(self):
        doc = build_full_document("acme", ACME_LLMS, self.linked)
        assert doc.filename == "docs.md"
        assert doc.title == "acme Documentation"
        assert doc.content.startswith(ACME_LLMS)
        assert "# Additional Documentation Sources" in doc.content
        assert "> Source: https://acme.com/llms-api-full.txt" in doc.content
        assert "llms-guides" not in doc.content

    def test_full_document_without_linked(self):
        doc = build_full_document("acme", ACME_LLMS, [])
        assert doc.content == ACME_LLMS
        assert doc.token_estimate == estimate_tokens(ACME_LLMS)

    def test_agent_guide(self):
        doc = build_agent_guide("acme", "https://acme.com/llms.txt", self.linked)
        assert doc.filename == "AGENT-GUIDE.md"
        assert "Extracted from https://acme.com/llms.txt" in doc.content
        assert "- Main: https://acme.com/llms.txt" in doc.content
        assert "- Api: https://acme.com/llms-api-full.txt" in doc.content

    def test_readme_index(self):
        docs = segment_content(ACME_LLMS)
        readme = build_readme_index("acme", "https://acme.com/llms.txt", docs, "2026-01-01")
        assert "Total Pages: 3" in readme
        assert "- [Introduction](./01-introduction.md)" in readme
        assert "Date: 2026-01-01" in readme
