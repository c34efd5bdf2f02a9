"""Value objects produced by discovery, segmentation and install.md parsing.

All models are created and owned by a single discovery or parse call.
Discovery results and documents are frozen; callers that need to change
one build a new instance via ``model_copy(update=...)``.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

ContentType = Literal["full", "standard"]
Confidence = Literal["high", "medium", "low"]


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class DiscoveredCandidate(BaseModel):
    """A location that may host llms.txt, tagged with the strategy that found it."""

    model_config = ConfigDict(frozen=True)

    url: str
    priority: int  # Lower = tried first
    source: str


class PlatformHints(BaseModel):
    model_config = ConfigDict(frozen=True)

    platform: str | None = None
    sitemap_found: bool | None = None
    robots_found: bool | None = None
    git_repo_url: str | None = None


class DiscoveryResult(BaseModel):
    """Outcome of one discovery (or quick check) call."""

    model_config = ConfigDict(frozen=True)

    found: bool
    canonical_url: str | None = None
    content_url: str | None = None
    content_type: ContentType | None = None
    scanned_urls: list[str] = Field(default_factory=list)
    elapsed_ms: int = 0
    method: str = "not-found"
    confidence: Confidence = "low"
    platform_hints: PlatformHints = Field(default_factory=PlatformHints)


class LlmsFileInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    size: int
    type: ContentType
    last_modified: str | None = None


class InstallMdLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    exists: bool
    url: str | None = None


class SiteVerification(BaseModel):
    """Availability report for a single site's llms.txt files."""

    model_config = ConfigDict(frozen=True)

    status: Literal["online", "offline", "error"]
    llms_txt: LlmsFileInfo | None = None
    llms_full_txt: LlmsFileInfo | None = None
    install_md: InstallMdLocation = Field(
        default_factory=lambda: InstallMdLocation(exists=False)
    )
    response_time_ms: int = 0
    checked_at: str
    error: str | None = None


# ---------------------------------------------------------------------------
# Segmentation
# ---------------------------------------------------------------------------


class Document(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    title: str
    content: str
    token_estimate: int
    source_url: str | None = None


class LinkedSource(BaseModel):
    """A sibling ``llms-*.txt`` file referenced from fetched content."""

    url: str
    name: str
    description: str | None = None
    is_full: bool = False
    content: str | None = None


class ExtractionStats(BaseModel):
    total_tokens: int
    document_count: int
    processing_ms: int
    linked_source_count: int = 0


class ExtractionResult(BaseModel):
    url: str
    source_url: str
    discovered_from: str | None = None
    raw_content: str
    documents: list[Document]
    full_document: Document
    agent_guide: Document
    linked_sources: list[LinkedSource] = Field(default_factory=list)
    install_md: "ParsedInstallMd | None" = None
    install_md_url: str | None = None
    stats: ExtractionStats


# ---------------------------------------------------------------------------
# install.md
# ---------------------------------------------------------------------------


class CodeBlock(BaseModel):
    language: str
    code: str
    label: str | None = None


class TodoItem(BaseModel):
    id: str
    text: str
    completed: bool = False


class InstallStep(BaseModel):
    id: str
    title: str
    description: str = ""
    code_blocks: list[CodeBlock] = Field(default_factory=list)


class ParsedInstallMd(BaseModel):
    raw: str
    product_name: str = ""
    description: str = ""
    action_prompt: str = ""
    objective: str = ""
    done_when: str = ""
    todo_items: list[TodoItem] = Field(default_factory=list)
    steps: list[InstallStep] = Field(default_factory=list)
    is_valid: bool
    validation_errors: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validity_matches_errors(self):
        if self.is_valid != (not self.validation_errors):
            raise ValueError("is_valid must be True exactly when there are no errors")
        return self


class InstallMdGeneratorData(BaseModel):
    """Form data rendered into an install.md file."""

    product_name: str = ""
    description: str = ""
    objective: str = ""
    done_when: str = ""
    todo_items: list[TodoItem] = Field(default_factory=list)
    steps: list[InstallStep] = Field(default_factory=list)


ExtractionResult.model_rebuild()
