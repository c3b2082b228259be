"""Public data models for the typstify package.

This module contains the issue type reported through the error channel,
the definition and metadata records produced by the pipeline stages, and
the conversion result.  All types are plain dataclasses with no behaviour
beyond what is needed for structural equality.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, NamedTuple


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Severity(str, Enum):
    """Severity of a :class:`ConversionIssue`."""

    WARNING = "warning"
    """Output-affecting but non-fatal; a documented fallback was applied."""

    ERROR = "error"
    """A node or section failed to render and contributes nothing."""


class IssueCode(str, Enum):
    """Machine-readable codes for every issue the pipeline can report."""

    DUPLICATE_DEFINITION = "DUPLICATE_DEFINITION"
    DUPLICATE_FOOTNOTE = "DUPLICATE_FOOTNOTE"
    COLLECTION_FAILED = "COLLECTION_FAILED"
    TITLE_EXTRACTION_FAILED = "TITLE_EXTRACTION_FAILED"
    INVALID_FRONTMATTER = "INVALID_FRONTMATTER"
    INVALID_METADATA_FIELD = "INVALID_METADATA_FIELD"
    INVALID_DATE = "INVALID_DATE"
    UNRESOLVED_LINK_REFERENCE = "UNRESOLVED_LINK_REFERENCE"
    UNRESOLVED_FOOTNOTE = "UNRESOLVED_FOOTNOTE"
    FOOTNOTE_CYCLE = "FOOTNOTE_CYCLE"
    MATH_FALLBACK = "MATH_FALLBACK"
    EMPTY_TABLE = "EMPTY_TABLE"
    UNKNOWN_BLOCK = "UNKNOWN_BLOCK"
    UNKNOWN_INLINE = "UNKNOWN_INLINE"
    BLOCK_RENDER_ERROR = "BLOCK_RENDER_ERROR"
    INLINE_RENDER_ERROR = "INLINE_RENDER_ERROR"
    METADATA_RENDER_ERROR = "METADATA_RENDER_ERROR"
    FATAL = "FATAL"


# ---------------------------------------------------------------------------
# Conversion issues
# ---------------------------------------------------------------------------

@dataclass
class ConversionIssue:
    """A problem encountered during Markdown-to-Typst conversion.

    Issues are delivered to the ``on_error`` callback as they happen and
    accumulated on :class:`ConversionResult` so callers can inspect them
    after the conversion completes.

    Attributes
    ----------
    severity:
        :attr:`Severity.WARNING` or :attr:`Severity.ERROR`.
    code:
        A machine-readable issue code (e.g. ``"DUPLICATE_DEFINITION"``).
    message:
        A human-readable description of the issue.
    stage:
        The pipeline stage that reported it (e.g. ``"block rendering"``).
    details:
        Arbitrary structured data for diagnostics.
    cause:
        The underlying exception, when the issue wraps one.
    """

    severity: Severity
    code: str
    message: str
    stage: str
    details: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None


ErrorCallback = Callable[[ConversionIssue], None]
"""Signature of the ``on_error`` callback."""


# ---------------------------------------------------------------------------
# Collected definitions
# ---------------------------------------------------------------------------

@dataclass
class Definition:
    """A link/image reference definition (``[id]: url "title"``)."""

    identifier: str
    url: str
    title: str | None = None
    label: str | None = None


@dataclass
class FootnoteDefinition:
    """A footnote definition: identifier and its block content."""

    identifier: str
    children: list[dict] = field(default_factory=list)
    label: str | None = None


class LeadingTitle(NamedTuple):
    """A depth-1 heading recognised as the document title."""

    title: str
    index: int


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------

@dataclass
class Frontmatter:
    """Known fields decoded from the YAML metadata block.

    All fields are optional.  ``author`` keeps the shape it had in the
    block (string or list); ``language`` holds whichever of ``lang`` /
    ``language`` was present, ``lang`` first.
    """

    title: str | None = None
    author: str | list[str] | None = None
    authors: list[str] | None = None
    description: str | None = None
    keywords: list[str] | None = None
    date: str | None = None
    abstract: str | None = None
    language: str | None = None
    region: str | None = None


@dataclass
class DocumentMetadata:
    """Document metadata after merging options, front matter and title.

    An empty ``title`` is valid and means "no title block".
    """

    title: str = ""
    authors: list[str] = field(default_factory=list)
    description: str | None = None
    keywords: list[str] | None = None
    date: str | None = None
    abstract: str | None = None
    language: str | None = None
    region: str | None = None


@dataclass
class RenderWarnings:
    """Flags raised during rendering and consumed by the output assembler."""

    external_images: bool = False
    """Whether any ``http``/``https`` image was rendered."""


# ---------------------------------------------------------------------------
# Conversion result
# ---------------------------------------------------------------------------

@dataclass
class ConversionResult:
    """Output of :meth:`MarkdownToTypstConverter.convert`.

    Attributes
    ----------
    text:
        The complete Typst document.
    metadata:
        The merged document metadata used for the header.
    issues:
        Every warning and error reported during the conversion, in order.
    """

    text: str = ""
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    issues: list[ConversionIssue] = field(default_factory=list)

    @property
    def warnings(self) -> list[ConversionIssue]:
        """Issues with :attr:`Severity.WARNING`."""
        return [i for i in self.issues if i.severity == Severity.WARNING]

    @property
    def errors(self) -> list[ConversionIssue]:
        """Issues with :attr:`Severity.ERROR`."""
        return [i for i in self.issues if i.severity == Severity.ERROR]
