"""typstify: Markdown to Typst conversion with metadata resolution.

Public re-exports
-----------------

* **Conversion:** :func:`markdown_to_typst`, :class:`MarkdownToTypstConverter`
* **Configuration:** :class:`TypstifyConfig`
* **Errors:** Every :class:`TypstifyError` subclass and :class:`ErrorCode`
* **Models:** The result dataclass, issue types, and metadata records

Usage::

    from typstify import markdown_to_typst

    typst = markdown_to_typst(
        "# Hello\\n\\nWorld",
        title="My Document",
        authors=["Ada Lovelace"],
        on_error=print,
    )
"""

from __future__ import annotations

# ── Configuration ───────────────────────────────────────────────────────
from typstify.config import TypstifyConfig

# ── Conversion ──────────────────────────────────────────────────────────
from typstify.converter.math import latex_to_typst
from typstify.converter.md_to_typst import MarkdownToTypstConverter, markdown_to_typst

# ── Errors ──────────────────────────────────────────────────────────────
from typstify.errors import (
    ErrorCode,
    TypstifyConversionError,
    TypstifyError,
    TypstifyMathConversionError,
    TypstifyParseError,
)

# ── Models ──────────────────────────────────────────────────────────────
from typstify.models import (
    ConversionIssue,
    ConversionResult,
    Definition,
    DocumentMetadata,
    ErrorCallback,
    FootnoteDefinition,
    Frontmatter,
    IssueCode,
    LeadingTitle,
    Severity,
)

# ── Public surface ──────────────────────────────────────────────────────

__all__ = [
    # Conversion
    "markdown_to_typst",
    "MarkdownToTypstConverter",
    "latex_to_typst",
    # Configuration
    "TypstifyConfig",
    # Error base + code enum
    "TypstifyError",
    "ErrorCode",
    # Conversion errors
    "TypstifyConversionError",
    "TypstifyParseError",
    "TypstifyMathConversionError",
    # Models: results and issues
    "ConversionResult",
    "ConversionIssue",
    "ErrorCallback",
    "IssueCode",
    "Severity",
    # Models: metadata and definitions
    "DocumentMetadata",
    "Frontmatter",
    "Definition",
    "FootnoteDefinition",
    "LeadingTitle",
]
