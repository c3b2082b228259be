"""Conversion configuration for typstify.

:class:`TypstifyConfig` is a plain dataclass that captures every option
accepted by :class:`~typstify.converter.md_to_typst.MarkdownToTypstConverter`.
Metadata fields set here take precedence over the document's YAML front
matter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from typstify.models import ErrorCallback


@dataclass
class TypstifyConfig:
    """Complete configuration for a Markdown-to-Typst conversion.

    Every parameter is optional.

    Parameters
    ----------
    title:
        Document title.  Overrides the front matter ``title``.
    author:
        Document author, a single string or a list.  Overrides the front
        matter ``author``/``authors``.
    authors:
        Document authors.  Preferred over ``author`` when non-empty.
    description:
        Document description (``#set document(description: ...)``).
    keywords:
        Document keywords.
    date:
        ``YYYY-MM-DD``, ``"auto"`` or ``"none"``.  Anything else renders as
        ``auto`` and reports a warning.
    abstract:
        Abstract shown under the title block.
    language:
        Text language: an ISO 639 code, a locale tag such as ``"en-US"``,
        or a language name.  Unresolvable values are dropped silently.
    region:
        Text region: an ISO 3166 code or a country name.
    use_leading_heading_as_title:
        Use a leading level-1 heading as the document title and drop it
        from the body.  Off by default.
    on_error:
        Callback receiving every :class:`~typstify.models.ConversionIssue`.
        Without it the conversion is silent except for fatal errors, which
        are raised.
    math_converter:
        ``Callable[[str], str]`` translating LaTeX to Typst math.  Defaults
        to :func:`typstify.converter.math.latex_to_typst`.  Any exception it
        raises triggers the raw-LaTeX fallback.
    warn_unknown_inline:
        Report unknown inline node kinds as warnings instead of dropping
        them silently.
    metrics:
        Optional :class:`~typstify.observability.metrics.MetricsHook`.
    debug_dump_ast:
        Write the normalised token tree to *stderr* on each conversion.
    """

    # ── Metadata ────────────────────────────────────────────────────────
    title: str | None = None

    author: str | list[str] | None = None

    authors: list[str] | None = None

    description: str | None = None

    keywords: list[str] | None = None

    date: str | None = None

    abstract: str | None = None

    language: str | None = None

    region: str | None = None

    # ── Behaviour ───────────────────────────────────────────────────────
    use_leading_heading_as_title: bool = False

    on_error: ErrorCallback | None = None

    math_converter: Callable[[str], str] | None = None

    warn_unknown_inline: bool = False

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    # ── Debug ───────────────────────────────────────────────────────────
    debug_dump_ast: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        for name in ("title", "description", "date", "abstract", "language", "region"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{name} must be a string, got {type(value).__name__}")

        if self.author is not None and not isinstance(self.author, (str, list)):
            raise ValueError(
                f"author must be a string or a list of strings, got {type(self.author).__name__}"
            )
        for name in ("authors", "keywords"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, list):
                raise ValueError(f"{name} must be a list of strings, got {type(value).__name__}")

        if self.on_error is not None and not callable(self.on_error):
            raise ValueError("on_error must be callable")
        if self.math_converter is not None and not callable(self.math_converter):
            raise ValueError("math_converter must be callable")
