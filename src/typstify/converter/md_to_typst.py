"""Full Markdown-to-Typst conversion pipeline.

:class:`MarkdownToTypstConverter` orchestrates the pipeline:

1. **Parse**: :class:`ASTNormalizer` runs mistune and maps its tokens to
   the canonical kinds (skipped when a token list is passed in).
2. **Collect**: reference definitions, footnotes, and (when enabled) the
   leading level-1 heading.
3. **Merge**: caller options, YAML front matter and the leading title
   become one :class:`DocumentMetadata`.
4. **Render**: block and inline renderers produce the Typst body.
5. **Assemble**: metadata and warnings sections wrap the body.

Recoverable problems are reported through ``on_error`` and collected on
the :class:`ConversionResult`.  Only fatal failures raise.
"""

from __future__ import annotations

import dataclasses
import json
import sys
import time
from typing import Any

from typstify.config import TypstifyConfig
from typstify.converter.ast_normalizer import ASTNormalizer
from typstify.converter.block_renderer import new_render_context
from typstify.converter.collectors import (
    collect_definitions,
    collect_footnotes,
    find_leading_title,
)
from typstify.converter.context import IssueReporter
from typstify.converter.frontmatter import decode_frontmatter, merge_metadata
from typstify.converter.output_builder import build_output
from typstify.errors import ErrorCode, TypstifyConversionError, TypstifyParseError
from typstify.models import ConversionResult, Frontmatter, IssueCode, Severity
from typstify.observability.logger import get_logger
from typstify.observability.metrics import NoopMetricsHook

log = get_logger("typstify.converter")


class MarkdownToTypstConverter:
    """Convert Markdown text to a Typst document.

    Parameters
    ----------
    config:
        Conversion options: metadata overrides, the error callback, the
        math converter, and observability hooks.  Defaults to
        ``TypstifyConfig()``.

    Examples
    --------
    >>> converter = MarkdownToTypstConverter()
    >>> result = converter.convert("# Hello Typst\\n\\nWelcome to **bold**.")
    >>> print(result.text)
    = Hello Typst
    <BLANKLINE>
    Welcome to *bold*.
    """

    def __init__(self, config: TypstifyConfig | None = None) -> None:
        self._config = config if config is not None else TypstifyConfig()
        self._normalizer = ASTNormalizer()
        self._metrics = self._config.metrics or NoopMetricsHook()

    def convert(self, source: str | list[dict]) -> ConversionResult:
        """Full pipeline: parse -> collect -> merge -> render -> assemble.

        Parameters
        ----------
        source:
            Raw Markdown text, or a token list already in the canonical
            form produced by :class:`ASTNormalizer`.

        Returns
        -------
        ConversionResult
            The Typst ``text``, the merged ``metadata`` and every reported
            ``issue``.

        Raises
        ------
        TypstifyParseError
            The Markdown could not be tokenized.
        TypstifyConversionError
            An unexpected failure outside any single node's render.
        """
        if not isinstance(source, (str, list)):
            raise TypeError(
                f"source must be Markdown text or a token list, got {type(source).__name__}"
            )

        config = self._config
        report = IssueReporter(config.on_error)
        t0 = time.monotonic()
        try:
            tokens = self._parse(source, report)

            if config.debug_dump_ast:
                print(
                    "[typstify] Normalized AST:",
                    json.dumps(tokens, indent=2, ensure_ascii=False, default=str),
                    file=sys.stderr,
                )

            definitions = collect_definitions(tokens, report)
            footnotes = collect_footnotes(tokens, report)

            frontmatter = Frontmatter()
            raw_frontmatter = next(
                (t.get("raw", "") for t in tokens if t.get("type") == "frontmatter"),
                None,
            )
            if raw_frontmatter is not None:
                frontmatter = decode_frontmatter(raw_frontmatter, report)

            leading = None
            if config.use_leading_heading_as_title:
                leading = find_leading_title(tokens, definitions, report)

            metadata = merge_metadata(
                config,
                frontmatter,
                leading.title if leading is not None else None,
            )

            ctx = new_render_context(
                config,
                definitions=definitions,
                footnotes=footnotes,
                report=report,
            )
            text = build_output(
                tokens,
                metadata,
                leading.index if leading is not None else None,
                ctx,
            )
        except TypstifyParseError:
            raise
        except Exception as exc:
            report(
                Severity.ERROR,
                IssueCode.FATAL,
                f"Fatal error during conversion: {exc}",
                "conversion",
                cause=exc,
            )
            log.error(
                "conversion failed: %s",
                exc,
                exc_info=True,
                extra={"extra_fields": {"stage": "conversion"}},
            )
            raise TypstifyConversionError(
                code=ErrorCode.CONVERSION_ERROR,
                message=f"Fatal error during conversion: {exc}",
                context={"stage": "conversion"},
                cause=exc,
            ) from exc
        finally:
            self._record_metrics(report, t0)

        return ConversionResult(text=text, metadata=metadata, issues=list(report.issues))

    def _parse(self, source: str | list[dict], report: IssueReporter) -> list[dict]:
        if isinstance(source, list):
            return source
        try:
            return self._normalizer.parse(source)
        except Exception as exc:
            report(
                Severity.ERROR,
                IssueCode.FATAL,
                f"Failed to parse Markdown: {exc}",
                "markdown parsing",
                cause=exc,
            )
            log.error(
                "markdown parsing failed: %s",
                exc,
                exc_info=True,
                extra={"extra_fields": {"stage": "markdown parsing"}},
            )
            raise TypstifyParseError(
                message=f"Failed to parse Markdown: {exc}",
                context={"stage": "markdown parsing", "source_length": len(source)},
                cause=exc,
            ) from exc

    def _record_metrics(self, report: IssueReporter, t0: float) -> None:
        elapsed_ms = (time.monotonic() - t0) * 1000
        self._metrics.increment("typstify.conversions_total")
        for severity in Severity:
            count = sum(1 for issue in report.issues if issue.severity == severity)
            if count:
                self._metrics.increment(
                    "typstify.conversion_issues_total",
                    count,
                    tags={"severity": severity.value},
                )
        self._metrics.timing("typstify.conversion_duration_ms", elapsed_ms)


def markdown_to_typst(
    source: str | list[dict],
    config: TypstifyConfig | None = None,
    **options: Any,
) -> str:
    """Convert Markdown to Typst and return the document text.

    Keyword *options* are :class:`TypstifyConfig` fields; they override the
    matching fields of *config* when both are given.

    >>> markdown_to_typst("Hello *world*")
    'Hello _world_'
    """
    if config is None:
        config = TypstifyConfig(**options)
    elif options:
        config = dataclasses.replace(config, **options)
    return MarkdownToTypstConverter(config).convert(source).text
