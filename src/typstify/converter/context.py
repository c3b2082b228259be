"""Per-conversion state shared by the pipeline stages.

A :class:`RenderContext` is created once per top-level conversion call and
threaded explicitly through every render function; nothing here is global,
so independent conversions can run in parallel threads.

The inline renderer needs to render footnote bodies, which are block
content.  Rather than importing the block renderer (a circular
dependency), it calls ``ctx.render_block``, which the block renderer
installs when it creates the context.
"""

from __future__ import annotations

from typing import Any, Callable

from typstify.config import TypstifyConfig
from typstify.converter.math import latex_to_typst
from typstify.models import (
    ConversionIssue,
    Definition,
    ErrorCallback,
    FootnoteDefinition,
    RenderWarnings,
    Severity,
)
from typstify.observability.logger import get_logger

log = get_logger("typstify.converter")

BlockRenderer = Callable[[dict, int, "RenderContext"], "str | None"]


class IssueReporter:
    """Error channel: records issues and forwards them to ``on_error``.

    Instances are callable::

        report(Severity.WARNING, IssueCode.INVALID_DATE, "bad date", "output building",
               date="soon")

    An exception raised by ``on_error`` is logged at WARNING and otherwise
    ignored; the issue is still recorded.
    """

    __slots__ = ("issues", "on_error")

    def __init__(self, on_error: ErrorCallback | None = None) -> None:
        self.on_error = on_error
        self.issues: list[ConversionIssue] = []

    def __call__(
        self,
        severity: Severity,
        code: str,
        message: str,
        stage: str,
        *,
        cause: Exception | None = None,
        **details: Any,
    ) -> ConversionIssue:
        issue = ConversionIssue(
            severity=severity,
            code=str(getattr(code, "value", code)),
            message=message,
            stage=stage,
            details=dict(details),
            cause=cause,
        )
        self.issues.append(issue)
        log.debug("conversion issue: %s", message, extra={"issue": issue})
        if self.on_error is not None:
            try:
                self.on_error(issue)
            except Exception:
                # A failing callback must not change how the document renders.
                log.warning(
                    "on_error callback raised",
                    exc_info=True,
                    extra={"extra_fields": {"code": issue.code}},
                )
        return issue


class RenderContext:
    """Mutable state for one rendering pass."""

    __slots__ = (
        "active_footnotes",
        "config",
        "convert_math",
        "definitions",
        "footnotes",
        "render_block",
        "report",
        "warnings",
    )

    def __init__(
        self,
        config: TypstifyConfig,
        *,
        definitions: dict[str, Definition] | None = None,
        footnotes: dict[str, FootnoteDefinition] | None = None,
        report: IssueReporter | None = None,
        render_block: BlockRenderer | None = None,
    ) -> None:
        self.config = config
        self.definitions: dict[str, Definition] = definitions if definitions is not None else {}
        self.footnotes: dict[str, FootnoteDefinition] = footnotes if footnotes is not None else {}
        self.report = report if report is not None else IssueReporter(config.on_error)
        self.warnings = RenderWarnings()
        self.convert_math: Callable[[str], str] = config.math_converter or latex_to_typst
        self.render_block = render_block
        # Footnote identifiers currently being expanded; guards self-reference.
        self.active_footnotes: set[str] = set()

    @property
    def issues(self) -> list[ConversionIssue]:
        return self.report.issues
