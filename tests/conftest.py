"""Shared test fixtures for the typstify test suite."""

from __future__ import annotations

import pytest

from typstify.config import TypstifyConfig
from typstify.converter.block_renderer import new_render_context
from typstify.converter.context import IssueReporter, RenderContext
from typstify.converter.md_to_typst import MarkdownToTypstConverter
from typstify.models import ConversionIssue, Definition, FootnoteDefinition


def fake_math(latex: str) -> str:
    """Deterministic stand-in for the LaTeX converter.

    Wraps the expression as ``M(...)`` and fails on anything containing
    ``FAIL``.
    """
    if "FAIL" in latex:
        raise ValueError(f"cannot convert {latex!r}")
    return f"M({latex})"


@pytest.fixture
def issues() -> list[ConversionIssue]:
    """List that collects every issue delivered to ``on_error``."""
    return []


@pytest.fixture
def config(issues: list[ConversionIssue]) -> TypstifyConfig:
    """Default test configuration: collects issues, uses the fake math converter."""
    return TypstifyConfig(on_error=issues.append, math_converter=fake_math)


@pytest.fixture
def converter(config: TypstifyConfig) -> MarkdownToTypstConverter:
    """Markdown-to-Typst converter using the default test config."""
    return MarkdownToTypstConverter(config)


@pytest.fixture
def make_ctx(config: TypstifyConfig):
    """Factory for a :class:`RenderContext` wired to the block renderer."""

    def _make(
        definitions: dict[str, Definition] | None = None,
        footnotes: dict[str, FootnoteDefinition] | None = None,
        **overrides,
    ) -> RenderContext:
        cfg = config
        if overrides:
            options = {"on_error": config.on_error, "math_converter": config.math_converter}
            options.update(overrides)
            cfg = TypstifyConfig(**options)
        return new_render_context(
            cfg,
            definitions=definitions,
            footnotes=footnotes,
            report=IssueReporter(cfg.on_error),
        )

    return _make


@pytest.fixture
def ctx(make_ctx) -> RenderContext:
    """A render context with no definitions or footnotes."""
    return make_ctx()
