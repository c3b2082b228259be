"""Markdown → Typst conversion pipeline.

Public API:

- :class:`MarkdownToTypstConverter`: Markdown → Typst document.
- :func:`markdown_to_typst`: one-call convenience wrapper.
- :class:`ASTNormalizer`: parse and normalize Markdown to canonical AST.
- :func:`render_block` / :func:`render_inlines`: render canonical tokens.
- :func:`latex_to_typst`: translate LaTeX math to Typst math.
"""

from typstify.converter.ast_normalizer import ASTNormalizer
from typstify.converter.block_renderer import new_render_context, render_block
from typstify.converter.inline_renderer import render_inlines
from typstify.converter.math import latex_to_typst
from typstify.converter.md_to_typst import MarkdownToTypstConverter, markdown_to_typst

__all__ = [
    "ASTNormalizer",
    "MarkdownToTypstConverter",
    "latex_to_typst",
    "markdown_to_typst",
    "new_render_context",
    "render_block",
    "render_inlines",
]
