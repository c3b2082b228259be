"""Block rendering: canonical block tokens to Typst markup.

This module handles every block kind:

- heading -> ``=`` repeated by level (clamped to 1..6)
- paragraph -> inline content; a lone ``[toc]`` becomes ``#outline``
- list / list_item -> ``+`` (ordered) or ``-`` items, nested by indentation
- block_code -> backtick fence longer than any run inside the code
- block_quote -> ``#quote[ ... ]``
- thematic_break -> ``#line(...)``
- table -> delegate to tables.py
- block_math -> delegate to math.py
- html_block -> escaped literal text
- frontmatter / definition / footnote_definition -> nothing

Indentation is passed explicitly: 0 for the document body, plus one level
(two spaces) per list item or block quote nesting.  Each node is rendered
inside its own fault boundary, so a failing node renders as nothing and
its siblings are unaffected.
"""

from __future__ import annotations

from collections.abc import Callable as _Callable

from typstify.config import TypstifyConfig
from typstify.converter.context import IssueReporter, RenderContext
from typstify.converter.inline_renderer import render_inlines
from typstify.converter.math import render_block_math
from typstify.converter.tables import render_table
from typstify.models import Definition, FootnoteDefinition, IssueCode, Severity
from typstify.utils.typst_text import code_fence, escape_text, extract_text, indent_lines

_STAGE = "block rendering"

TOC_DIRECTIVE = "#outline(title: auto, indent: auto)"
THEMATIC_BREAK = "#line(length: 100%, stroke: 0.6pt)"

# Consumed by the collectors; they never produce output.
_SILENT_TYPES: frozenset[str] = frozenset({
    "frontmatter",
    "definition",
    "footnote_definition",
})


def new_render_context(
    config: TypstifyConfig,
    *,
    definitions: dict[str, Definition] | None = None,
    footnotes: dict[str, FootnoteDefinition] | None = None,
    report: IssueReporter | None = None,
) -> RenderContext:
    """Create a :class:`RenderContext` wired to :func:`render_block`."""
    return RenderContext(
        config,
        definitions=definitions,
        footnotes=footnotes,
        report=report,
        render_block=render_block,
    )


# ---------------------------------------------------------------------------
# Token dispatch
# ---------------------------------------------------------------------------

def render_block(token: dict, indent: int, ctx: RenderContext) -> str | None:
    """Render one block token at *indent*; ``None`` means "no output"."""
    token_type = token.get("type", "")
    if token_type in _SILENT_TYPES:
        return None

    handler = _BLOCK_HANDLERS.get(token_type)
    if handler is None:
        ctx.report(
            Severity.WARNING,
            IssueCode.UNKNOWN_BLOCK,
            f"Unknown block node type: {token_type}",
            _STAGE,
            node_type=token_type,
        )
        return None

    try:
        return handler(token, indent, ctx)
    except Exception as exc:  # per-node fault boundary
        ctx.report(
            Severity.ERROR,
            IssueCode.BLOCK_RENDER_ERROR,
            f"Error rendering block node: {exc}",
            _STAGE,
            node_type=token_type,
            cause=exc,
        )
        return None


def render_blocks(
    tokens: list[dict],
    indent: int,
    ctx: RenderContext,
    separator: str = "\n\n",
) -> str:
    """Render *tokens* and join the non-empty results with *separator*."""
    rendered = (render_block(token, indent, ctx) for token in tokens)
    return separator.join(part for part in rendered if part)


# ---------------------------------------------------------------------------
# Block renderers
# ---------------------------------------------------------------------------

def _render_heading(token: dict, indent: int, ctx: RenderContext) -> str:
    level = min(max(token.get("attrs", {}).get("level", 1), 1), 6)
    content = render_inlines(token.get("children", []), ctx)
    return indent_lines(f"{'=' * level} {content}", indent)


def _paragraph_markup(token: dict, ctx: RenderContext) -> str:
    children = token.get("children", [])
    if extract_text(children, ctx.definitions).strip().lower() == "[toc]":
        return TOC_DIRECTIVE
    return render_inlines(children, ctx)


def _render_paragraph(token: dict, indent: int, ctx: RenderContext) -> str:
    return indent_lines(_paragraph_markup(token, ctx), indent)


def _render_list(token: dict, indent: int, ctx: RenderContext) -> str:
    marker = "+" if token.get("attrs", {}).get("ordered") else "-"
    items = (
        _render_list_item(item, marker, indent, ctx)
        for item in token.get("children", [])
    )
    return "\n".join(item for item in items if item)


def _render_list_item(item: dict, marker: str, indent: int, ctx: RenderContext) -> str:
    """Render one list item.

    A leading paragraph goes on the marker line, with any continuation
    lines indented under the item.  Without one, the marker sits on a line
    of its own.  All remaining children are rendered one level deeper.
    """
    children = item.get("children", [])
    lines: list[str] = []

    rest = children
    if children and children[0].get("type") == "paragraph":
        first, *continuation = f"{marker} {_paragraph_markup(children[0], ctx)}".split("\n")
        lines.append(indent_lines(first, indent))
        if continuation:
            lines.append(indent_lines("\n".join(continuation), indent + 1))
        rest = children[1:]
    else:
        lines.append(indent_lines(marker, indent))

    for child in rest:
        rendered = render_block(child, indent + 1, ctx)
        if rendered:
            lines.append(rendered)
    return "\n".join(lines)


def _render_stray_list_item(token: dict, indent: int, ctx: RenderContext) -> str:
    return _render_list_item(token, "-", indent, ctx)


def _render_code_block(token: dict, indent: int, ctx: RenderContext) -> str:
    code = token.get("raw", "")
    info = (token.get("attrs", {}).get("info") or "").strip()
    fence = code_fence(code)
    return "\n".join([
        indent_lines(f"{fence}{info}", indent),
        indent_lines(code, indent),
        indent_lines(fence, indent),
    ])


def _render_block_quote(token: dict, indent: int, ctx: RenderContext) -> str:
    body = render_blocks(token.get("children", []), 0, ctx)
    opening = indent_lines("#quote[", indent)
    closing = indent_lines("]", indent)
    if not body.strip():
        return f"{opening}\n{closing}"
    return "\n".join([opening, indent_lines(body, indent + 1), closing])


def _render_thematic_break(token: dict, indent: int, ctx: RenderContext) -> str:
    return indent_lines(THEMATIC_BREAK, indent)


def _render_table(token: dict, indent: int, ctx: RenderContext) -> str | None:
    return render_table(token, indent, ctx)


def _render_block_math(token: dict, indent: int, ctx: RenderContext) -> str:
    return indent_lines(render_block_math(token.get("raw", ""), ctx), indent)


def _render_html_block(token: dict, indent: int, ctx: RenderContext) -> str | None:
    raw = token.get("raw", "").strip("\n")
    if not raw.strip():
        return None
    return indent_lines(escape_text(raw), indent)


_BlockHandler = _Callable[[dict, int, RenderContext], "str | None"]

_BLOCK_HANDLERS: dict[str, _BlockHandler] = {
    "heading": _render_heading,
    "paragraph": _render_paragraph,
    "list": _render_list,
    "list_item": _render_stray_list_item,
    "block_code": _render_code_block,
    "block_quote": _render_block_quote,
    "thematic_break": _render_thematic_break,
    "table": _render_table,
    "block_math": _render_block_math,
    "html_block": _render_html_block,
}
