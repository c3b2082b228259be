"""Assemble the final Typst document.

Sections, in order and blank-line separated::

    // ===============  FRONTMATTER  ===============
    #set document(...)                 (title/authors/description/keywords/date)
    #let abstract = [...]              (abstract)
    #align(center)[...]                (title block)
    #set text(lang: .., region: ..)    (language/region)
    //  ============================================
    // ==== WARNINGS ==== ...           (helper functions, remote images only)
    <body>

Without metadata and without warnings the body is returned alone.
"""

from __future__ import annotations

from typstify.converter.block_renderer import render_blocks
from typstify.converter.context import RenderContext
from typstify.converter.frontmatter import parse_date
from typstify.models import DocumentMetadata, IssueCode, Severity
from typstify.utils.typst_text import escape_string, escape_text, render_array

_STAGE = "output building"

FRONTMATTER_OPEN = "// ===============  FRONTMATTER  ==============="
FRONTMATTER_CLOSE = "//  ============================================"

_WARNINGS_HEADER: tuple[str, ...] = (
    "// ========================= WARNINGS =========================",
    "",
    "// ------------------------------------------------------------",
    "// NOTE: The conversion did not work perfectly due to intrinsic",
    "// Markdown to Typst limitations. The following custom",
    "// functions, set or show rules are used to visually display",
    "// these minor conversion warnings to the user.",
    "// ------------------------------------------------------------",
    "",
)

_EXTERNAL_IMAGE_FUNCTION: tuple[str, ...] = (
    "// EXTERNAL IMAGES WERE DETECTED!",
    "#let external-image(url) = {",
    "  rect(radius: 4pt, inset: 20pt,)[",
    "    #align(center)[",
    "      #text()[",
    "        External image detected: \\",
    "        #link(url)",
    "      ]",
    "    ]",
    "  ]",
    "}",
    "",
)

_WARNINGS_FOOTER = "// ============================================================"


def build_output(
    tokens: list[dict],
    metadata: DocumentMetadata,
    leading_title_index: int | None,
    ctx: RenderContext,
) -> str:
    """Render the body and wrap it with the metadata and warnings sections.

    The token at *leading_title_index* is left out of the body when the
    merged title is non-empty (it became the document title).
    """
    body_tokens = tokens
    if leading_title_index is not None and metadata.title.strip():
        body_tokens = [t for i, t in enumerate(tokens) if i != leading_title_index]

    # The body is rendered first: it sets the warning flags.
    body = render_blocks(body_tokens, 0, ctx)

    parts: list[str] = []
    has_metadata = bool(
        metadata.title
        or metadata.authors
        or metadata.description
        or metadata.date
        or metadata.keywords
    )
    date_expr: str | None = None

    if has_metadata:
        parts.append(FRONTMATTER_OPEN)
        parts.append("")
        try:
            date_expr = parse_date(metadata.date, ctx.report) if metadata.date else None
            parts.extend(_document_rule(metadata, date_expr))
        except Exception as exc:  # metadata is optional; keep the body
            ctx.report(
                Severity.ERROR,
                IssueCode.METADATA_RENDER_ERROR,
                f"Error building document metadata: {exc}",
                _STAGE,
                cause=exc,
            )

    if metadata.abstract:
        if parts:
            parts.append("")
        parts.append(f"#let abstract = [{escape_text(metadata.abstract)}]")

    if has_metadata and (metadata.title or metadata.authors or metadata.date or metadata.abstract):
        parts.append("")
        parts.extend(_title_block(metadata, date_expr))

    if metadata.language or metadata.region:
        if parts:
            parts.append("")
        parts.append(_text_rule(metadata))

    if has_metadata:
        parts.append("")
        parts.append(FRONTMATTER_CLOSE)

    if ctx.warnings.external_images:
        if parts:
            parts.append("")
        parts.extend(_warnings_section(ctx))

    if parts and body:
        parts.append("")
    if body:
        parts.append(body)

    return "\n".join(parts) if parts else body


def _document_rule(metadata: DocumentMetadata, date_expr: str | None) -> list[str]:
    args: list[str] = []
    if metadata.title:
        args.append(f"title: [{escape_text(metadata.title)}]")
    if metadata.authors:
        args.append(f"author: {_string_array(metadata.authors)}")
    if metadata.description:
        args.append(f"description: [{escape_text(metadata.description)}]")
    if metadata.keywords:
        args.append(f"keywords: {_string_array(metadata.keywords)}")
    if date_expr is not None:
        args.append(f"date: {date_expr}")

    lines = ["#set document("]
    for index, arg in enumerate(args):
        separator = "," if index < len(args) - 1 else ""
        lines.append(f"  {arg}{separator}")
    lines.append(")")
    return lines


def _string_array(values: list[str]) -> str:
    return render_array([f'"{escape_string(value)}"' for value in values])


def _title_block(metadata: DocumentMetadata, date_expr: str | None) -> list[str]:
    centered: list[str] = []
    if metadata.title:
        centered.append("#title() \\ \\")
    if metadata.authors:
        centered.append('#context document.author.join(", ", last: " & ") \\ \\')
    if date_expr is not None and date_expr != "none":
        centered.append("#context document.date.display() \\ \\ ")
    if metadata.abstract:
        centered.append("\\ *Abstract* \\")
        centered.append("#abstract")
    return ["#align(center)[", f"  {' '.join(centered)}", "]"]


def _text_rule(metadata: DocumentMetadata) -> str:
    args: list[str] = []
    if metadata.language:
        args.append(f'lang: "{metadata.language}"')
    if metadata.region:
        args.append(f'region: "{metadata.region}"')
    return f"#set text({', '.join(args)})"


def _warnings_section(ctx: RenderContext) -> list[str]:
    lines = list(_WARNINGS_HEADER)
    if ctx.warnings.external_images:
        lines.extend(_EXTERNAL_IMAGE_FUNCTION)
    lines.append(_WARNINGS_FOOTER)
    return lines
