"""Table conversion: normalized table token to a Typst ``#table`` call.

The table token (after normalization) looks like::

    {
        "type": "table",
        "attrs": {"align": ["left", None, "center"]},
        "children": [
            {"type": "table_row", "children": [table_cell, ...]},   # header
            {"type": "table_row", "children": [table_cell, ...]},   # body
            ...
        ]
    }

and renders as::

    #table(
      columns: (1fr, 1fr, 1fr),
      align: (left, left, center),
      table.header([*A*], [*B*], [*C*]),
      [a1], [b1], [c1],
      [a2], [b2], [c2]
    )
"""

from __future__ import annotations

from typing import Any

from typstify.converter.context import RenderContext
from typstify.converter.inline_renderer import render_inlines
from typstify.models import IssueCode, Severity
from typstify.utils.typst_text import indent_lines

_STAGE = "table rendering"

_ALIGNMENTS: frozenset[str] = frozenset({"left", "center", "right"})


def render_table(token: dict[str, Any], indent: int, ctx: RenderContext) -> str | None:
    """Render a table token at *indent*.

    A table without rows, or whose header row has no cells, renders as
    nothing and reports an ``EMPTY_TABLE`` warning.
    """
    rows = token.get("children", [])
    if not rows:
        ctx.report(
            Severity.WARNING,
            IssueCode.EMPTY_TABLE,
            "Empty table found (no rows)",
            _STAGE,
        )
        return None

    header_cells = rows[0].get("children", [])
    col_count = len(header_cells)
    if col_count == 0:
        ctx.report(
            Severity.WARNING,
            IssueCode.EMPTY_TABLE,
            "Table has no columns",
            _STAGE,
        )
        return None

    columns = ", ".join(["1fr"] * col_count)
    align = ", ".join(_column_alignments(token, col_count))
    header = ", ".join(f"[*{_render_cell(cell, ctx)}*]" for cell in header_cells)

    lines = [
        "#table(",
        f"  columns: ({columns}),",
        f"  align: ({align}),",
        f"  table.header({header}),",
    ]
    body_rows = [
        ", ".join(f"[{_render_cell(cell, ctx)}]" for cell in row.get("children", []))
        for row in rows[1:]
    ]
    body_rows = [row for row in body_rows if row]
    for index, row in enumerate(body_rows):
        separator = "," if index < len(body_rows) - 1 else ""
        lines.append(f"  {row}{separator}")
    lines.append(")")

    return indent_lines("\n".join(lines), indent)


def _column_alignments(token: dict[str, Any], col_count: int) -> list[str]:
    """Per-column alignment; missing or unknown entries default to ``left``."""
    declared = token.get("attrs", {}).get("align") or []
    aligns: list[str] = []
    for index in range(col_count):
        value = declared[index] if index < len(declared) else None
        aligns.append(value if value in _ALIGNMENTS else "left")
    return aligns


def _render_cell(cell: dict[str, Any], ctx: RenderContext) -> str:
    return render_inlines(cell.get("children", []), ctx)
