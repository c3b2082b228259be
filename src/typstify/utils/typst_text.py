"""Typst escaping and formatting helpers.

Typst markup gives meaning to a small set of characters: ``#`` starts code,
``*``/``_`` toggle strong/emphasis, backticks open raw text, ``$`` opens
math, ``<``/``>`` delimit labels, ``@`` starts a reference, ``~`` is a
non-breaking space, brackets delimit content blocks, ``//`` and ``/*`` open
comments, and the backslash escapes.  :func:`escape_text` neutralises all
of them so Markdown text comes out literally.

The module also renders Typst arrays, indents multi-line output, sizes
code fences, and flattens inline tokens to plain text.
"""

from __future__ import annotations

import re

from typstify.models import Definition

INDENT: str = "  "
"""One indentation level."""

_ESCAPE_RE = re.compile(r"[\\#*_`\[\]$<>@~]|/(?=[/*])")


def escape_text(text: str) -> str:
    """Escape characters with special meaning in Typst markup.

    >>> escape_text("#1 *deal* costs $5")
    '\\\\#1 \\\\*deal\\\\* costs \\\\$5'
    """
    return _ESCAPE_RE.sub(lambda m: "\\" + m.group(0), text)


def escape_string(text: str) -> str:
    """Escape *text* for use inside a double-quoted Typst string literal."""
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def indent_lines(text: str, level: int) -> str:
    """Prefix every line of *text* with *level* indentation units."""
    if not level:
        return text
    prefix = INDENT * level
    return "\n".join(f"{prefix}{line}" for line in text.split("\n"))


def render_array(items: list[str]) -> str:
    """Render a Typst array literal from already-rendered *items*.

    A single element needs a trailing comma, otherwise Typst reads the
    parentheses as grouping.

    >>> render_array(['"a"'])
    '("a",)'
    >>> render_array(['"a"', '"b"'])
    '("a", "b")'
    """
    if len(items) == 1:
        return f"({items[0]},)"
    return f"({', '.join(items)})"


def max_run(value: str, char: str = "`") -> int:
    """Return the length of the longest run of *char* in *value*."""
    longest = 0
    run = 0
    for c in value:
        if c == char:
            run += 1
            longest = max(longest, run)
        else:
            run = 0
    return longest


def code_fence(value: str) -> str:
    """Return a backtick fence strictly longer than any run inside *value*."""
    return "`" * max(3, max_run(value) + 1)


# ---------------------------------------------------------------------------
# Plain-text extraction
# ---------------------------------------------------------------------------

def extract_text(
    children: list[dict],
    definitions: dict[str, Definition] | None = None,
) -> str:
    """Recursively extract plain text from inline tokens.

    Formatting is dropped.  A ``link_reference`` with an empty label falls
    back to its definition's URL, then to its label/identifier.
    """
    parts: list[str] = []
    for token in children:
        token_type = token.get("type", "")
        if token_type in ("text", "codespan"):
            parts.append(token.get("raw", ""))
        elif token_type == "link_reference":
            parts.append(_reference_text(token, definitions))
        elif token_type == "linebreak":
            parts.append("\n")
        elif token_type == "softbreak":
            parts.append(" ")
        elif token_type in ("image", "image_reference", "footnote_ref"):
            continue
        elif "children" in token:
            parts.append(extract_text(token["children"], definitions))
    return "".join(parts)


def _reference_text(token: dict, definitions: dict[str, Definition] | None) -> str:
    label = extract_text(token.get("children", []), definitions)
    if label.strip():
        return label
    attrs = token.get("attrs", {})
    identifier = attrs.get("identifier", "")
    definition = (definitions or {}).get(identifier.lower())
    if definition is not None:
        return definition.url
    return attrs.get("label") or identifier
