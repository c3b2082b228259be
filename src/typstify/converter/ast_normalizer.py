"""Parse Markdown and normalize to canonical AST tokens.

This module wraps mistune v3's AST renderer and normalises the raw token
stream into the canonical kinds consumed by the rest of the pipeline.
Every token is a plain dict ``{"type", "raw", "attrs", "children"}``.

Canonical block tokens:
    frontmatter, definition, footnote_definition, heading, paragraph,
    block_quote, list, list_item, block_code, table, table_row,
    table_cell, thematic_break, block_math, html_block

Canonical inline tokens:
    text, strong, emphasis, codespan, strikethrough, mark, superscript,
    subscript, link, link_reference, image, image_reference,
    footnote_ref, inline_math, softbreak, linebreak, html_inline

mistune resolves reference links itself (keeping the *first* duplicate
definition) and has no notion of an unresolved reference, so top-level
reference and footnote definitions are lifted out of the source before
parsing and the ``[text][id]`` forms are recognised in text runs
afterwards.
"""

from __future__ import annotations

import re
from typing import Any

import mistune

from typstify.utils.typst_text import extract_text

# ---------------------------------------------------------------------------
# Mistune-to-canonical type mapping
# ---------------------------------------------------------------------------

_BLOCK_TYPE_MAP: dict[str, str] = {
    "heading": "heading",
    "paragraph": "paragraph",
    "block_quote": "block_quote",
    "list": "list",
    "list_item": "list_item",
    "block_code": "block_code",
    "thematic_break": "thematic_break",
    "block_math": "block_math",
    "block_html": "html_block",
    # Tight list items carry their text as block_text
    "block_text": "paragraph",
}

_INLINE_TYPE_MAP: dict[str, str] = {
    "text": "text",
    "strong": "strong",
    "emphasis": "emphasis",
    "codespan": "codespan",
    "strikethrough": "strikethrough",
    "mark": "mark",
    "superscript": "superscript",
    "subscript": "subscript",
    "link": "link",
    "image": "image",
    "inline_math": "inline_math",
    "softbreak": "softbreak",
    "linebreak": "linebreak",
    "inline_html": "html_inline",
}

# Types that should be silently skipped during normalization
_SKIP_TYPES: frozenset[str] = frozenset({
    "blank_line",
})

# Inline containers whose text must not be scanned for references
_OPAQUE_INLINE_TYPES: frozenset[str] = frozenset({
    "link",
    "image",
    "codespan",
    "link_reference",
    "image_reference",
})


# ---------------------------------------------------------------------------
# Inline $$...$$ rule
# ---------------------------------------------------------------------------

# mistune can splice a rule into its combined pattern more than once, so the
# pattern carries no named groups.
INLINE_DISPLAY_MATH_PATTERN = r"\$\$[^$]+?\$\$"


def _parse_inline_display_math(inline: Any, m: re.Match, state: Any) -> int:
    state.append_token({
        "type": "inline_math",
        "raw": m.group(0)[2:-2],
        "attrs": {"span": m.end() - m.start()},
    })
    return m.end()


def inline_display_math(md: mistune.Markdown) -> None:
    """mistune plugin: ``$$x$$`` inside a paragraph as display math.

    The stock ``math`` plugin reads ``$$x$$`` as ``$`` + ``$x`` + ``$``;
    this rule runs first and records the source span so the renderer can
    tell display spans from inline ones.
    """
    md.inline.register(
        "inline_display_math",
        INLINE_DISPLAY_MATH_PATTERN,
        _parse_inline_display_math,
        before="inline_math",
    )


# ---------------------------------------------------------------------------
# Source pre-processing
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"^ {0,3}(?P<fence>`{3,}|~{3,})")
_FOOTNOTE_DEF_RE = re.compile(r"^\[\^(?P<identifier>[^\]\s]+)\]:[ \t]?(?P<text>.*)$")
_LINK_DEF_RE = re.compile(
    r"^\[(?P<label>[^\]^][^\]]*)\]:[ \t]*"
    r"(?P<url><[^>\n]*>|\S+)"
    r"(?:[ \t]+(?P<title>\"[^\"\n]*\"|'[^'\n]*'|\([^)\n]*\)))?[ \t]*$"
)
_CONTINUATION_RE = re.compile(r"^(?: {4}|\t)")

_REFERENCE_RE = re.compile(
    r"(?P<full_bang>!)?\[(?P<text>(?!\^)[^\[\]]*)\]\[(?P<ref>(?!\^)[^\[\]]*)\]"
    r"|\[\^(?P<footnote>[^\[\]\s]+)\]"
    r"|(?P<short_bang>!)?\[(?P<short>[^\[\]]+)\](?![(:])"
)


def split_frontmatter(markdown: str) -> tuple[str | None, str]:
    """Split a leading ``---`` YAML block from the document.

    Returns ``(yaml_text, remainder)``; ``yaml_text`` is ``None`` when the
    document does not open with a closed block.
    """
    if not (markdown.startswith("---\n") or markdown.startswith("---\r\n")):
        return None, markdown

    lines = markdown.splitlines(keepends=True)
    for index in range(1, len(lines)):
        if lines[index].strip() in ("---", "..."):
            return "".join(lines[1:index]), "".join(lines[index + 1:])
    return None, markdown


def _unquote_title(title: str | None) -> str | None:
    if not title:
        return None
    return title[1:-1]


def lift_definitions(markdown: str) -> tuple[str, list[dict], list[tuple[str, str]]]:
    """Remove top-level reference and footnote definitions from *markdown*.

    Only unindented definitions outside fenced code are recognised, and a
    link definition cannot interrupt a paragraph.  Removed lines become
    blank lines so the surrounding blocks stay separated.

    Returns
    -------
    tuple
        ``(remaining_source, definition_tokens, footnotes)`` where
        *footnotes* is a list of ``(identifier, body_markdown)`` pairs in
        source order.
    """
    lines = markdown.splitlines()
    kept: list[str] = []
    definitions: list[dict] = []
    footnotes: list[tuple[str, str]] = []

    fence: str | None = None
    previous_blank = True
    index = 0
    while index < len(lines):
        line = lines[index]

        if fence is not None:
            kept.append(line)
            if line.strip().startswith(fence) and not line.strip().strip(fence[0]):
                fence = None
            index += 1
            continue

        fence_match = _FENCE_RE.match(line)
        if fence_match:
            fence = fence_match.group("fence")
            kept.append(line)
            previous_blank = False
            index += 1
            continue

        footnote_match = _FOOTNOTE_DEF_RE.match(line)
        if footnote_match:
            body = [footnote_match.group("text")]
            index += 1
            while index < len(lines):
                candidate = lines[index]
                if _CONTINUATION_RE.match(candidate):
                    body.append(candidate[4:] if candidate.startswith("    ") else candidate[1:])
                elif not candidate.strip() and index + 1 < len(lines) \
                        and _CONTINUATION_RE.match(lines[index + 1]):
                    body.append("")
                else:
                    break
                index += 1
            footnotes.append((footnote_match.group("identifier"), "\n".join(body)))
            kept.append("")
            previous_blank = True
            continue

        link_match = _LINK_DEF_RE.match(line) if previous_blank else None
        if link_match:
            url = link_match.group("url")
            if url.startswith("<") and url.endswith(">"):
                url = url[1:-1]
            label = link_match.group("label").strip()
            definitions.append({
                "type": "definition",
                "attrs": {
                    "identifier": label,
                    "label": label,
                    "url": url,
                    "title": _unquote_title(link_match.group("title")),
                },
            })
            kept.append("")
            index += 1
            continue

        kept.append(line)
        previous_blank = not line.strip()
        index += 1

    return "\n".join(kept), definitions, footnotes


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------

class ASTNormalizer:
    """Parse Markdown and normalize to canonical AST tokens."""

    def __init__(self) -> None:
        self._parser = mistune.create_markdown(
            renderer="ast",
            plugins=[
                "strikethrough",
                "table",
                "url",
                "math",
                "mark",
                "superscript",
                "subscript",
                inline_display_math,
            ],
        )

    def parse(self, markdown: str) -> list[dict]:
        """Parse markdown and return normalized AST token list.

        Layout of the result: the ``frontmatter`` token (if any), the body
        blocks, then ``definition`` and ``footnote_definition`` tokens in
        source order.
        """
        frontmatter, body = split_frontmatter(markdown)
        body, definitions, footnotes = lift_definitions(body)
        known = {d["attrs"]["identifier"].lower() for d in definitions}

        tokens: list[dict] = []
        if frontmatter is not None:
            tokens.append({"type": "frontmatter", "raw": frontmatter})
        tokens.extend(self._parse_blocks(body, known))
        tokens.extend(definitions)
        for identifier, text in footnotes:
            tokens.append({
                "type": "footnote_definition",
                "attrs": {"identifier": identifier, "label": identifier},
                "children": self._parse_blocks(text, known),
            })
        return tokens

    def _parse_blocks(self, markdown: str, known: set[str]) -> list[dict]:
        raw_tokens = self._parser(markdown)
        if isinstance(raw_tokens, str):
            return []
        tokens = self._normalize_tokens(raw_tokens)
        return [self._resolve_references(token, known) for token in tokens]

    # -- normalization -------------------------------------------------------

    def _normalize_tokens(self, tokens: list[dict]) -> list[dict]:
        """Walk the token tree and normalize every node."""
        result: list[dict] = []
        for token in tokens:
            normalized = self._normalize_token(token)
            if normalized is not None:
                result.append(normalized)
        return result

    def _normalize_token(self, token: dict) -> dict | None:
        """Normalize a single token, returning None if it should be skipped."""
        raw_type = token.get("type", "")

        if raw_type in _SKIP_TYPES:
            return None
        if raw_type == "table":
            return self._normalize_table(token)
        if raw_type in _BLOCK_TYPE_MAP:
            return self._normalize_block(token, _BLOCK_TYPE_MAP[raw_type])
        if raw_type in _INLINE_TYPE_MAP:
            return self._normalize_inline(token, _INLINE_TYPE_MAP[raw_type])

        # Kinds this pipeline has no canonical name for pass through as-is
        # so the renderers can report them.
        passthrough: dict = {"type": raw_type}
        if "raw" in token:
            passthrough["raw"] = token["raw"]
        if token.get("children"):
            passthrough["children"] = self._normalize_tokens(token["children"])
        return passthrough

    def _normalize_block(self, token: dict, canonical_type: str) -> dict:
        """Normalize a block-level token."""
        result: dict = {"type": canonical_type}

        attrs = token.get("attrs")
        if attrs:
            result["attrs"] = dict(attrs)

        if canonical_type == "block_code":
            raw_code = token.get("raw", "")
            if raw_code.endswith("\n"):
                raw_code = raw_code[:-1]
            result["raw"] = raw_code
            info = (attrs or {}).get("info") or ""
            result["attrs"] = {"info": info.split()[0] if info.strip() else None}
            return result

        if canonical_type in ("block_math", "html_block"):
            result["raw"] = token.get("raw", "")
            return result

        if canonical_type == "thematic_break":
            return result

        children = token.get("children")
        if children:
            result["children"] = self._normalize_tokens(children)
        return result

    def _normalize_inline(self, token: dict, canonical_type: str) -> dict:
        """Normalize an inline-level token."""
        result: dict = {"type": canonical_type}

        if canonical_type in ("text", "softbreak", "linebreak", "codespan", "html_inline"):
            if "raw" in token:
                result["raw"] = token["raw"]
            return result

        if canonical_type == "inline_math":
            raw = token.get("raw", "")
            result["raw"] = raw
            span = (token.get("attrs") or {}).get("span")
            # The stock rule only matches single-dollar spans.
            result["attrs"] = {"span": span if span is not None else len(raw) + 2}
            return result

        attrs = token.get("attrs")
        if attrs:
            result["attrs"] = dict(attrs)

        children = token.get("children")
        if children:
            result["children"] = self._normalize_tokens(children)

        if canonical_type == "image":
            result.setdefault("attrs", {})["alt"] = extract_text(result.get("children", []))
        return result

    def _normalize_table(self, token: dict) -> dict:
        """Flatten mistune's head/body structure into header row + body rows.

        Result::

            {"type": "table", "attrs": {"align": [...]},
             "children": [table_row(header cells), table_row, ...]}
        """
        rows: list[dict] = []
        align: list[str | None] = []
        for part in token.get("children", []):
            part_type = part.get("type")
            if part_type == "table_head":
                cells = part.get("children", [])
                # Some mistune versions wrap the header cells in a row.
                if cells and cells[0].get("type") == "table_row":
                    cells = cells[0].get("children", [])
                align = [(c.get("attrs") or {}).get("align") for c in cells]
                rows.append(self._normalize_row(cells))
            elif part_type == "table_body":
                for row in part.get("children", []):
                    rows.append(self._normalize_row(row.get("children", [])))
        return {"type": "table", "attrs": {"align": align}, "children": rows}

    def _normalize_row(self, cells: list[dict]) -> dict:
        return {
            "type": "table_row",
            "children": [
                {"type": "table_cell", "children": self._normalize_tokens(c.get("children", []))}
                for c in cells
            ],
        }

    # -- reference resolution ------------------------------------------------

    def _resolve_references(self, token: dict, known: set[str]) -> dict:
        """Rewrite reference syntax left in the text runs below *token*."""
        if token.get("type") in _OPAQUE_INLINE_TYPES:
            return token
        children = token.get("children")
        if children:
            token["children"] = self._scan_children(children, known)
        return token

    def _scan_children(self, children: list[dict], known: set[str]) -> list[dict]:
        result: list[dict] = []
        for child in _merge_text(children):
            if child.get("type") == "text":
                result.extend(_split_references(child.get("raw", ""), known))
            else:
                result.append(self._resolve_references(child, known))
        return result


def _merge_text(children: list[dict]) -> list[dict]:
    """Join adjacent text tokens (mistune splits text at bracket boundaries)."""
    merged: list[dict] = []
    for child in children:
        if child.get("type") == "text" and merged and merged[-1].get("type") == "text":
            merged[-1] = {"type": "text", "raw": merged[-1].get("raw", "") + child.get("raw", "")}
        else:
            merged.append(child)
    return merged


def _split_references(text: str, known: set[str]) -> list[dict]:
    """Split a text run into text and reference tokens.

    ``[text][id]`` and ``[id][]`` always become references, so an
    undefined identifier can be reported; a shortcut ``[id]`` only does
    when ``id`` is defined.  ``[^id]`` becomes a footnote reference.
    """
    tokens: list[dict] = []
    position = 0
    for match in _REFERENCE_RE.finditer(text):
        token = _reference_token(match, known)
        if token is None:
            continue
        if match.start() > position:
            tokens.append({"type": "text", "raw": text[position:match.start()]})
        tokens.append(token)
        position = match.end()

    if position == 0:
        return [{"type": "text", "raw": text}]
    if position < len(text):
        tokens.append({"type": "text", "raw": text[position:]})
    return tokens


def _reference_token(match: re.Match, known: set[str]) -> dict | None:
    if match.group("footnote") is not None:
        identifier = match.group("footnote")
        return {"type": "footnote_ref", "attrs": {"identifier": identifier, "label": identifier}}

    if match.group("text") is not None:
        label = match.group("text")
        ref = match.group("ref").strip()
        identifier = ref or label.strip()
        if not identifier:
            return None
        reference_type = "full" if ref else "collapsed"
        is_image = match.group("full_bang") is not None
    else:
        label = match.group("short")
        identifier = label.strip()
        if identifier.lower() not in known:
            return None
        reference_type = "shortcut"
        is_image = match.group("short_bang") is not None

    if is_image:
        return {
            "type": "image_reference",
            "attrs": {
                "identifier": identifier,
                "label": label,
                "alt": label,
                "reference_type": reference_type,
            },
        }
    return {
        "type": "link_reference",
        "attrs": {"identifier": identifier, "label": label, "reference_type": reference_type},
        "children": [{"type": "text", "raw": label}] if label else [],
    }
