"""Dedicated unit tests for ASTNormalizer.

Tests the Markdown → canonical AST normalization layer: mistune's token
stream mapping, front matter splitting, definition lifting, and the
reference rewriting done on text runs.
"""

import pytest

from typstify.converter.ast_normalizer import (
    ASTNormalizer,
    lift_definitions,
    split_frontmatter,
)


@pytest.fixture
def normalizer():
    return ASTNormalizer()


def _types(tokens):
    return [t["type"] for t in tokens]


def _find(tokens, token_type):
    for token in tokens:
        if token["type"] == token_type:
            return token
        found = _find(token.get("children", []), token_type)
        if found is not None:
            return found
    return None


# =========================================================================
# Block-level normalization
# =========================================================================

class TestBlockNormalization:
    """Verify each block type is normalized correctly."""

    def test_heading(self, normalizer):
        tokens = normalizer.parse("# Hello")
        assert len(tokens) == 1
        assert tokens[0]["type"] == "heading"
        assert tokens[0]["attrs"]["level"] == 1

    def test_heading_levels(self, normalizer):
        for level in range(1, 7):
            tokens = normalizer.parse(f"{'#' * level} Heading {level}")
            assert tokens[0]["type"] == "heading"
            assert tokens[0]["attrs"]["level"] == level

    def test_paragraph_children_are_inline(self, normalizer):
        tokens = normalizer.parse("Hello **bold** world")
        para = tokens[0]
        assert para["type"] == "paragraph"
        types = _types(para["children"])
        assert "text" in types
        assert "strong" in types

    def test_block_quote(self, normalizer):
        tokens = normalizer.parse("> Quote text")
        assert tokens[0]["type"] == "block_quote"
        assert tokens[0]["children"][0]["type"] == "paragraph"

    def test_unordered_list(self, normalizer):
        tokens = normalizer.parse("- item 1\n- item 2")
        assert tokens[0]["type"] == "list"
        assert tokens[0]["attrs"]["ordered"] is False
        assert len(tokens[0]["children"]) == 2

    def test_ordered_list(self, normalizer):
        tokens = normalizer.parse("1. first\n2. second")
        assert tokens[0]["type"] == "list"
        assert tokens[0]["attrs"]["ordered"] is True

    def test_tight_list_item_text_becomes_paragraph(self, normalizer):
        tokens = normalizer.parse("- item")
        item = tokens[0]["children"][0]
        assert item["type"] == "list_item"
        assert item["children"][0]["type"] == "paragraph"

    def test_block_code(self, normalizer):
        tokens = normalizer.parse("```python\nprint('hello')\n```")
        assert tokens[0]["type"] == "block_code"
        assert tokens[0]["raw"] == "print('hello')"
        assert tokens[0]["attrs"]["info"] == "python"

    def test_block_code_no_language(self, normalizer):
        tokens = normalizer.parse("```\ncode here\n```")
        assert tokens[0]["raw"] == "code here"
        assert tokens[0]["attrs"]["info"] is None

    def test_block_code_info_keeps_first_word(self, normalizer):
        tokens = normalizer.parse("```js title=app.js\nx\n```")
        assert tokens[0]["attrs"]["info"] == "js"

    def test_thematic_break(self, normalizer):
        tokens = normalizer.parse("a\n\n---\n\nb")
        assert "thematic_break" in _types(tokens)

    def test_block_math(self, normalizer):
        tokens = normalizer.parse("$$\nx^2\n$$")
        assert tokens[0]["type"] == "block_math"
        assert tokens[0]["raw"].strip() == "x^2"

    def test_html_block(self, normalizer):
        tokens = normalizer.parse("<div>\nhi\n</div>")
        assert tokens[0]["type"] == "html_block"
        assert "<div>" in tokens[0]["raw"]

    def test_blank_lines_are_skipped(self, normalizer):
        tokens = normalizer.parse("a\n\n\n\nb")
        assert _types(tokens) == ["paragraph", "paragraph"]

    def test_empty_input(self, normalizer):
        assert normalizer.parse("") == []


class TestTableNormalization:

    def test_header_row_then_body_rows(self, normalizer):
        tokens = normalizer.parse("| A | B |\n|:--|:-:|\n| 1 | 2 |\n| 3 | 4 |")
        table = tokens[0]
        assert table["type"] == "table"
        assert [row["type"] for row in table["children"]] == ["table_row"] * 3
        header = table["children"][0]["children"]
        assert [c["children"][0]["raw"].strip() for c in header] == ["A", "B"]

    def test_alignment(self, normalizer):
        tokens = normalizer.parse("| A | B | C |\n|:--|:-:|--:|\n| 1 | 2 | 3 |")
        assert tokens[0]["attrs"]["align"] == ["left", "center", "right"]

    def test_missing_alignment_is_none(self, normalizer):
        tokens = normalizer.parse("| A |\n|---|\n| 1 |")
        assert tokens[0]["attrs"]["align"] == [None]


# =========================================================================
# Inline-level normalization
# =========================================================================

class TestInlineNormalization:

    @pytest.mark.parametrize(
        ("markdown", "expected"),
        [
            ("**b**", "strong"),
            ("*e*", "emphasis"),
            ("~~s~~", "strikethrough"),
            ("==m==", "mark"),
            ("x^2^", "superscript"),
            ("H~2~O", "subscript"),
            ("`c`", "codespan"),
            ("[l](http://a.b)", "link"),
            ("![i](p.png)", "image"),
            ("a <b>x</b>", "html_inline"),
        ],
    )
    def test_inline_kinds(self, normalizer, markdown, expected):
        tokens = normalizer.parse(markdown)
        assert _find(tokens, expected) is not None

    def test_linebreak_and_softbreak(self, normalizer):
        tokens = normalizer.parse("a  \nb\nc")
        types = _types(tokens[0]["children"])
        assert "linebreak" in types
        assert "softbreak" in types

    def test_image_alt_recorded(self, normalizer):
        image = _find(normalizer.parse("![A cat](cat.png)"), "image")
        assert image["attrs"]["url"] == "cat.png"
        assert image["attrs"]["alt"] == "A cat"

    def test_inline_math_span(self, normalizer):
        math = _find(normalizer.parse("see $x+1$ now"), "inline_math")
        assert math["raw"] == "x+1"
        assert math["attrs"]["span"] == 5

    def test_inline_display_math_span(self, normalizer):
        math = _find(normalizer.parse("see $$x+1$$ now"), "inline_math")
        assert math["raw"] == "x+1"
        assert math["attrs"]["span"] == 7

    def test_display_and_inline_math_in_one_paragraph(self, normalizer):
        paragraph = normalizer.parse("Hi $$x$$ and $y$")[0]
        maths = [c for c in paragraph["children"] if c["type"] == "inline_math"]
        assert [(m["raw"], m["attrs"]["span"]) for m in maths] == [("x", 5), ("y", 3)]

    def test_empty_document(self, normalizer):
        assert normalizer.parse("") == []


# =========================================================================
# Front matter and definitions
# =========================================================================

class TestSplitFrontmatter:

    def test_leading_block(self):
        raw, rest = split_frontmatter("---\ntitle: A\n---\n# Body\n")
        assert raw == "title: A\n"
        assert rest == "# Body\n"

    def test_no_block(self):
        raw, rest = split_frontmatter("# Body")
        assert raw is None
        assert rest == "# Body"

    def test_unclosed_block_is_body(self):
        raw, rest = split_frontmatter("---\ntitle: A\n")
        assert raw is None
        assert rest == "---\ntitle: A\n"

    def test_frontmatter_token_comes_first(self, normalizer):
        tokens = normalizer.parse("---\ntitle: A\n---\n\nText")
        assert tokens[0] == {"type": "frontmatter", "raw": "title: A\n"}
        assert tokens[1]["type"] == "paragraph"


class TestLiftDefinitions:

    def test_link_definition(self):
        rest, definitions, footnotes = lift_definitions('[Foo]: http://x.y "T"\n\ntext')
        assert definitions == [{
            "type": "definition",
            "attrs": {"identifier": "Foo", "label": "Foo", "url": "http://x.y", "title": "T"},
        }]
        assert footnotes == []
        assert "http://x.y" not in rest
        assert "text" in rest

    def test_angle_bracket_url(self):
        _, definitions, _ = lift_definitions("[a]: <http://x.y/a b>")
        assert definitions[0]["attrs"]["url"] == "http://x.y/a b"

    def test_duplicates_kept_in_order(self):
        _, definitions, _ = lift_definitions("[a]: http://one\n[A]: http://two")
        assert [d["attrs"]["url"] for d in definitions] == ["http://one", "http://two"]

    def test_definition_inside_fence_is_code(self):
        source = "```\n[a]: http://x\n```"
        rest, definitions, _ = lift_definitions(source)
        assert definitions == []
        assert rest == source

    def test_definition_cannot_interrupt_paragraph(self):
        _, definitions, _ = lift_definitions("para line\n[a]: http://x")
        assert definitions == []

    def test_footnote_with_continuation(self):
        source = "[^n]: First line.\n    More text.\n\nAfter"
        rest, _, footnotes = lift_definitions(source)
        assert footnotes == [("n", "First line.\nMore text.")]
        assert "After" in rest
        assert "First line." not in rest

    def test_definitions_become_tokens(self, normalizer):
        tokens = normalizer.parse("Hi\n\n[x]: http://x\n\n[^1]: Note")
        assert _types(tokens) == ["paragraph", "definition", "footnote_definition"]
        footnote = tokens[2]
        assert footnote["attrs"]["identifier"] == "1"
        assert footnote["children"][0]["type"] == "paragraph"


# =========================================================================
# Reference rewriting
# =========================================================================

class TestReferences:

    def test_full_reference(self, normalizer):
        tokens = normalizer.parse("See [the docs][Docs].\n\n[docs]: http://d")
        ref = _find(tokens, "link_reference")
        assert ref["attrs"]["identifier"] == "Docs"
        assert ref["attrs"]["reference_type"] == "full"
        assert ref["children"] == [{"type": "text", "raw": "the docs"}]

    def test_collapsed_reference(self, normalizer):
        ref = _find(normalizer.parse("See [docs][]."), "link_reference")
        assert ref["attrs"]["identifier"] == "docs"
        assert ref["attrs"]["reference_type"] == "collapsed"

    def test_full_reference_without_definition_is_still_a_reference(self, normalizer):
        ref = _find(normalizer.parse("See [x][missing]."), "link_reference")
        assert ref["attrs"]["identifier"] == "missing"

    def test_shortcut_reference_requires_definition(self, normalizer):
        assert _find(normalizer.parse("See [docs]."), "link_reference") is None
        ref = _find(normalizer.parse("See [docs].\n\n[docs]: http://d"), "link_reference")
        assert ref["attrs"]["reference_type"] == "shortcut"

    def test_image_reference(self, normalizer):
        ref = _find(normalizer.parse("![Logo][logo]\n\n[logo]: logo.png"), "image_reference")
        assert ref["attrs"]["identifier"] == "logo"
        assert ref["attrs"]["alt"] == "Logo"

    def test_footnote_reference(self, normalizer):
        tokens = normalizer.parse("Text[^1].\n\n[^1]: Note.")
        children = tokens[0]["children"]
        assert children == [
            {"type": "text", "raw": "Text"},
            {"type": "footnote_ref", "attrs": {"identifier": "1", "label": "1"}},
            {"type": "text", "raw": "."},
        ]

    def test_codespan_is_not_scanned(self, normalizer):
        tokens = normalizer.parse("`[a][b]`")
        assert _find(tokens, "link_reference") is None
        assert _find(tokens, "codespan")["raw"] == "[a][b]"

    def test_reference_inside_emphasis(self, normalizer):
        ref = _find(normalizer.parse("*see [a][b]*"), "link_reference")
        assert ref is not None

    def test_toc_marker_stays_text(self, normalizer):
        tokens = normalizer.parse("[toc]")
        assert tokens[0]["children"] == [{"type": "text", "raw": "[toc]"}]
