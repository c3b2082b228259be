"""Inline rendering: canonical inline tokens to Typst markup.

Every inline kind maps to one handler in :data:`_INLINE_HANDLERS`::

    text            -> escaped text
    strong          -> *...*
    emphasis        -> _..._
    strikethrough   -> #strike[...]
    mark            -> #highlight[...]
    superscript     -> #super[...]
    subscript       -> #sub[...]
    codespan        -> `...`  (or #raw("...") when the code has backticks)
    link            -> #link("url")[label]
    link_reference  -> resolved like link; unresolved -> label text
    image           -> #image("path") / #external-image("url")
    image_reference -> resolved like image; unresolved -> alt text
    footnote_ref    -> #footnote[...]
    inline_math     -> $m$ / $ m $
    linebreak       -> \\ + newline
    softbreak       -> space
    html_inline     -> escaped literal text

Unknown kinds render as nothing; ``warn_unknown_inline`` reports them.
"""

from __future__ import annotations

import re
from collections.abc import Callable as _Callable

from typstify.converter.context import RenderContext
from typstify.converter.math import render_inline_math
from typstify.models import IssueCode, Severity
from typstify.utils.typst_text import escape_string, escape_text

_STAGE = "inline rendering"

_REMOTE_URL_RE = re.compile(r"^https?://", re.IGNORECASE)


def render_inlines(children: list[dict], ctx: RenderContext) -> str:
    """Render a list of inline tokens to a Typst markup string."""
    parts = (render_inline(child, ctx) for child in children)
    return "".join(part for part in parts if part)


def render_inline(token: dict, ctx: RenderContext) -> str:
    """Render a single inline token; unknown kinds render as ``""``."""
    token_type = token.get("type", "")
    handler = _INLINE_HANDLERS.get(token_type)
    if handler is not None:
        return handler(token, ctx)
    if ctx.config.warn_unknown_inline:
        ctx.report(
            Severity.WARNING,
            IssueCode.UNKNOWN_INLINE,
            f"Unknown inline node type: {token_type}",
            _STAGE,
            node_type=token_type,
        )
    return ""


# ---------------------------------------------------------------------------
# Text and formatting
# ---------------------------------------------------------------------------

def _render_text(token: dict, ctx: RenderContext) -> str:
    return escape_text(token.get("raw", ""))


def _wrapper(opening: str, closing: str) -> _InlineHandler:
    def render(token: dict, ctx: RenderContext) -> str:
        return f"{opening}{render_inlines(token.get('children', []), ctx)}{closing}"
    return render


def _render_codespan(token: dict, ctx: RenderContext) -> str:
    """Render inline code.

    Typst raw markup has no escape mechanism and reads three or more
    backticks as a block, so code that contains backticks (or is empty)
    goes through the ``raw`` function instead.
    """
    code = token.get("raw", "")
    if code and "`" not in code:
        return f"`{code}`"
    return f'#raw("{escape_string(code)}")'


def _render_linebreak(token: dict, ctx: RenderContext) -> str:
    return "\\\n"


def _render_softbreak(token: dict, ctx: RenderContext) -> str:
    return " "


def _render_math(token: dict, ctx: RenderContext) -> str:
    span = token.get("attrs", {}).get("span")
    return render_inline_math(token.get("raw", ""), span, ctx)


# ---------------------------------------------------------------------------
# Links and images
# ---------------------------------------------------------------------------

def _link_markup(url: str, children: list[dict], ctx: RenderContext) -> str:
    label = render_inlines(children, ctx)
    if not label.strip():
        label = escape_text(url)
    return f'#link("{escape_string(url)}")[{label}]'


def _image_markup(url: str, ctx: RenderContext) -> str:
    if _REMOTE_URL_RE.match(url):
        ctx.warnings.external_images = True
        return f'#external-image(\n  "{escape_string(url)}"\n)'
    return f'#image("{escape_string(url)}")'


def _render_link(token: dict, ctx: RenderContext) -> str:
    url = token.get("attrs", {}).get("url", "")
    return _link_markup(url, token.get("children", []), ctx)


def _render_image(token: dict, ctx: RenderContext) -> str:
    return _image_markup(token.get("attrs", {}).get("url", ""), ctx)


def _unresolved_reference(identifier: str, kind: str, ctx: RenderContext) -> None:
    ctx.report(
        Severity.WARNING,
        IssueCode.UNRESOLVED_LINK_REFERENCE,
        f"{kind} reference [{identifier}] has no matching definition",
        _STAGE,
        identifier=identifier,
    )


def _render_link_reference(token: dict, ctx: RenderContext) -> str:
    attrs = token.get("attrs", {})
    identifier = attrs.get("identifier", "")
    children = token.get("children", [])
    definition = ctx.definitions.get(identifier.lower())
    if definition is None:
        _unresolved_reference(identifier, "Link", ctx)
        return render_inlines(children, ctx) or escape_text(attrs.get("label") or identifier)
    return _link_markup(definition.url, children, ctx)


def _render_image_reference(token: dict, ctx: RenderContext) -> str:
    attrs = token.get("attrs", {})
    identifier = attrs.get("identifier", "")
    definition = ctx.definitions.get(identifier.lower())
    if definition is None:
        _unresolved_reference(identifier, "Image", ctx)
        return escape_text(attrs.get("alt") or attrs.get("label") or identifier)
    return _image_markup(definition.url, ctx)


# ---------------------------------------------------------------------------
# Footnotes
# ---------------------------------------------------------------------------

def _render_footnote_ref(token: dict, ctx: RenderContext) -> str:
    """Render a footnote reference with its definition's blocks inline.

    Multi-block footnotes are joined with a single space.  A footnote that
    (directly or indirectly) references itself renders as nothing at the
    inner reference.
    """
    identifier = token.get("attrs", {}).get("identifier", "")
    key = identifier.lower()
    definition = ctx.footnotes.get(key)
    if definition is None:
        ctx.report(
            Severity.WARNING,
            IssueCode.UNRESOLVED_FOOTNOTE,
            f"Footnote reference [^{identifier}] has no matching definition",
            _STAGE,
            identifier=identifier,
        )
        return ""
    if key in ctx.active_footnotes:
        ctx.report(
            Severity.WARNING,
            IssueCode.FOOTNOTE_CYCLE,
            f"Footnote [^{identifier}] references itself",
            _STAGE,
            identifier=identifier,
        )
        return ""

    ctx.active_footnotes.add(key)
    try:
        if ctx.render_block is None:
            raise RuntimeError("no block renderer installed on the render context")
        rendered = (ctx.render_block(child, 0, ctx) for child in definition.children)
        content = " ".join(part for part in rendered if part)
    except Exception as exc:  # isolate the footnote, keep the paragraph
        ctx.report(
            Severity.ERROR,
            IssueCode.INLINE_RENDER_ERROR,
            f"Error rendering footnote [^{identifier}]: {exc}",
            _STAGE,
            identifier=identifier,
            cause=exc,
        )
        return ""
    finally:
        ctx.active_footnotes.discard(key)
    return f"#footnote[{content.strip()}]"


# ---------------------------------------------------------------------------
# Dispatch table
# ---------------------------------------------------------------------------

_InlineHandler = _Callable[[dict, RenderContext], str]

_INLINE_HANDLERS: dict[str, _InlineHandler] = {
    "text": _render_text,
    "strong": _wrapper("*", "*"),
    "emphasis": _wrapper("_", "_"),
    "strikethrough": _wrapper("#strike[", "]"),
    "mark": _wrapper("#highlight[", "]"),
    "superscript": _wrapper("#super[", "]"),
    "subscript": _wrapper("#sub[", "]"),
    "codespan": _render_codespan,
    "link": _render_link,
    "link_reference": _render_link_reference,
    "image": _render_image,
    "image_reference": _render_image_reference,
    "footnote_ref": _render_footnote_ref,
    "inline_math": _render_math,
    "linebreak": _render_linebreak,
    "softbreak": _render_softbreak,
    "html_inline": _render_text,
}
