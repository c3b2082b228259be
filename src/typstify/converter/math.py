"""Math conversion: LaTeX to Typst math.

Block math token::

    convert(latex)            -> "$ typst $"
      converter raises        -> "$ latex $"  + MATH_FALLBACK warning

Inline math token (display chosen from the source span)::

    span - len(latex) >= 4    -> "$ typst $"   (written as $$...$$)
    otherwise                 -> "$typst$"     (written as $...$)

The converter itself is :func:`latex_to_typst`, which walks the
pylatexenc node tree.  Callers can swap it out through
``TypstifyConfig(math_converter=...)``.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from pylatexenc.latexwalker import (
    LatexCharsNode,
    LatexCommentNode,
    LatexEnvironmentNode,
    LatexGroupNode,
    LatexMacroNode,
    LatexMathNode,
    LatexSpecialsNode,
    LatexWalker,
    LatexWalkerError,
)

from typstify.errors import TypstifyMathConversionError
from typstify.models import IssueCode, Severity

if TYPE_CHECKING:
    from typstify.converter.context import RenderContext

DISPLAY_DELIMITER_OVERHEAD: int = 4
"""``$$`` on both sides; single-dollar spans carry exactly 2 extra chars."""


# ---------------------------------------------------------------------------
# Rendering with fallback
# ---------------------------------------------------------------------------

def _convert_or_fallback(latex: str, ctx: RenderContext, stage: str) -> str:
    try:
        return ctx.convert_math(latex)
    except Exception as exc:  # any converter failure falls back to the source
        ctx.report(
            Severity.WARNING,
            IssueCode.MATH_FALLBACK,
            f"Failed to convert {stage} LaTeX to Typst: {exc}",
            stage,
            latex=latex,
            cause=exc,
        )
        return latex


def render_block_math(expression: str, ctx: RenderContext) -> str:
    """Render a block-level math expression (without ``$$`` delimiters)."""
    latex = expression.strip()
    return f"$ {_convert_or_fallback(latex, ctx, 'block math')} $"


def is_display_span(expression: str, span: int | None) -> bool:
    """Whether an inline math span was written with ``$$`` delimiters.

    *span* is the length of the source span including delimiters; without
    it the span is treated as inline.
    """
    if span is None:
        return False
    return span - len(expression.strip()) >= DISPLAY_DELIMITER_OVERHEAD


def render_inline_math(expression: str, span: int | None, ctx: RenderContext) -> str:
    """Render an inline math span, keeping its display/inline form."""
    latex = expression.strip()
    math = _convert_or_fallback(latex, ctx, "inline math")
    if is_display_span(expression, span):
        return f"$ {math} $"
    return f"${math}$"


# ---------------------------------------------------------------------------
# LaTeX -> Typst
# ---------------------------------------------------------------------------

_GREEK: tuple[str, ...] = (
    "alpha", "beta", "gamma", "delta", "epsilon", "zeta", "eta", "theta",
    "iota", "kappa", "lambda", "mu", "nu", "xi", "omicron", "pi", "rho",
    "sigma", "tau", "upsilon", "phi", "chi", "psi", "omega",
)

_SYMBOLS: dict[str, str] = {
    **{name: name for name in _GREEK},
    **{name.capitalize(): name.capitalize() for name in _GREEK},
    "varepsilon": "epsilon",
    "vartheta": "theta.alt",
    "varphi": "phi",
    "varpi": "pi.alt",
    "varrho": "rho.alt",
    "varsigma": "sigma.alt",
    # LaTeX draws \epsilon and \phi in the lunate and stroked forms.
    "epsilon": "epsilon.alt",
    "phi": "phi.alt",
    # operators and relations
    "cdot": "dot.op",
    "times": "times",
    "div": "div",
    "pm": "plus.minus",
    "mp": "minus.plus",
    "ast": "ast",
    "star": "star",
    "circ": "compose",
    "bullet": "bullet",
    "oplus": "plus.circle",
    "otimes": "times.circle",
    "leq": "<=",
    "le": "<=",
    "geq": ">=",
    "ge": ">=",
    "neq": "!=",
    "ne": "!=",
    "approx": "approx",
    "sim": "tilde.op",
    "simeq": "tilde.eq",
    "cong": "tilde.equiv",
    "equiv": "equiv",
    "propto": "prop",
    "ll": "<<",
    "gg": ">>",
    "in": "in",
    "notin": "in.not",
    "ni": "in.rev",
    "subset": "subset",
    "subseteq": "subset.eq",
    "supset": "supset",
    "supseteq": "supset.eq",
    "cup": "union",
    "cap": "sect",
    "setminus": "without",
    "emptyset": "emptyset",
    "varnothing": "emptyset",
    "forall": "forall",
    "exists": "exists",
    "neg": "not",
    "lnot": "not",
    "land": "and",
    "wedge": "and",
    "lor": "or",
    "vee": "or",
    "mid": "divides",
    "parallel": "parallel",
    "perp": "perp",
    "angle": "angle",
    # arrows
    "to": "->",
    "rightarrow": "->",
    "leftarrow": "<-",
    "gets": "<-",
    "leftrightarrow": "<->",
    "Rightarrow": "=>",
    "Leftarrow": "arrow.l.double",
    "Leftrightarrow": "<=>",
    "iff": "<==>",
    "implies": "==>",
    "mapsto": "|->",
    "uparrow": "arrow.t",
    "downarrow": "arrow.b",
    "longrightarrow": "-->",
    "longleftarrow": "<--",
    # big operators
    "sum": "sum",
    "prod": "product",
    "coprod": "product.co",
    "int": "integral",
    "iint": "integral.double",
    "iiint": "integral.triple",
    "oint": "integral.cont",
    "bigcup": "union.big",
    "bigcap": "sect.big",
    # misc
    "infty": "infinity",
    "partial": "partial",
    "nabla": "nabla",
    "ell": "ell",
    "hbar": "planck.reduce",
    "Re": "Re",
    "Im": "Im",
    "aleph": "aleph",
    "prime": "prime",
    "degree": "degree",
    "dots": "dots.h",
    "ldots": "dots.h",
    "cdots": "dots.c",
    "vdots": "dots.v",
    "ddots": "dots.down",
    "langle": "angle.l",
    "rangle": "angle.r",
    "lfloor": "floor.l",
    "rfloor": "floor.r",
    "lceil": "ceil.l",
    "rceil": "ceil.r",
    "vert": "|",
    "Vert": "||",
    "|": "||",
    # spacing
    ",": "thin",
    ":": "med",
    ";": "med",
    "!": "",
    " ": "space",
    "quad": "quad",
    "qquad": "wide",
    # escaped characters
    "{": "\\{",
    "}": "\\}",
    "%": "%",
    "$": "\\$",
    "#": "\\#",
    "&": "\\&",
    "_": "\\_",
    "\\": " \\ ",
}

_OPERATORS: frozenset[str] = frozenset({
    "sin", "cos", "tan", "cot", "sec", "csc", "arcsin", "arccos", "arctan",
    "sinh", "cosh", "tanh", "coth", "exp", "log", "ln", "lg", "lim",
    "liminf", "limsup", "max", "min", "sup", "inf", "det", "dim", "ker",
    "deg", "gcd", "arg", "hom", "mod", "Pr",
})

_IGNORED: frozenset[str] = frozenset({
    "displaystyle", "textstyle", "scriptstyle", "limits", "nolimits",
    "left", "right", "big", "Big", "bigg", "Bigg", "bigl", "bigr",
    "Bigl", "Bigr", "middle",
})

_STYLES: dict[str, str] = {
    "mathrm": "upright",
    "mathbf": "bold",
    "boldsymbol": "bold",
    "bm": "bold",
    "mathit": "italic",
    "mathcal": "cal",
    "mathbb": "bb",
    "mathsf": "sans",
    "mathtt": "mono",
    "mathfrak": "frak",
}

_ACCENTS: dict[str, str] = {
    "hat": "hat",
    "widehat": "hat",
    "bar": "macron",
    "overline": "overline",
    "underline": "underline",
    "vec": "arrow",
    "overrightarrow": "arrow",
    "tilde": "tilde",
    "widetilde": "tilde",
    "dot": "dot",
    "ddot": "dot.double",
    "check": "caron",
    "breve": "breve",
    "acute": "acute",
    "grave": "grave",
    "overbrace": "overbrace",
    "underbrace": "underbrace",
}

_TEXT_MACROS: frozenset[str] = frozenset({"text", "textrm", "textit", "textbf", "mbox"})

_MATRIX_DELIMITERS: dict[str, str | None] = {
    "matrix": "#none",
    "smallmatrix": "#none",
    "array": "#none",
    "pmatrix": None,
    "bmatrix": '"["',
    "Bmatrix": '"{"',
    "vmatrix": '"|"',
    "Vmatrix": '"||"',
}

_ALIGNED_ENVIRONMENTS: frozenset[str] = frozenset({
    "aligned", "align", "align*", "alignat", "alignat*", "gathered",
    "gather", "gather*", "split", "eqnarray", "eqnarray*", "equation",
    "equation*", "multline", "multline*",
})

_LETTER_GAP_RE = re.compile(r"(?<=[A-Za-z])(?=[A-Za-z0-9])|(?<=[0-9])(?=[A-Za-z])")
_WHITESPACE_RE = re.compile(r"\s+")


def latex_to_typst(latex: str) -> str:
    """Translate a LaTeX math expression to Typst math syntax.

    >>> latex_to_typst(r"\\frac{a}{b} + \\alpha")
    'frac(a, b) + alpha'

    Raises
    ------
    TypstifyMathConversionError
        If the expression cannot be parsed, has unbalanced braces, uses an
        unsupported environment, or a macro is missing an argument.
    """
    if not latex.strip():
        return ""
    try:
        walker = LatexWalker(latex, tolerant_parsing=False)
        nodes, pos, length = walker.get_latex_nodes()
    except LatexWalkerError as exc:
        raise TypstifyMathConversionError(
            message=f"Could not parse LaTeX: {exc}",
            context={"latex": latex, "reason": str(exc)},
            cause=exc,
        ) from exc

    if latex[pos + length:].strip():
        raise TypstifyMathConversionError(
            message="Unbalanced braces in LaTeX expression",
            context={"latex": latex, "reason": "unbalanced"},
        )
    return _MathWriter(latex).render(nodes)


class _NodeStream:
    """Sibling cursor that lets macros consume their arguments.

    Items are pylatexenc nodes or plain strings (left-over characters of a
    chars node after an argument was taken from it).
    """

    __slots__ = ("_items", "_pos")

    def __init__(self, nodes: list[Any]) -> None:
        self._items: list[Any] = [n for n in nodes if n is not None]
        self._pos = 0

    def next(self) -> Any | None:
        if self._pos >= len(self._items):
            return None
        item = self._items[self._pos]
        self._pos += 1
        return item

    def peek(self) -> Any | None:
        if self._pos >= len(self._items):
            return None
        return self._items[self._pos]

    def push(self, item: Any) -> None:
        self._items.insert(self._pos, item)


class _Output:
    """Accumulates Typst pieces, separating adjacent identifiers."""

    __slots__ = ("parts",)

    def __init__(self) -> None:
        self.parts: list[str] = []

    def append(self, piece: str) -> None:
        if not piece:
            return
        if self.parts and piece.lstrip()[:1] in ("^", "_"):
            # Attachments bind to the preceding base without a gap.
            self.parts[-1] = self.parts[-1].rstrip()
            piece = piece.lstrip()
        if self.parts:
            prev = self.parts[-1]
            if prev and prev[-1].isalnum() and (piece[0].isalnum() or piece[0] == "("):
                piece = " " + piece
        self.parts.append(piece)

    def expects_attachment(self) -> bool:
        tail = "".join(self.parts[-2:]).rstrip()
        return tail.endswith(("^", "_"))

    def text(self) -> str:
        return _WHITESPACE_RE.sub(" ", "".join(self.parts)).strip()


class _MathWriter:

    def __init__(self, latex: str) -> None:
        self._latex = latex

    def render(self, nodes: list[Any]) -> str:
        out = _Output()
        stream = _NodeStream(nodes)
        while (item := stream.next()) is not None:
            self._render_item(item, stream, out)
        return out.text()

    # -- dispatch ------------------------------------------------------------

    def _render_item(self, item: Any, stream: _NodeStream, out: _Output) -> None:
        attach = out.expects_attachment()

        if isinstance(item, str):
            out.append(self._chars(item))
            return
        if isinstance(item, LatexCharsNode):
            out.append(self._chars(item.chars))
            return
        if isinstance(item, LatexCommentNode):
            return
        if isinstance(item, LatexSpecialsNode):
            out.append(" " if item.specials_chars == "~" else item.specials_chars)
            return

        if isinstance(item, LatexGroupNode):
            piece = self.render(item.nodelist)
        elif isinstance(item, LatexMathNode):
            piece = self.render(item.nodelist)
        elif isinstance(item, LatexMacroNode):
            piece = self._macro(item, stream)
        elif isinstance(item, LatexEnvironmentNode):
            piece = self._environment(item)
        else:
            raise self._error(f"unsupported LaTeX node {type(item).__name__}")

        if attach:
            piece = piece.strip()
            if len(piece) != 1:
                piece = f"({piece})"
        out.append(piece)

    def _chars(self, text: str) -> str:
        text = text.replace('"', '\\"').replace("/", "\\/")
        return _LETTER_GAP_RE.sub(" ", text)

    # -- macros --------------------------------------------------------------

    def _macro(self, node: LatexMacroNode, stream: _NodeStream) -> str:
        name = node.macroname

        if name in _IGNORED:
            if name in ("left", "right", "middle"):
                self._drop_null_delimiter(stream)
            return ""
        if name in _SYMBOLS:
            return f" {_SYMBOLS[name]} "
        if name in _OPERATORS:
            return f" {name} "

        if name in ("frac", "dfrac", "tfrac", "cfrac"):
            num, den = self._arguments(node, stream, 2)
            return f"frac({num}, {den})"
        if name == "binom":
            top, bottom = self._arguments(node, stream, 2)
            return f"binom({top}, {bottom})"
        if name == "sqrt":
            return self._sqrt(node, stream)
        if name in _STYLES:
            (body,) = self._arguments(node, stream, 1)
            return f"{_STYLES[name]}({body})"
        if name in _ACCENTS:
            (body,) = self._arguments(node, stream, 1)
            return f"{_ACCENTS[name]}({body})"
        if name in _TEXT_MACROS:
            (raw,) = self._arguments(node, stream, 1, verbatim=True)
            return f' "{_escape_string(raw)}" '
        if name == "operatorname":
            (raw,) = self._arguments(node, stream, 1, verbatim=True)
            return f'op("{_escape_string(raw)}")'

        # Many LaTeX symbol names are also Typst symbol names.
        return f" {name} "

    def _sqrt(self, node: LatexMacroNode, stream: _NodeStream) -> str:
        parsed = _parsed_arguments(node)
        index = next((a for a in parsed if _is_optional(a)), None)
        if index is None:
            index = self._take_optional(stream)
        (body,) = self._arguments(node, stream, 1)
        if index is None:
            return f"sqrt({body})"
        index_text = index if isinstance(index, str) else self._argument_text(index)
        return f"root({index_text}, {body})"

    def _arguments(
        self,
        node: LatexMacroNode,
        stream: _NodeStream,
        count: int,
        *,
        verbatim: bool = False,
    ) -> list[str]:
        mandatory = [a for a in _parsed_arguments(node) if not _is_optional(a)]
        while len(mandatory) < count:
            taken = self._take_argument(stream)
            if taken is None:
                raise self._error(f"\\{node.macroname} is missing an argument")
            mandatory.append(taken)
        args = mandatory[:count]
        if verbatim:
            return [_verbatim(a) for a in args]
        return [self._argument_text(a) for a in args]

    def _argument_text(self, arg: Any) -> str:
        if isinstance(arg, str):
            return self._chars(arg).strip()
        if isinstance(arg, LatexGroupNode):
            return self.render(arg.nodelist)
        return self.render([arg])

    def _take_argument(self, stream: _NodeStream) -> Any | None:
        """Take the next sibling as a macro argument (``\\frac12`` style)."""
        while True:
            item = stream.next()
            if item is None:
                return None
            text = _text_of(item)
            if text is None:
                return item
            stripped = text.lstrip()
            if not stripped:
                continue
            if len(stripped) > 1:
                stream.push(stripped[1:])
            return stripped[0]

    def _take_optional(self, stream: _NodeStream) -> str | None:
        """Take a ``[...]`` optional argument written as plain characters."""
        text = _text_of(stream.peek())
        if text is None or not text.startswith("["):
            return None
        end = text.find("]")
        if end < 0:
            return None
        stream.next()
        if text[end + 1:]:
            stream.push(text[end + 1:])
        return self._chars(text[1:end]).strip()

    def _drop_null_delimiter(self, stream: _NodeStream) -> None:
        # \left. and \right. are invisible delimiters.
        text = _text_of(stream.peek())
        if text is not None and text.startswith("."):
            stream.next()
            if text[1:]:
                stream.push(text[1:])

    # -- environments --------------------------------------------------------

    def _environment(self, node: LatexEnvironmentNode) -> str:
        name = node.environmentname
        nodelist = list(node.nodelist)

        if name in _MATRIX_DELIMITERS:
            if name == "array" and nodelist and isinstance(nodelist[0], LatexGroupNode):
                nodelist = nodelist[1:]
            rows = self._rows(nodelist)
            body = "; ".join(", ".join(cells) for cells in rows)
            delim = _MATRIX_DELIMITERS[name]
            if delim is None:
                return f"mat({body})"
            return f"mat(delim: {delim}, {body})"
        if name == "cases":
            rows = self._rows(nodelist)
            return f"cases({', '.join(' & '.join(cells) for cells in rows)})"
        if name in _ALIGNED_ENVIRONMENTS:
            rows = self._rows(nodelist)
            return " \\ ".join(" & ".join(cells) for cells in rows)

        raise self._error(f"unsupported environment {name!r}")

    def _rows(self, nodes: list[Any]) -> list[list[str]]:
        """Split environment content on ``\\\\`` (rows) and ``&`` (cells)."""
        rows: list[list[list[Any]]] = [[[]]]
        for item in nodes:
            if isinstance(item, LatexMacroNode) and item.macroname == "\\":
                rows.append([[]])
            elif isinstance(item, LatexSpecialsNode) and item.specials_chars == "&":
                rows[-1].append([])
            elif isinstance(item, LatexCharsNode) and "&" in item.chars:
                first, *rest = item.chars.split("&")
                rows[-1][-1].append(first)
                for fragment in rest:
                    rows[-1].append([fragment])
            else:
                rows[-1][-1].append(item)

        rendered = [[self.render(cell) for cell in row] for row in rows]
        return [row for row in rendered if any(cell for cell in row)]

    def _error(self, reason: str) -> TypstifyMathConversionError:
        return TypstifyMathConversionError(
            message=f"Cannot convert LaTeX to Typst: {reason}",
            context={"latex": self._latex, "reason": reason},
        )


def _parsed_arguments(node: LatexMacroNode) -> list[Any]:
    argd = getattr(node, "nodeargd", None)
    return [a for a in (getattr(argd, "argnlist", None) or []) if a is not None]


def _is_optional(arg: Any) -> bool:
    delimiters = getattr(arg, "delimiters", None)
    return bool(delimiters) and delimiters[0] == "["


def _text_of(item: Any) -> str | None:
    if isinstance(item, str):
        return item
    if isinstance(item, LatexCharsNode):
        return item.chars
    return None


def _verbatim(arg: Any) -> str:
    if isinstance(arg, str):
        return arg
    if isinstance(arg, LatexGroupNode):
        return "".join(_verbatim(n) for n in arg.nodelist)
    return arg.latex_verbatim()


def _escape_string(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
