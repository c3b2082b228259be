"""Error hierarchy for the typstify package.

Every public error class inherits from TypstifyError. Each carries a
machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause`` (chained exception).

Only *fatal* failures are raised.  Recoverable problems (unresolved
references, math fallbacks, malformed metadata fields, a single node that
failed to render) are reported as :class:`~typstify.models.ConversionIssue`
records through the conversion's error callback and never leave the
pipeline as exceptions.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error the package can raise."""

    CONVERSION_ERROR = "CONVERSION_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    MATH_CONVERSION_ERROR = "MATH_CONVERSION_ERROR"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class TypstifyError(Exception):
    """Base exception for all typstify errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys and expected types are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Conversion errors
# ---------------------------------------------------------------------------

class TypstifyConversionError(TypstifyError):
    """A conversion failed at the orchestration boundary.

    Raised after the failure has been reported through ``on_error``.

    Context keys: ``stage``.
    """

    def __init__(
        self,
        code: str = ErrorCode.CONVERSION_ERROR,
        message: str = "Conversion error",
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            context=context,
            cause=cause,
        )


class TypstifyParseError(TypstifyConversionError):
    """The Markdown source could not be tokenized at all.

    Context keys: ``stage``, ``source_length``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.PARSE_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class TypstifyMathConversionError(TypstifyConversionError):
    """A LaTeX expression could not be translated to Typst math.

    The renderers catch this error and fall back to the raw LaTeX, so it
    only escapes when :func:`~typstify.converter.math.latex_to_typst` is
    called directly.

    Context keys: ``latex``, ``reason``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.MATH_CONVERSION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )
