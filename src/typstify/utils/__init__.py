from .locale import normalize_language, normalize_region
from .typst_text import (
    code_fence,
    escape_string,
    escape_text,
    extract_text,
    indent_lines,
    max_run,
    render_array,
)

__all__ = [
    "code_fence",
    "escape_string",
    "escape_text",
    "extract_text",
    "indent_lines",
    "max_run",
    "normalize_language",
    "normalize_region",
    "render_array",
]
