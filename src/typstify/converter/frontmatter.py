"""Decode the YAML metadata block and merge it with caller options.

Precedence, highest first::

    TypstifyConfig field  ->  front matter field  ->  leading heading (title only)

Every front matter field is validated on its own: a field with the wrong
shape is dropped with a warning and never prevents the remaining fields
from being read.
"""

from __future__ import annotations

import datetime as _dt
import re
from typing import Any

import yaml

from typstify.config import TypstifyConfig
from typstify.converter.context import IssueReporter
from typstify.models import DocumentMetadata, Frontmatter, IssueCode, Severity
from typstify.utils.locale import normalize_language, normalize_region

_STAGE = "frontmatter parsing"

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_TIMESTAMP_RE = re.compile(r"^(\d{4}-\d{1,2}-\d{1,2})(?:[Tt]|[ \t]+)\d{1,2}:\d{2}")

_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class _FrontmatterLoader(yaml.SafeLoader):
    """SafeLoader that keeps dates and timestamps as plain strings.

    Dates are validated by :func:`parse_date`, so an impossible date such as
    ``2024-02-30`` only affects the ``date`` field.
    """


_FrontmatterLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def decode_frontmatter(raw: str, report: IssueReporter | None = None) -> Frontmatter:
    """Decode a raw YAML block into a :class:`Frontmatter`.

    Unknown keys are ignored.  A block that fails to parse, or does not
    decode to a mapping, yields an empty :class:`Frontmatter` and a warning.
    """
    report = report if report is not None else IssueReporter()
    if not raw or not raw.strip():
        return Frontmatter()

    try:
        data = yaml.load(raw, Loader=_FrontmatterLoader)
    except yaml.YAMLError as exc:
        report(
            Severity.WARNING,
            IssueCode.INVALID_FRONTMATTER,
            f"Failed to parse YAML front matter: {exc}",
            _STAGE,
            cause=exc,
        )
        return Frontmatter()

    if data is None:
        return Frontmatter()
    if not isinstance(data, dict):
        report(
            Severity.WARNING,
            IssueCode.INVALID_FRONTMATTER,
            "YAML front matter is not a mapping",
            _STAGE,
            value_type=type(data).__name__,
        )
        return Frontmatter()

    language = _string_field(data, "lang", report)
    if language is None:
        language = _string_field(data, "language", report)

    return Frontmatter(
        title=_string_field(data, "title", report),
        author=_author_field(data, report),
        authors=_string_list_field(data, "authors", report),
        description=_string_field(data, "description", report),
        keywords=_string_list_field(data, "keywords", report),
        date=_date_field(data, report),
        abstract=_string_field(data, "abstract", report),
        language=language,
        region=_string_field(data, "region", report),
    )


def _invalid_field(report: IssueReporter, key: str, expected: str, value: Any) -> None:
    report(
        Severity.WARNING,
        IssueCode.INVALID_METADATA_FIELD,
        f'Front matter "{key}" field must be {expected}',
        _STAGE,
        field=key,
        field_type=type(value).__name__,
    )


def _string_field(data: dict, key: str, report: IssueReporter) -> str | None:
    if key not in data or data[key] is None:
        return None
    value = data[key]
    if isinstance(value, str):
        return value
    _invalid_field(report, key, "a string", value)
    return None


def _string_list_field(data: dict, key: str, report: IssueReporter) -> list[str] | None:
    if key not in data or data[key] is None:
        return None
    value = data[key]
    if not isinstance(value, list):
        _invalid_field(report, key, "a list of strings", value)
        return None
    items = [item for item in value if isinstance(item, str)]
    if len(items) != len(value):
        _invalid_field(report, key, "a list of strings", value)
    return items


def _author_field(data: dict, report: IssueReporter) -> str | list[str] | None:
    value = data.get("author")
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return _string_list_field(data, "author", report)
    _invalid_field(report, "author", "a string or a list of strings", value)
    return None


def _date_field(data: dict, report: IssueReporter) -> str | None:
    value = data.get("date")
    if value is None:
        return None
    if isinstance(value, str):
        # A full timestamp keeps only its calendar date.
        timestamp = _TIMESTAMP_RE.match(value.strip())
        return timestamp.group(1) if timestamp else value
    _invalid_field(report, "date", "a string or a date", value)
    return None


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def parse_date(value: str, report: IssueReporter | None = None) -> str:
    """Render a date value as a Typst expression.

    ``YYYY-MM-DD`` becomes ``datetime(day: D, month: M, year: Y)``;
    ``auto`` and ``none`` pass through; anything else becomes ``auto``
    and is reported.

    >>> parse_date("2024-01-15")
    'datetime(day: 15, month: 1, year: 2024)'
    """
    report = report if report is not None else IssueReporter()
    text = value.strip()
    keyword = text.lower()
    if keyword in ("auto", "none"):
        return keyword

    match = _ISO_DATE_RE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        try:
            _dt.date(year, month, day)
        except ValueError as exc:
            report(
                Severity.WARNING,
                IssueCode.INVALID_DATE,
                f'Invalid date "{value}": {exc}; using auto',
                "output building",
                date=value,
                cause=exc,
            )
            return "auto"
        return f"datetime(day: {day}, month: {month}, year: {year})"

    report(
        Severity.WARNING,
        IssueCode.INVALID_DATE,
        f'Unrecognised date "{value}"; expected YYYY-MM-DD, auto or none. Using auto',
        "output building",
        date=value,
    )
    return "auto"


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------

def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def resolve_authors(
    author: str | list[str] | None,
    authors: list[str] | None,
) -> list[str]:
    """Apply the authors rule: plural wins when non-empty, else singular.

    A singular string becomes a one-element list.  Blank names are dropped;
    duplicates are kept.
    """
    if authors:
        names = list(authors)
    elif isinstance(author, str):
        names = [author]
    elif isinstance(author, list):
        names = list(author)
    else:
        names = []
    return [name for name in names if isinstance(name, str) and name.strip()]


def merge_metadata(
    config: TypstifyConfig,
    frontmatter: Frontmatter,
    leading_title: str | None = None,
) -> DocumentMetadata:
    """Merge caller options, decoded front matter, and the extracted title."""
    authors = resolve_authors(config.author, config.authors)
    if not authors:
        authors = resolve_authors(frontmatter.author, frontmatter.authors)

    return DocumentMetadata(
        title=_first_present(config.title, frontmatter.title, leading_title) or "",
        authors=authors,
        description=_first_present(config.description, frontmatter.description),
        keywords=_first_present(config.keywords, frontmatter.keywords),
        date=_first_present(config.date, frontmatter.date),
        abstract=_first_present(config.abstract, frontmatter.abstract),
        language=normalize_language(_first_present(config.language, frontmatter.language)),
        region=normalize_region(_first_present(config.region, frontmatter.region)),
    )
