"""Collect reference definitions, footnotes and the leading title.

Only **top-level** tokens are inspected: reference definitions nested in
other blocks are not recognised, matching where Markdown allows them.
Identifiers are case-insensitive; maps are keyed by the lower-cased
identifier and the last definition of a duplicated identifier wins.

None of these functions raise.  An unexpected failure is reported and the
partial result is returned.
"""

from __future__ import annotations

from typstify.converter.context import IssueReporter
from typstify.models import (
    Definition,
    FootnoteDefinition,
    IssueCode,
    LeadingTitle,
    Severity,
)
from typstify.utils.typst_text import extract_text

_NON_CONTENT_TYPES: frozenset[str] = frozenset({
    "frontmatter",
    "definition",
    "footnote_definition",
})


def collect_definitions(
    tokens: list[dict],
    report: IssueReporter | None = None,
) -> dict[str, Definition]:
    """Build the identifier -> :class:`Definition` map for link/image references."""
    report = report if report is not None else IssueReporter()
    definitions: dict[str, Definition] = {}
    try:
        for token in tokens:
            if token.get("type") != "definition":
                continue
            attrs = token.get("attrs", {})
            identifier = attrs["identifier"]
            key = identifier.lower()

            previous = definitions.get(key)
            if previous is not None:
                report(
                    Severity.WARNING,
                    IssueCode.DUPLICATE_DEFINITION,
                    f"Duplicate link/image definition found: [{identifier}]; "
                    f"discarding earlier URL {previous.url!r}",
                    "definition collection",
                    identifier=identifier,
                    discarded_url=previous.url,
                    url=attrs.get("url", ""),
                )

            definitions[key] = Definition(
                identifier=identifier,
                url=attrs.get("url", ""),
                title=attrs.get("title"),
                label=attrs.get("label"),
            )
    except (KeyError, TypeError, AttributeError, ValueError) as exc:
        report(
            Severity.ERROR,
            IssueCode.COLLECTION_FAILED,
            f"Error collecting definitions: {exc}",
            "definition collection",
            cause=exc,
        )
    return definitions


def collect_footnotes(
    tokens: list[dict],
    report: IssueReporter | None = None,
) -> dict[str, FootnoteDefinition]:
    """Build the identifier -> :class:`FootnoteDefinition` map."""
    report = report if report is not None else IssueReporter()
    footnotes: dict[str, FootnoteDefinition] = {}
    try:
        for token in tokens:
            if token.get("type") != "footnote_definition":
                continue
            attrs = token.get("attrs", {})
            identifier = attrs["identifier"]
            key = identifier.lower()

            if key in footnotes:
                report(
                    Severity.WARNING,
                    IssueCode.DUPLICATE_FOOTNOTE,
                    f"Duplicate footnote definition found: [^{identifier}]",
                    "footnote collection",
                    identifier=identifier,
                )

            footnotes[key] = FootnoteDefinition(
                identifier=identifier,
                children=list(token.get("children", [])),
                label=attrs.get("label"),
            )
    except (KeyError, TypeError, AttributeError, ValueError) as exc:
        report(
            Severity.ERROR,
            IssueCode.COLLECTION_FAILED,
            f"Error collecting footnotes: {exc}",
            "footnote collection",
            cause=exc,
        )
    return footnotes


def find_leading_title(
    tokens: list[dict],
    definitions: dict[str, Definition],
    report: IssueReporter | None = None,
) -> LeadingTitle | None:
    """Return the leading depth-1 heading as a title, if the document starts with one.

    Front matter and definitions are skipped; any other non-heading token
    (or a heading deeper than 1) ends the search.
    """
    report = report if report is not None else IssueReporter()
    try:
        for index, token in enumerate(tokens):
            token_type = token.get("type")
            if token_type in _NON_CONTENT_TYPES:
                continue
            if token_type != "heading":
                return None
            if token.get("attrs", {}).get("level", 1) != 1:
                return None
            title = extract_text(token.get("children", []), definitions).strip()
            return LeadingTitle(title, index) if title else None
    except (KeyError, TypeError, AttributeError, ValueError) as exc:
        report(
            Severity.WARNING,
            IssueCode.TITLE_EXTRACTION_FAILED,
            f"Error extracting leading heading title: {exc}",
            "title extraction",
            cause=exc,
        )
    return None
