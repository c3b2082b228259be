"""Structured JSON logger for typstify.

Every log record is emitted as a single-line JSON object so conversion
diagnostics can be shipped to a log pipeline without extra parsing.

Records carrying a :class:`~typstify.models.ConversionIssue` (passed as
``extra={"issue": issue}``) are flattened into the JSON object::

    {"ts": "2025-07-01T12:00:00.123456+00:00", "level": "DEBUG",
     "logger": "typstify.converter", "message": "conversion issue: ...",
     "code": "UNRESOLVED_FOOTNOTE", "severity": "warning",
     "stage": "inline rendering", "details": {"identifier": "1"}}

Usage::

    from typstify.observability import get_logger

    log = get_logger("typstify.converter", level="DEBUG")
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any


def issue_fields(issue: Any) -> dict[str, Any]:
    """Flatten a conversion issue into JSON-ready log fields."""
    fields: dict[str, Any] = {
        "code": issue.code,
        "severity": getattr(issue.severity, "value", issue.severity),
        "stage": issue.stage,
    }
    if issue.details:
        fields["details"] = issue.details
    if issue.cause is not None:
        fields["cause"] = f"{type(issue.cause).__name__}: {issue.cause}"
    return fields


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Guaranteed keys: ``ts`` (ISO-8601 UTC), ``level``, ``logger`` and
    ``message``.  An ``issue`` attribute is expanded with
    :func:`issue_fields`; ``extra_fields`` are merged in as-is.
    ``exc_info`` and ``stack_info`` are serialised when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        issue = getattr(record, "issue", None)
        if issue is not None:
            entry.update(issue_fields(issue))
        entry.update(getattr(record, "extra_fields", None) or {})

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


# Names that already carry a StructuredFormatter handler.
_configured_loggers: set[str] = set()


def get_logger(
    name: str = "typstify",
    *,
    level: int | str = logging.WARNING,
    stream: Any | None = None,
) -> logging.Logger:
    """Return the structured JSON logger called *name*.

    The first call for a *name* attaches one :class:`StructuredFormatter`
    handler (writing to *stream*, default ``sys.stderr``), sets *level*,
    and stops propagation to the root logger.  Later calls return the same
    logger untouched.

    Parameters
    ----------
    name:
        Logger name.  The converter logs on ``"typstify.converter"``.
    level:
        An ``int`` or a case-insensitive level name.  Defaults to
        ``WARNING``, which keeps the per-issue ``DEBUG`` records quiet.
    stream:
        Output stream for the handler.
    """
    logger = logging.getLogger(name)
    if name in _configured_loggers:
        return logger

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    _configured_loggers.add(name)
    return logger
