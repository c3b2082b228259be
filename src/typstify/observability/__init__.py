"""Observability for typstify: JSON log records and metrics hooks."""

from __future__ import annotations

from .logger import StructuredFormatter, get_logger, issue_fields
from .metrics import MetricsHook, NoopMetricsHook

__all__ = [
    "MetricsHook",
    "NoopMetricsHook",
    "StructuredFormatter",
    "get_logger",
    "issue_fields",
]
