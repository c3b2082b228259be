"""Tests for observability/logger.py and the converter's log records."""
import io
import json
import logging
import sys

import pytest

from typstify.converter.context import IssueReporter
from typstify.models import IssueCode, Severity


class TestStructuredFormatter:
    def _get_record(
        self,
        msg,
        level=logging.INFO,
        exc_info=None,
        stack_info=None,
        extra_fields=None,
    ):
        record = logging.LogRecord(
            name="test",
            level=level,
            pathname="",
            lineno=0,
            msg=msg,
            args=(),
            exc_info=exc_info,
        )
        if extra_fields is not None:
            record.extra_fields = extra_fields
        if stack_info is not None:
            record.stack_info = stack_info
        return record

    def test_basic_format(self):
        from typstify.observability.logger import StructuredFormatter

        fmt = StructuredFormatter()
        record = self._get_record("hello world")
        result = json.loads(fmt.format(record))
        assert result["message"] == "hello world"
        assert result["level"] == "INFO"
        assert result["logger"] == "test"
        assert "ts" in result

    def test_extra_fields_merged(self):
        from typstify.observability.logger import StructuredFormatter

        fmt = StructuredFormatter()
        record = self._get_record("msg", extra_fields={"code": "INVALID_DATE", "stage": "x"})
        result = json.loads(fmt.format(record))
        assert result["code"] == "INVALID_DATE"
        assert result["stage"] == "x"

    def test_exception_info_included(self):
        from typstify.observability.logger import StructuredFormatter

        fmt = StructuredFormatter()
        try:
            raise ValueError("test error")
        except ValueError:
            exc_info = sys.exc_info()
        record = self._get_record("error msg", exc_info=exc_info)
        result = json.loads(fmt.format(record))
        assert "exception" in result
        assert "ValueError" in result["exception"]

    def test_issue_expanded(self):
        from typstify.models import ConversionIssue
        from typstify.observability.logger import StructuredFormatter

        issue = ConversionIssue(
            severity=Severity.WARNING,
            code="MATH_FALLBACK",
            message="m",
            stage="block math",
            details={"latex": "\\x"},
            cause=ValueError("bad"),
        )
        record = self._get_record("msg")
        record.issue = issue
        result = json.loads(StructuredFormatter().format(record))
        assert result["code"] == "MATH_FALLBACK"
        assert result["severity"] == "warning"
        assert result["stage"] == "block math"
        assert result["details"] == {"latex": "\\x"}
        assert result["cause"] == "ValueError: bad"

    def test_stack_info_included(self):
        from typstify.observability.logger import StructuredFormatter

        fmt = StructuredFormatter()
        record = self._get_record("msg", stack_info="Stack Trace Here")
        result = json.loads(fmt.format(record))
        assert result["stack_info"] == "Stack Trace Here"


class TestGetLogger:
    def test_returns_logger_with_handler(self):
        from typstify.observability.logger import get_logger

        logger = get_logger("test.observability.unique1")
        assert isinstance(logger, logging.Logger)
        assert len(logger.handlers) > 0
        assert logger.propagate is False

    def test_default_level_is_warning(self):
        from typstify.observability.logger import get_logger

        assert get_logger("test.observability.default_level").level == logging.WARNING

    def test_string_level(self):
        from typstify.observability.logger import get_logger

        logger = get_logger("test.observability.unique2", level="debug")
        assert logger.level == logging.DEBUG

    def test_idempotent_no_duplicate_handlers(self):
        from typstify.observability.logger import get_logger

        name = "test.observability.unique3"
        logger1 = get_logger(name)
        handler_count = len(logger1.handlers)
        logger2 = get_logger(name)
        assert logger2 is logger1
        assert len(logger2.handlers) == handler_count

    def test_custom_stream(self):
        from typstify.observability.logger import get_logger

        stream = io.StringIO()
        logger = get_logger("test.observability.stream_unique", stream=stream)
        logger.warning("test message", extra={"extra_fields": {"key": "val"}})
        record = json.loads(stream.getvalue())
        assert record["message"] == "test message"
        assert record["key"] == "val"


# ---------------------------------------------------------------------------
# Converter log records
# ---------------------------------------------------------------------------


@pytest.fixture
def converter_log():
    """Capture ``typstify.converter`` records as parsed JSON objects."""
    from typstify.observability.logger import StructuredFormatter, get_logger

    logger = get_logger("typstify.converter")
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    previous_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    def records():
        return [json.loads(line) for line in stream.getvalue().splitlines()]

    yield records

    logger.removeHandler(handler)
    logger.setLevel(previous_level)


class TestConverterLogging:
    def test_every_issue_is_logged_at_debug(self, converter_log):
        report = IssueReporter()
        report(Severity.WARNING, IssueCode.INVALID_DATE, "bad date", "output building")
        (record,) = converter_log()
        assert record["level"] == "DEBUG"
        assert record["code"] == "INVALID_DATE"
        assert record["severity"] == "warning"
        assert record["stage"] == "output building"

    def test_issue_forwarded_to_callback(self):
        received = []
        report = IssueReporter(received.append)
        issue = report(Severity.ERROR, IssueCode.UNKNOWN_BLOCK, "m", "block rendering", node_type="x")
        assert received == [issue]
        assert issue.details == {"node_type": "x"}
        assert report.issues == [issue]

    def test_fatal_failure_logged_at_error(self, converter_log, monkeypatch):
        from typstify import MarkdownToTypstConverter, TypstifyConversionError

        def boom(*args, **kwargs):
            raise RuntimeError("assembly failed")

        monkeypatch.setattr("typstify.converter.md_to_typst.build_output", boom)
        with pytest.raises(TypstifyConversionError):
            MarkdownToTypstConverter().convert("text")
        errors = [r for r in converter_log() if r["level"] == "ERROR"]
        assert len(errors) == 1
        assert errors[0]["stage"] == "conversion"
        assert "RuntimeError" in errors[0]["exception"]

    def test_raising_callback_is_logged_not_propagated(self, converter_log):
        def explode(issue):
            raise RuntimeError("callback broke")

        report = IssueReporter(explode)
        issue = report(Severity.WARNING, IssueCode.INVALID_DATE, "bad date", "output building")
        assert report.issues == [issue]
        warnings = [r for r in converter_log() if r["level"] == "WARNING"]
        assert len(warnings) == 1
        assert warnings[0]["code"] == "INVALID_DATE"
        assert "callback broke" in warnings[0]["exception"]

    def test_raising_callback_keeps_fatal_error_type(self, monkeypatch):
        from typstify import MarkdownToTypstConverter, TypstifyConfig, TypstifyConversionError

        def explode(issue):
            raise RuntimeError("callback broke")

        def boom(*args, **kwargs):
            raise ValueError("assembly failed")

        monkeypatch.setattr("typstify.converter.md_to_typst.build_output", boom)
        converter = MarkdownToTypstConverter(TypstifyConfig(on_error=explode))
        with pytest.raises(TypstifyConversionError) as excinfo:
            converter.convert("text")
        assert isinstance(excinfo.value.__cause__, ValueError)
