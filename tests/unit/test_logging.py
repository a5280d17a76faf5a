"""
Unit tests for structured logging.
"""

import json
import logging
import sys

import pytest

from cain.observability.logging import (
    CorrelationIDFilter,
    HealthProbeFilter,
    StructuredFormatter,
    correlation_id,
    get_correlation_id,
    set_correlation_id,
    setup_structured_logging,
)


def make_record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="cain.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def reset_correlation_id():
    token = correlation_id.set("")
    yield
    correlation_id.reset(token)


class TestStructuredFormatter:
    """Test JSON log formatting."""

    def test_basic_fields(self):
        document = json.loads(StructuredFormatter().format(make_record()))
        assert document["level"] == "INFO"
        assert document["logger"] == "cain.test"
        assert document["message"] == "hello"
        assert "timestamp" in document

    def test_structured_extras_included(self):
        record = make_record(
            namespace="default",
            group_version_kind="/v1, Kind=Secret",
            outcome="already_exists",
            unrelated="dropped",
        )
        document = json.loads(StructuredFormatter().format(record))
        assert document["namespace"] == "default"
        assert document["group_version_kind"] == "/v1, Kind=Secret"
        assert document["outcome"] == "already_exists"
        assert "unrelated" not in document

    def test_exception_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()
        document = json.loads(StructuredFormatter().format(record))
        assert "ValueError: boom" in document["exception"]


class TestCorrelationID:
    """Test correlation ID propagation."""

    def test_set_explicit(self):
        assert set_correlation_id("705ab4f5") == "705ab4f5"
        assert get_correlation_id() == "705ab4f5"

    def test_generated_when_empty(self):
        generated = set_correlation_id()
        assert len(generated) == 8
        assert get_correlation_id() == generated

    def test_filter_adds_correlation_id(self):
        set_correlation_id("abc123")
        record = make_record()
        assert CorrelationIDFilter().filter(record) is True
        assert record.correlation_id == "abc123"
        assert json.loads(StructuredFormatter().format(record))["correlation_id"] == "abc123"


class TestHealthProbeFilter:
    """Test probe log suppression."""

    @pytest.mark.parametrize(
        "message,kept",
        [
            ('"GET /healthz HTTP/1.1" 200', False),
            ('"GET /metrics HTTP/1.1" 200', False),
            ('"POST /inject/mutate HTTP/1.1" 200', True),
        ],
    )
    def test_filter(self, message, kept):
        assert HealthProbeFilter().filter(make_record(message)) is kept


class TestSetup:
    """Test root logger configuration."""

    def test_setup_installs_single_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_structured_logging(log_level="debug")
            setup_structured_logging(log_level="debug")

            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
            assert root.level == logging.DEBUG
            assert logging.getLogger("kubernetes").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_plain_text_formatting(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_structured_logging(enable_json_formatting=False)
            formatter = root.handlers[0].formatter
            assert not isinstance(formatter, StructuredFormatter)
            assert "%(correlation_id)s" in formatter._fmt
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
