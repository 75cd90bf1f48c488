"""
Unit tests for core.logger module.

Tests:
- Logger initialization and JSON mode
- Structured key=value formatting and escaping
- StructuredFormatter output
- Value truncation
"""

import json
import logging

import pytest

from waitroom.core import Logger
from waitroom.core.logger import StructuredFormatter, format_kv_pairs


class TestInit:
    """Logger initialization."""

    def test_name(self):
        logger = Logger("synchronizer")
        assert logger.name == "synchronizer"
        assert logger._logger.name == "synchronizer"

    def test_default_not_json(self):
        assert Logger("test")._json_output is False

    def test_json_mode(self):
        assert Logger("test", json_output=True)._json_output is True

    def test_default_max_value_length(self):
        assert Logger("test")._max_value_length == 1000


class TestFormatKvPairs:
    """Key-value pairs formatting and escaping."""

    def test_simple(self):
        assert format_kv_pairs({"key": "hello"}) == " key=hello"
        assert format_kv_pairs({"key": 123}) == " key=123"

    def test_with_spaces(self):
        assert format_kv_pairs({"key": "hello world"}) == ' key="hello world"'

    def test_with_equals(self):
        assert format_kv_pairs({"key": "foo=bar"}) == ' key="foo=bar"'

    def test_with_double_quotes(self):
        assert format_kv_pairs({"key": 'say "hello"'}) == ' key="say \\"hello\\""'

    def test_empty_value(self):
        assert format_kv_pairs({"key": ""}) == ' key=""'

    def test_empty_dict(self):
        assert format_kv_pairs({}) == ""

    def test_custom_prefix(self):
        assert format_kv_pairs({"a": 1}, prefix="") == "a=1"

    def test_truncation(self):
        result = format_kv_pairs({"key": "x" * 1500}, max_value_length=1000)
        assert "truncated 500 chars" in result

    def test_truncation_disabled(self):
        result = format_kv_pairs({"key": "x" * 1500}, max_value_length=None)
        assert "truncated" not in result


class TestLogging:
    """Records emitted through the stdlib logging machinery."""

    def test_structured_kv_attached(self, caplog):
        logger = Logger("test_kv")
        with caplog.at_level(logging.INFO, logger="test_kv"):
            logger.info("load_completed", entries=3)
        record = caplog.records[-1]
        assert record.getMessage() == "load_completed"
        assert record.structured_kv == {"entries": 3}

    def test_no_kwargs_no_extra(self, caplog):
        logger = Logger("test_plain")
        with caplog.at_level(logging.INFO, logger="test_plain"):
            logger.info("started")
        assert not hasattr(caplog.records[-1], "structured_kv")

    @pytest.mark.parametrize(
        ("method", "level"),
        [
            ("debug", logging.DEBUG),
            ("info", logging.INFO),
            ("warning", logging.WARNING),
            ("error", logging.ERROR),
            ("critical", logging.CRITICAL),
        ],
    )
    def test_levels(self, caplog, method, level):
        logger = Logger("test_levels")
        with caplog.at_level(logging.DEBUG, logger="test_levels"):
            getattr(logger, method)("event")
        assert caplog.records[-1].levelno == level

    def test_disabled_level_skipped(self, caplog):
        logger = Logger("test_skip")
        with caplog.at_level(logging.WARNING, logger="test_skip"):
            logger.debug("hidden", a=1)
        assert not [r for r in caplog.records if r.name == "test_skip"]

    def test_exception_includes_traceback(self, caplog):
        logger = Logger("test_exc")
        with caplog.at_level(logging.ERROR, logger="test_exc"):
            try:
                raise ValueError("boom")
            except ValueError:
                logger.exception("failed", step="load")
        assert caplog.records[-1].exc_info is not None

    def test_string_values_truncated(self, caplog):
        logger = Logger("test_trunc", max_value_length=5)
        with caplog.at_level(logging.INFO, logger="test_trunc"):
            logger.info("event", error="abcdefghij", count=123456789)
        kv = caplog.records[-1].structured_kv
        assert kv["error"].startswith("abcde...")
        assert kv["count"] == 123456789

    def test_json_output(self, caplog):
        logger = Logger("test_json", json_output=True)
        with caplog.at_level(logging.INFO, logger="test_json"):
            logger.info("load_failed", error="timeout")
        data = json.loads(caplog.records[-1].getMessage())
        assert data["message"] == "load_failed"
        assert data["level"] == "info"
        assert data["service"] == "test_json"
        assert data["error"] == "timeout"


class TestStructuredFormatter:
    def test_format_with_kv(self):
        record = logging.LogRecord("store", logging.INFO, __file__, 1, "query_error", None, None)
        record.structured_kv = {"operation": "fetch_all", "error": "gone away"}
        output = StructuredFormatter().format(record)
        assert output == 'info store query_error operation=fetch_all error="gone away"'

    def test_format_plain_record(self):
        record = logging.LogRecord(
            "waitroom.models.notification", logging.WARNING, __file__, 1, "bad %s", ("x",), None
        )
        assert StructuredFormatter().format(record) == "warning waitroom.models.notification bad x"
