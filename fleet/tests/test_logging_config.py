"""Tests for logging configuration (logging_config.py).

This module tests:
- FleetJSONFormatter log output format
- FleetTextFormatter log output format
- setup_logging() function configuration
"""
from __future__ import annotations

import json
import logging
import sys

import pytest

from fleet.config import Settings
from fleet.logging_config import FleetJSONFormatter, FleetTextFormatter, setup_logging


def make_record(msg="Test message", level=logging.INFO, name="test", args=(), exc_info=None):
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Tests for FleetJSONFormatter class."""

    def setup_method(self):
        self.formatter = FleetJSONFormatter()

    def test_format_includes_required_fields(self):
        record = make_record("Warning message", level=logging.WARNING, name="fleet.commands")

        parsed = json.loads(self.formatter.format(record))

        assert parsed["level"] == "WARNING"
        assert parsed["logger"] == "fleet.commands"
        assert parsed["message"] == "Warning message"
        assert parsed["service"] == "cysic-fleet"
        assert "T" in parsed["timestamp"]

    def test_format_message_with_arguments(self):
        record = make_record("Removed %s from %s", args=("cysic-node-123456", "/data"))

        parsed = json.loads(self.formatter.format(record))

        assert parsed["message"] == "Removed cysic-node-123456 from /data"

    def test_node_extra_is_top_level(self):
        record = make_record()
        record.node = "cysic-node-123456"

        parsed = json.loads(self.formatter.format(record))

        assert parsed["node"] == "cysic-node-123456"
        assert "extra" not in parsed

    def test_format_serializes_non_json_extras_as_string(self):
        record = make_record()
        record.path = object()

        parsed = json.loads(self.formatter.format(record))

        assert isinstance(parsed["extra"]["path"], str)

    def test_format_includes_exception_info(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            exc_info = sys.exc_info()

        parsed = json.loads(self.formatter.format(make_record(level=logging.ERROR, exc_info=exc_info)))

        assert "ValueError" in parsed["exception"]


class TestTextFormatter:
    """Tests for FleetTextFormatter class."""

    def test_format_with_node(self):
        record = make_record("Started container", name="fleet.runtime.docker")
        record.node = "cysic-node-123456"

        output = FleetTextFormatter().format(record)

        assert "INFO" in output
        assert "[cysic-node-123456] fleet.runtime.docker: Started container" in output

    def test_format_without_node(self):
        output = FleetTextFormatter().format(make_record("Hello"))

        assert output.endswith("test: Hello")
        assert "[]" not in output


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_json_format(self):
        setup_logging(Settings(log_format="json", log_level="DEBUG"))

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, FleetJSONFormatter)

    def test_text_format(self):
        setup_logging(Settings(log_format="text"))

        assert isinstance(logging.getLogger().handlers[0].formatter, FleetTextFormatter)

    def test_invalid_level_falls_back_to_info(self):
        setup_logging(Settings(log_level="chatty"))

        assert logging.getLogger().level == logging.INFO

    def test_quiets_docker_logger(self):
        setup_logging(Settings())

        assert logging.getLogger("docker").level == logging.WARNING
