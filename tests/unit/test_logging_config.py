# tests/unit/test_logging_config.py
"""Tests for JSON stderr logging."""

import json
import logging
import sys

from jwst_cosmos.logging_config import JsonFormatter, configure_logging


class TestJsonFormatter:
    def test_formats_record(self):
        record = logging.LogRecord("jwst_cosmos.tunnel", logging.INFO, __file__, 1, "ready %s", ("ollama",), None)

        data = json.loads(JsonFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "jwst_cosmos.tunnel"
        assert data["msg"] == "ready ollama"
        assert "ts" in data

    def test_includes_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        data = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: boom" in data["exc"]


class TestConfigureLogging:
    def test_levels(self):
        root = logging.getLogger()
        saved = root.handlers[:]
        try:
            configure_logging(verbose=True)
            assert logging.getLogger("jwst_cosmos").level == logging.DEBUG
            assert logging.getLogger("websockets").level == logging.WARNING
            assert isinstance(root.handlers[0].formatter, JsonFormatter)

            configure_logging(verbose=False)
            assert logging.getLogger("jwst_cosmos").level == logging.WARNING
        finally:
            root.handlers[:] = saved
            logging.getLogger("jwst_cosmos").setLevel(logging.NOTSET)
