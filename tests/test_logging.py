"""Tests for logging configuration."""

import json
import logging

from fuelauth.logging import JsonFormatter, setup_logging


class TestLogging:

    def test_json_formatter(self):
        record = logging.LogRecord(
            name="fuelauth.services.webhook_service",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Approved %s for card %s",
            args=("10.00", "c-1"),
            exc_info=None,
        )

        data = json.loads(JsonFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "fuelauth.services.webhook_service"
        assert data["message"] == "Approved 10.00 for card c-1"
        assert "exception" not in data

    def test_setup_logging_replaces_handlers(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging("debug", "json")

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JsonFormatter)
            assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
