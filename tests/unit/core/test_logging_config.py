import json
import logging

from telemetry_client.core import logger as logger_module
from telemetry_client.core.logger import get_logger
from telemetry_client.core.logging_config import (
    CustomJsonFormatter,
    SensitiveDataFilter,
    configure_logging,
)


class TestSensitiveDataFilter:
    def test_filter_removes_sensitive_data(self):
        sdf = SensitiveDataFilter(["password", "app_key"])

        filtered = sdf.filter(
            {"app_key": "abc", "password": "x", "device_id": "d", "queue_size": 3}
        )

        assert filtered["app_key"] == "[REDACTED]"
        assert filtered["password"] == "[REDACTED]"
        assert filtered["device_id"] == "d"
        assert filtered["queue_size"] == 3

    def test_filter_handles_nested_objects(self):
        sdf = SensitiveDataFilter(["token"])

        filtered = sdf.filter({"request": {"Token": "t", "path": "/i"}})

        assert filtered["request"] == {"Token": "[REDACTED]", "path": "/i"}


class TestCustomJsonFormatter:
    def test_format_includes_context_and_extra(self):
        formatter = CustomJsonFormatter("telemetry-client", "testing", ["app_key"])
        record = logging.LogRecord(
            "telemetry.queue", logging.WARNING, __file__, 1, "request_rejected", None, None
        )
        record.app_key = "secret"
        record.queue_size = 4

        data = json.loads(formatter.format(record))

        assert data["message"] == "request_rejected"
        assert data["service"] == "telemetry-client"
        assert data["environment"] == "testing"
        assert data["queue_size"] == 4
        assert data["app_key"] == "[REDACTED]"
        assert "timestamp" in data

    def test_format_exception(self):
        try:
            raise RuntimeError("disk full")
        except RuntimeError:
            import sys

            info = sys.exc_info()

        formatted = CustomJsonFormatter.format_exception(info)

        assert formatted["type"] == "RuntimeError"
        assert formatted["message"] == "disk full"
        assert formatted["stack"]


class TestConfigureLogging:
    def test_installs_single_json_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configured = configure_logging("svc", "testing", "debug", [])

            assert configured is root
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, CustomJsonFormatter)
            assert root.level == logging.DEBUG
            assert logger_module._json_configured is True
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)


def test_get_logger_propagates():
    logger = get_logger("telemetry.test")

    assert logger.name == "telemetry.test"
    assert logger.propagate is True
