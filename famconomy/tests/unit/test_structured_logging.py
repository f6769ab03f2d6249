"""
Unit Tests for structured logging

Tests:
- Sensitive key detection and redaction
- JSON line output with context
- DEBUG gating in production
"""

import io
import json
import logging
import sys

import pytest

from famconomy.shared.logger import (
    REDACTED,
    DebugGateFilter,
    JSONFormatter,
    configure_logging,
    is_sensitive_key,
    redact,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestRedaction:
    """Credentials never reach the log line."""

    @pytest.mark.parametrize("key", ["password", "refreshToken", "JWT_SECRET", "authorization", "share_token"])
    def test_sensitive_keys(self, key):
        assert is_sensitive_key(key)

    @pytest.mark.parametrize("key", ["family_id", "user_id", "path", "status_code"])
    def test_ordinary_keys(self, key):
        assert not is_sensitive_key(key)

    def test_nested_values_are_masked(self):
        data = {
            "user": {"email": "a@example.com", "password": "hunter2"},
            "items": [{"token": "abc"}, {"name": "milk"}],
        }

        assert redact(data) == {
            "user": {"email": "a@example.com", "password": REDACTED},
            "items": [{"token": REDACTED}, {"name": "milk"}],
        }


class TestJSONFormatter:
    """One JSON object per record."""

    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord("famconomy.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_fields_and_context(self):
        formatter = JSONFormatter(app_name="famconomy-test", environment="test")

        line = json.loads(formatter.format(self._record(family_id=3, access_token="secret")))

        assert line["message"] == "hello world"
        assert line["level"] == "INFO"
        assert line["app"] == "famconomy-test"
        assert line["env"] == "test"
        assert line["context"] == {"family_id": 3, "access_token": REDACTED}

    def test_exception_is_included(self):
        formatter = JSONFormatter()
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

        line = json.loads(formatter.format(record))
        assert "ValueError: boom" in line["exception"]


class TestDebugGate:
    """DEBUG output in production needs the explicit switch."""

    def _debug_record(self) -> logging.LogRecord:
        return logging.LogRecord("x", logging.DEBUG, __file__, 1, "details", None, None)

    def test_production_drops_debug(self):
        assert not DebugGateFilter(production=True, debug_logging=False).filter(self._debug_record())

    def test_production_with_switch_keeps_debug(self):
        assert DebugGateFilter(production=True, debug_logging=True).filter(self._debug_record())

    def test_development_keeps_debug(self):
        assert DebugGateFilter(production=False, debug_logging=False).filter(self._debug_record())

    def test_configure_logging_writes_json(self, restore_root_logger):
        stream = io.StringIO()
        configure_logging(level="INFO", environment="test", stream=stream)

        logging.getLogger("famconomy.test").info("ready", extra={"password": "pw", "family_id": 9})

        line = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert line["message"] == "ready"
        assert line["context"] == {"password": REDACTED, "family_id": 9}
