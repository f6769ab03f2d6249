"""
Structured logging for FamConomy.

Log records are emitted as single JSON lines. Values passed through
``extra={...}`` are copied into the line, with sensitive keys redacted so
tokens and passwords never reach log storage.
"""

import json
import logging
import socket
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = frozenset({
    "password",
    "token",
    "accesstoken",
    "access_token",
    "refreshtoken",
    "refresh_token",
    "secret",
    "key",
    "authorization",
    "cookie",
    "session",
    "plaid",
})

# Attributes every LogRecord carries; anything else came from ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}


def is_sensitive_key(key: str) -> bool:
    """True when a field name looks like it holds a credential."""
    lowered = key.lower()
    if lowered in SENSITIVE_KEYS:
        return True
    return any(marker in lowered for marker in ("password", "secret", "token"))


def redact(value: Any) -> Any:
    """Return a copy of ``value`` with sensitive mapping keys masked."""
    if isinstance(value, Mapping):
        return {
            k: (REDACTED if is_sensitive_key(str(k)) else redact(v))
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


class JSONFormatter(logging.Formatter):
    """Render log records as JSON lines with redacted context."""

    def __init__(self, app_name: str = "famconomy-api", environment: str = "production"):
        super().__init__()
        self.app_name = app_name
        self.environment = environment
        self.hostname = socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        log_dict: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "app": self.app_name,
            "env": self.environment,
            "host": self.hostname,
        }

        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if context:
            log_dict["context"] = redact(context)

        if record.exc_info:
            log_dict["exception"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(log_dict, ensure_ascii=False, default=str)


class DebugGateFilter(logging.Filter):
    """Drop DEBUG records in production unless debug logging is switched on."""

    def __init__(self, production: bool, debug_logging: bool):
        super().__init__()
        self.production = production
        self.debug_logging = debug_logging

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno > logging.DEBUG:
            return True
        return not self.production or self.debug_logging


def configure_logging(
    level: str = "INFO",
    app_name: str = "famconomy-api",
    environment: str = "production",
    debug_logging: bool = False,
    stream: Optional[Any] = None,
) -> logging.Handler:
    """
    Install the JSON handler on the root logger.

    Args:
        level: Root log level name
        app_name: Value for the ``app`` field
        environment: Deployment environment name
        debug_logging: Allow DEBUG output when running in production
        stream: Output stream (defaults to stdout)

    Returns:
        logging.Handler: The installed handler
    """
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter(app_name=app_name, environment=environment))
    handler.addFilter(DebugGateFilter(environment == "production", debug_logging))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing.formatter, JSONFormatter):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

    return handler
