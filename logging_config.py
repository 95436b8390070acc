"""Logging setup for the application.

Development and test runs log human-readable lines to the console.
Production logs JSON lines to the console and to rotating files under
``LOG_DIR`` (``error.log`` for ERROR and above, ``combined.log`` for all).
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
import traceback
from datetime import datetime, timezone
from typing import Any

from flask import Flask, g, has_request_context
from flask.logging import default_handler

TEXT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Attributes present on every LogRecord; anything else came in through ``extra``.
_RESERVED_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Format records as JSON with request context and redacted secrets."""

    SENSITIVE_KEYS = {"password", "secret", "token", "authorization", "refresh_token", "access_token"}

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if has_request_context() and g.get("request_id"):
            log_obj["request_id"] = g.request_id

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            log_obj[key] = self._redact(key, value)

        if record.exc_info:
            log_obj["exception"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(log_obj, default=str)

    def _redact(self, key: str, value: Any) -> Any:
        if key.lower() in self.SENSITIVE_KEYS:
            return "[REDACTED]"
        if isinstance(value, dict):
            return {k: self._redact(str(k), v) for k, v in value.items()}
        return value


def configure_logging(app: Flask) -> None:
    """Attach handlers to the root logger according to ``APP_ENV``."""

    env = app.config.get("APP_ENV", "development")
    level_name = app.config.get("LOG_LEVEL") or ("INFO" if env == "production" else "DEBUG")
    level = logging.getLevelName(str(level_name).upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_app_handler", False):
            root.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = []
    console = logging.StreamHandler()
    if env == "production":
        console.setFormatter(JSONFormatter())
        handlers.append(console)

        log_dir = app.config.get("LOG_DIR") or "logs"
        os.makedirs(log_dir, exist_ok=True)
        error_file = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, "error.log"), maxBytes=20 * 1024 * 1024, backupCount=14
        )
        error_file.setLevel(logging.ERROR)
        combined_file = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, "combined.log"), maxBytes=20 * 1024 * 1024, backupCount=14
        )
        for handler in (error_file, combined_file):
            handler.setFormatter(JSONFormatter())
            handlers.append(handler)
    else:
        console.setFormatter(logging.Formatter(TEXT_FORMAT))
        handlers.append(console)

    for handler in handlers:
        handler._app_handler = True
        root.addHandler(handler)
    root.setLevel(level)
    app.logger.removeHandler(default_handler)
    app.logger.setLevel(level)

    # Noisy third-party loggers.
    logging.getLogger("werkzeug").setLevel(logging.WARNING if env == "production" else logging.INFO)
    logging.getLogger("engineio").setLevel(logging.WARNING)
    logging.getLogger("socketio").setLevel(logging.WARNING)
