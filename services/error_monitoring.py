"""Structured error reporting and process-fatal exception hooks."""

from __future__ import annotations

import logging
import os
import sys
import threading
from datetime import datetime, timezone
from typing import Optional

from flask import Request, g

from utils.errors import AppError

logger = logging.getLogger(__name__)

# URL variables that carry single-use secrets.
SECRET_VIEW_ARGS = frozenset({"token"})


def loggable_path(req: Request) -> str:
    """Return the request path, or the route template when the path embeds a secret."""

    if req.url_rule is not None and SECRET_VIEW_ARGS.intersection(req.view_args or {}):
        return req.url_rule.rule
    return req.path


class ErrorMonitor:
    def __init__(self):
        self._hooks_installed = False

    def log_error(self, error: BaseException, req: Optional[Request] = None) -> None:
        """Log ``error``: expected failures at WARNING, anything else at ERROR."""

        record = self.format_error(error, req)
        if isinstance(error, AppError) and error.is_operational:
            logger.warning(record["message"], extra={"error": record})
        else:
            logger.error(
                record["message"],
                extra={"error": record},
                exc_info=(type(error), error, error.__traceback__),
            )

    def format_error(self, error: BaseException, req: Optional[Request] = None) -> dict:
        record = {
            "message": str(error) or type(error).__name__,
            "type": type(error).__name__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if isinstance(error, AppError):
            record.update(
                code=error.code.value,
                status_code=error.status_code,
                is_operational=error.is_operational,
                details=error.details,
            )
        if req is not None:
            record["request"] = {
                "method": req.method,
                "path": loggable_path(req),
                "query": req.args.to_dict(),
                "request_id": g.get("request_id"),
                "user_id": g.get("user_id"),
            }
        return record

    def install_process_hooks(self) -> None:
        """Log uncaught exceptions at CRITICAL and terminate the process."""

        if self._hooks_installed:
            return
        sys.excepthook = self._handle_uncaught
        threading.excepthook = self._handle_thread_exception
        self._hooks_installed = True

    def _handle_uncaught(self, exc_type, exc, tb) -> None:
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc, tb)
            return
        logger.critical(
            "Uncaught exception, shutting down", exc_info=(exc_type, exc, tb)
        )
        logging.shutdown()
        os._exit(1)

    def _handle_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        if args.exc_type is SystemExit:
            return
        logger.critical(
            "Uncaught exception in thread %s, shutting down",
            args.thread.name if args.thread else "unknown",
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )
        logging.shutdown()
        os._exit(1)
