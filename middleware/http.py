"""Per-request hooks: request ids, security and cache headers, access log, metrics."""

from __future__ import annotations

import logging
import time
import uuid
from functools import wraps
from typing import Callable

from flask import Flask, current_app, g, make_response, request

from middleware.auth import current_user_id
from services.error_monitoring import loggable_path
from services.metrics_service import MetricsService

logger = logging.getLogger("http")

METRICS_PATH = "/monitoring/metrics"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": "default-src 'self'",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}


def register_request_hooks(app: Flask, metrics: MetricsService) -> None:
    @app.before_request
    def _start_request():
        g.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        g.request_started = time.perf_counter()

    @app.after_request
    def _finish_request(response):
        response.headers.setdefault("X-Request-ID", g.get("request_id") or str(uuid.uuid4()))
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        response.headers.setdefault("Cache-Control", "no-store")

        started = g.get("request_started")
        duration = time.perf_counter() - started if started is not None else 0.0
        route = request.url_rule.rule if request.url_rule is not None else "unmatched"

        if request.path != METRICS_PATH:
            metrics.record_http_request(request.method, route, response.status_code, duration)

        _log_request(response.status_code, duration)
        return response


def _log_request(status: int, duration: float) -> None:
    data = {
        "request_id": g.get("request_id"),
        "method": request.method,
        "path": loggable_path(request),
        "status": status,
        "duration_ms": round(duration * 1000, 2),
        "ip": request.remote_addr,
        "user_agent": request.headers.get("User-Agent"),
        "user_id": g.get("user_id") or current_user_id(),
    }
    if status >= 500:
        logger.error("Request failed", extra=data)
    elif status >= 400:
        logger.warning("Request failed", extra=data)
    else:
        logger.info("Request completed", extra=data)


def cache_control(duration: int = 300, private: bool = False) -> Callable:
    """Allow shared caching of GET responses in production, ``no-store`` elsewhere."""

    def decorator(fn: Callable) -> Callable:
        @wraps(fn)
        def wrapper(*args, **kwargs):
            response = make_response(fn(*args, **kwargs))
            if current_app.config.get("APP_ENV") == "production" and request.method == "GET":
                scope = "private" if private else "public"
                response.headers["Cache-Control"] = f"{scope}, max-age={duration}"
            else:
                response.headers["Cache-Control"] = "no-store"
            return response

        return wrapper

    return decorator
