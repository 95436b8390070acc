"""Prometheus instrumentation for HTTP, database and WebSocket traffic.

Each application gets its own ``CollectorRegistry`` so that creating several
apps in one process (tests, multiple workers sharing an interpreter) never
trips duplicate-registration errors.

Labels stay low-cardinality: the route label is the URL rule template
(``/api/users/<user_id>``), never the concrete path.
"""

from __future__ import annotations

import logging
import time

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    GCCollector,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    Summary,
    generate_latest,
)
from sqlalchemy import event

logger = logging.getLogger(__name__)

HTTP_BUCKETS = (0.1, 0.3, 0.5, 0.7, 1, 3, 5, 7, 10)
DB_BUCKETS = (0.01, 0.05, 0.1, 0.5, 1, 2)


class MetricsService:
    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()

        ProcessCollector(registry=self.registry)
        PlatformCollector(registry=self.registry)
        GCCollector(registry=self.registry)

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "Duration of HTTP requests in seconds",
            ["method", "route", "status_code"],
            buckets=HTTP_BUCKETS,
            registry=self.registry,
        )
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total number of HTTP requests",
            ["method", "route", "status_code"],
            registry=self.registry,
        )
        self.http_request_percentiles = Summary(
            "http_request_duration_percentiles",
            "HTTP request latency summary",
            ["method", "route"],
            registry=self.registry,
        )
        self.http_errors_total = Counter(
            "http_errors_total",
            "Total number of HTTP errors",
            ["method", "route", "status_code"],
            registry=self.registry,
        )
        self.db_query_duration = Histogram(
            "db_query_duration_seconds",
            "Duration of database queries in seconds",
            ["operation", "success"],
            buckets=DB_BUCKETS,
            registry=self.registry,
        )
        self.websocket_connections = Gauge(
            "websocket_connections_active",
            "Number of active WebSocket connections",
            registry=self.registry,
        )
        self.websocket_messages = Counter(
            "websocket_messages_total",
            "Total number of WebSocket messages",
            ["type", "direction"],
            registry=self.registry,
        )

    def record_http_request(self, method: str, route: str, status_code: int, duration: float) -> None:
        labels = {"method": method, "route": route, "status_code": str(status_code)}
        self.http_request_duration.labels(**labels).observe(duration)
        self.http_requests_total.labels(**labels).inc()
        self.http_request_percentiles.labels(method=method, route=route).observe(duration)
        if status_code >= 400:
            self.http_errors_total.labels(**labels).inc()

    def record_db_query(self, operation: str, duration: float, success: bool) -> None:
        self.db_query_duration.labels(
            operation=operation, success=str(success).lower()
        ).observe(duration)

    def record_websocket_connection(self, connected: bool) -> None:
        if connected:
            self.websocket_connections.inc()
        else:
            self.websocket_connections.dec()

    def record_websocket_message(self, message_type: str, direction: str) -> None:
        self.websocket_messages.labels(type=message_type, direction=direction).inc()

    def render(self) -> bytes:
        return generate_latest(self.registry)

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST

    def instrument_engine(self, engine) -> None:
        """Time every statement executed on ``engine``."""

        def _before(conn, cursor, statement, parameters, context, executemany):
            conn.info.setdefault("query_start_time", []).append(time.perf_counter())

        def _after(conn, cursor, statement, parameters, context, executemany):
            started = conn.info["query_start_time"].pop()
            self.record_db_query(_operation(statement), time.perf_counter() - started, True)

        def _error(exception_context):
            conn = exception_context.connection
            stack = conn.info.get("query_start_time") if conn is not None else None
            if not stack:
                return
            started = stack.pop()
            self.record_db_query(
                _operation(exception_context.statement or ""),
                time.perf_counter() - started,
                False,
            )

        event.listen(engine, "before_cursor_execute", _before)
        event.listen(engine, "after_cursor_execute", _after)
        event.listen(engine, "handle_error", _error)
        logger.debug("Database query metrics enabled for %s", engine.url.drivername)


def _operation(statement: str) -> str:
    words = statement.strip().split(None, 1)
    return words[0].lower() if words else "unknown"
