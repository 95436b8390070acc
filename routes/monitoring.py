"""Operational endpoints: Prometheus scrape target, health probes, alert webhook."""

from __future__ import annotations

import logging
import os
import platform
import resource
import time
from datetime import datetime, timezone

from flask import Blueprint, Response, current_app, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from extensions import limiter
from models import db
from utils import api_response
from utils.errors import AppError, ErrorCode

logger = logging.getLogger(__name__)

monitoring_bp = Blueprint("monitoring", __name__)
limiter.exempt(monitoring_bp)

_STARTED_AT = time.monotonic()


@monitoring_bp.route("/metrics", methods=["GET"])
def metrics():
    metrics_service = current_app.extensions["metrics"]
    body = metrics_service.render()
    logger.debug("Metrics generated", extra={"metrics_length": len(body)})
    response = Response(body, content_type=metrics_service.content_type)
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"
    return response


@monitoring_bp.route("/health", methods=["GET"])
def health():
    usage = resource.getrusage(resource.RUSAGE_SELF)
    return api_response.success(
        {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - _STARTED_AT, 3),
            "memory": {"max_rss_kb": usage.ru_maxrss},
            "cpu": {"user": usage.ru_utime, "system": usage.ru_stime},
            "python_version": platform.python_version(),
            "pid": os.getpid(),
        }
    )


@monitoring_bp.route("/readiness", methods=["GET"])
def readiness():
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Readiness check failed: %s", exc)
        raise AppError(
            "Database unavailable", 503, ErrorCode.SERVICE_UNAVAILABLE
        ) from exc
    return api_response.success({"status": "ok"})


@monitoring_bp.route("/liveness", methods=["GET"])
def liveness():
    return api_response.success({"status": "ok"})


@monitoring_bp.route("/alerts", methods=["POST"])
def alerts():
    """Receive an Alertmanager webhook and log what fired."""
    payload = request.get_json(silent=True) or {}
    fired = payload.get("alerts") if isinstance(payload, dict) else None
    if not isinstance(fired, list):
        fired = []

    for alert in fired:
        labels = alert.get("labels", {}) if isinstance(alert, dict) else {}
        logger.warning(
            "Alert received: %s", labels.get("alertname", "unknown"),
            extra={"alert_status": alert.get("status") if isinstance(alert, dict) else None},
        )
    return api_response.success({"status": "received", "alerts": len(fired)})
