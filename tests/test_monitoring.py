"""Tests for metrics, health probes and the alert webhook."""

from __future__ import annotations

from sqlalchemy.exc import OperationalError

from models import db


def test_metrics_exposes_http_and_db_series(client, create_user):
    create_user("user@example.com")
    client.get("/health")
    client.get("/api/users")

    response = client.get("/monitoring/metrics")

    assert response.status_code == 200
    assert response.content_type.startswith("text/plain")
    assert "no-store" in response.headers["Cache-Control"]
    body = response.get_data(as_text=True)
    assert 'http_requests_total{method="GET",route="/health",status_code="200"} 1.0' in body
    assert 'http_errors_total{method="GET",route="/api/users",status_code="401"} 1.0' in body
    assert "db_query_duration_seconds_bucket" in body
    assert "websocket_connections_active 0.0" in body


def test_metrics_does_not_count_itself(client):
    client.get("/monitoring/metrics")
    body = client.get("/monitoring/metrics").get_data(as_text=True)

    assert 'route="/monitoring/metrics"' not in body


def test_unmatched_routes_share_one_label(client):
    client.get("/no/such/path")
    client.get("/another/missing/path")

    body = client.get("/monitoring/metrics").get_data(as_text=True)

    assert 'http_requests_total{method="GET",route="unmatched",status_code="404"} 2.0' in body


def test_health(client):
    response = client.get("/monitoring/health")

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["status"] == "ok"
    assert data["uptime"] >= 0
    assert {"timestamp", "memory", "cpu", "python_version", "pid"} <= set(data)


def test_readiness_and_liveness(client):
    assert client.get("/monitoring/readiness").get_json()["data"] == {"status": "ok"}
    assert client.get("/monitoring/liveness").get_json()["data"] == {"status": "ok"}


def test_readiness_reports_database_failure(client, monkeypatch):
    def _broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is gone"))

    monkeypatch.setattr(db.session, "execute", _broken)

    response = client.get("/monitoring/readiness")

    assert response.status_code == 503
    assert response.get_json()["error"]["code"] == "ERR_5002"


def test_alert_webhook_counts_alerts(client):
    payload = {
        "alerts": [
            {"status": "firing", "labels": {"alertname": "HighErrorRate"}},
            {"status": "resolved", "labels": {"alertname": "SlowResponses"}},
        ]
    }

    response = client.post("/monitoring/alerts", json=payload)

    assert response.status_code == 200
    assert response.get_json()["data"] == {"status": "received", "alerts": 2}


def test_monitoring_is_not_rate_limited():
    from conftest import build_app

    app = build_app(RATE_LIMIT="1 per minute")
    client = app.test_client()

    statuses = {client.get("/monitoring/liveness").status_code for _ in range(3)}

    assert statuses == {200}


def test_root_routes(client):
    assert client.get("/health").get_json() == {"success": True, "data": {"status": "ok"}}
    assert "Hello from" in client.get("/").get_json()["data"]["message"]
