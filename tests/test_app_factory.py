"""Tests for the Flask application factory."""
from __future__ import annotations

from conftest import build_app


def test_health_endpoint_returns_ok(client):
    """The health endpoint should respond with an OK payload."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"success": True, "data": {"status": "ok"}}


def test_blueprints_registered(app):
    """Application factory should register expected blueprints."""
    assert {"auth", "users", "monitoring"} <= set(app.blueprints)


def test_services_are_per_app():
    first, second = build_app(), build_app()

    assert first.extensions["metrics"] is not second.extensions["metrics"]
    assert first.extensions["socketio"] is not second.extensions["socketio"]
    assert first.config["JWT_ACCESS_TOKEN_EXPIRES"].total_seconds() == 15 * 60


def test_unexpected_errors_are_hidden(app, client):
    @app.route("/boom")
    def boom():
        raise RuntimeError("secret internals")

    response = client.get("/boom")

    assert response.status_code == 500
    payload = response.get_json()
    assert payload["error"] == {"code": "ERR_5001", "message": "Internal server error"}
    assert "secret internals" not in response.get_data(as_text=True)


def test_method_not_allowed_keeps_allow_header(client):
    response = client.delete("/health")

    assert response.status_code == 405
    assert "GET" in response.headers["Allow"]
