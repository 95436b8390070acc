"""Shared pytest fixtures for the application tests."""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Callable

import pytest
from flask import Flask
from flask.testing import FlaskClient

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app import create_app  # noqa: E402
from config import Config  # noqa: E402
from models import db  # noqa: E402
from models.user import User, UserRole  # noqa: E402
from services.email_service import EmailService  # noqa: E402

DEFAULT_PASSWORD = "Password123!"
TOKEN_PATTERN = re.compile(r"/(?:verify-email|reset-password)/([0-9a-f]{64})")


class _BaseTestConfig(Config):
    TESTING = True
    APP_ENV = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET = "test-access-token-secret-0123456789abcdef"
    REFRESH_TOKEN_SECRET = "test-refresh-token-secret-0123456789abcdef"
    FRONTEND_URL = "http://frontend.test"
    SERVER_URL = "http://api.test"
    SMTP_HOST = None
    SMTP_PORT = None
    RATE_LIMIT = "1000 per minute"
    AUTH_RATE_LIMIT = "1000 per minute"
    VERIFICATION_RATE_LIMIT = "1000 per minute"
    LOG_LEVEL = "WARNING"
    ERROR_MONITORING_ENABLED = False


class RecordingEmailService(EmailService):
    """Keeps rendered messages in memory instead of talking to SMTP."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.outbox: list[dict] = []
        self.fail_with: Exception | None = None

    def _deliver(self, to: str, subject: str, html: str, *, kind: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.outbox.append({"to": to, "subject": subject, "html": html, "kind": kind})


def token_from(message: dict) -> str:
    """Pull the verification or reset token out of a recorded email."""

    match = TOKEN_PATTERN.search(message["html"])
    assert match is not None, message["html"]
    return match.group(1)


def build_app(**overrides) -> Flask:
    """Create an app from the test config with per-test overrides."""

    config_class = type("TestConfig", (_BaseTestConfig,), dict(overrides))
    application = create_app(config_class)
    application.extensions["email_service"] = RecordingEmailService.from_config(
        application.config
    )
    return application


@pytest.fixture()
def app() -> Flask:
    """Create a Flask application instance for tests."""

    application = build_app()

    with application.app_context():
        db.create_all()

    yield application

    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Return a test client for the Flask app."""

    return app.test_client()


@pytest.fixture()
def email_service(app: Flask) -> RecordingEmailService:
    return app.extensions["email_service"]


@pytest.fixture()
def outbox(email_service: RecordingEmailService) -> list[dict]:
    return email_service.outbox


@pytest.fixture()
def create_user(app: Flask) -> Callable[..., str]:
    """Persist a user directly and return its id."""

    def _create(
        email: str,
        password: str = DEFAULT_PASSWORD,
        *,
        name: str = "Test User",
        role: UserRole = UserRole.USER,
        verified: bool = True,
    ) -> str:
        with app.app_context():
            user = User(email=email, name=name, role=role)
            user.set_password(password)
            if verified:
                user.mark_verified()
            db.session.add(user)
            db.session.commit()
            return user.id

    return _create


@pytest.fixture()
def login(client: FlaskClient) -> Callable[..., dict]:
    """Log in through the API and return the token payload."""

    def _login(email: str, password: str = DEFAULT_PASSWORD) -> dict:
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.get_json()
        return response.get_json()["data"]

    return _login


@pytest.fixture()
def auth_headers(login) -> Callable[..., dict]:
    def _headers(email: str, password: str = DEFAULT_PASSWORD) -> dict:
        return {"Authorization": f"Bearer {login(email, password)['access_token']}"}

    return _headers


@pytest.fixture()
def admin_headers(create_user, auth_headers) -> dict:
    create_user("admin@example.com", name="Admin", role=UserRole.ADMIN)
    return auth_headers("admin@example.com")
