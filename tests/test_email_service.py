"""Tests for email rendering and delivery."""

from __future__ import annotations

import smtplib

import pytest

from services.email_service import EmailService


def _service(**overrides) -> EmailService:
    settings = {
        "host": None,
        "port": None,
        "username": None,
        "password": None,
        "sender": "noreply@example.com",
        "app_name": "Test App",
        "server_url": "http://api.test/",
        "frontend_url": "http://frontend.test/",
    }
    settings.update(overrides)
    return EmailService(**settings)


def test_links_point_at_server_and_frontend():
    service = _service()

    assert service.verification_url("abc") == "http://api.test/api/auth/verify-email/abc"
    assert service.reset_password_url("abc") == "http://frontend.test/reset-password/abc"


def test_verification_email_renders_template(app, outbox):
    with app.app_context():
        app.extensions["email_service"].send_verification_email("a@example.com", "Ann", "f" * 64)

    html = outbox[0]["html"]
    assert "Hello Ann" in html
    assert "http://api.test/api/auth/verify-email/" + "f" * 64 in html
    assert "24 hours" in html


def test_reset_email_renders_template(app, outbox):
    with app.app_context():
        app.extensions["email_service"].send_password_reset_email("a@example.com", "Ann", "e" * 64)

    assert outbox[0]["subject"] == "Reset your password"
    assert "1 hour" in outbox[0]["html"]


def test_build_message_has_html_alternative():
    message = _service().build_message("a@example.com", "Subject", "<p>Hi</p>")

    assert message["To"] == "a@example.com"
    assert "Test App" in message["From"]
    assert message.get_body(preferencelist=("html",)).get_content().strip() == "<p>Hi</p>"


def test_disabled_service_does_not_connect(app, monkeypatch):
    def _fail(*args, **kwargs):
        raise AssertionError("SMTP should not be used")

    monkeypatch.setattr(smtplib, "SMTP", _fail)
    service = _service()

    with app.app_context():
        service.send_verification_email("a@example.com", "Ann", "token")

    assert service.enabled is False


def test_smtp_failure_propagates(app, monkeypatch):
    class _BrokenSMTP:
        def __init__(self, *args, **kwargs):
            raise smtplib.SMTPConnectError(421, "unavailable")

    monkeypatch.setattr(smtplib, "SMTP", _BrokenSMTP)
    service = _service(host="smtp.example.com", port=587)

    with app.app_context(), pytest.raises(smtplib.SMTPException):
        service.send_password_reset_email("a@example.com", "Ann", "token")


def test_smtp_delivery_logs_in_and_sends(app, monkeypatch):
    sent = []

    class _FakeSMTP:
        def __init__(self, host, port, timeout):
            sent.append(("connect", host, port))

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def ehlo(self):
            pass

        def has_extn(self, name):
            return False

        def login(self, username, password):
            sent.append(("login", username))

        def send_message(self, message):
            sent.append(("send", message["To"]))

    monkeypatch.setattr(smtplib, "SMTP", _FakeSMTP)
    service = _service(host="smtp.example.com", port=587, username="mailer", password="pw")

    with app.app_context():
        service.send_verification_email("a@example.com", "Ann", "token")

    assert sent == [
        ("connect", "smtp.example.com", 587),
        ("login", "mailer"),
        ("send", "a@example.com"),
    ]
