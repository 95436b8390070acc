"""Transactional email: account verification and password reset messages."""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid
from typing import Optional

from flask import render_template

logger = logging.getLogger(__name__)

VERIFICATION_TEMPLATE = "emails/verification.html"
RESET_PASSWORD_TEMPLATE = "emails/reset_password.html"


class EmailService:
    """Render HTML templates and deliver them over SMTP.

    When no SMTP host is configured (local development, tests) messages are
    logged instead of sent, so signup and reset flows still work end to end.
    """

    def __init__(
        self,
        *,
        host: Optional[str],
        port: Optional[int],
        username: Optional[str],
        password: Optional[str],
        sender: str,
        app_name: str,
        server_url: str,
        frontend_url: str,
        timeout: int = 10,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.app_name = app_name
        self.server_url = server_url.rstrip("/")
        self.frontend_url = frontend_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "EmailService":
        return cls(
            host=config.get("SMTP_HOST"),
            port=config.get("SMTP_PORT"),
            username=config.get("SMTP_USER"),
            password=config.get("SMTP_PASSWORD"),
            sender=config.get("SMTP_FROM") or "noreply@example.com",
            app_name=config.get("APP_NAME", "Flask Auth API"),
            server_url=config["SERVER_URL"],
            frontend_url=config["FRONTEND_URL"],
            timeout=config.get("SMTP_TIMEOUT", 10),
        )

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def verification_url(self, token: str) -> str:
        return f"{self.server_url}/api/auth/verify-email/{token}"

    def reset_password_url(self, token: str) -> str:
        return f"{self.frontend_url}/reset-password/{token}"

    def send_verification_email(self, to: str, name: str, token: str) -> None:
        html = render_template(
            VERIFICATION_TEMPLATE,
            name=name,
            action_url=self.verification_url(token),
            expires_in="24 hours",
            app_name=self.app_name,
        )
        self._deliver(to, "Verify your email address", html, kind="verification")

    def send_password_reset_email(self, to: str, name: str, token: str) -> None:
        html = render_template(
            RESET_PASSWORD_TEMPLATE,
            name=name,
            action_url=self.reset_password_url(token),
            expires_in="1 hour",
            app_name=self.app_name,
        )
        self._deliver(to, "Reset your password", html, kind="password_reset")

    def build_message(self, to: str, subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.app_name, self.sender))
        message["To"] = to
        message["Subject"] = subject
        message["Date"] = formatdate(localtime=False)
        message["Message-ID"] = make_msgid()
        message.set_content("This message requires an HTML-capable email client.")
        message.add_alternative(html, subtype="html")
        return message

    def _deliver(self, to: str, subject: str, html: str, *, kind: str) -> None:
        message = self.build_message(to, subject, html)

        if not self.enabled:
            logger.info(
                "SMTP not configured; %s email to %s not sent", kind, to,
                extra={"email_kind": kind, "to": to},
            )
            logger.debug("Email body for %s:\n%s", to, html)
            return

        try:
            self._send(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(
                "Failed to send %s email to %s: %s", kind, to, exc,
                extra={"email_kind": kind, "to": to},
            )
            raise

        logger.info(
            "%s email sent to %s", kind.replace("_", " ").capitalize(), to,
            extra={"email_kind": kind, "to": to, "message_id": message["Message-ID"]},
        )

    def _send(self, message: EmailMessage) -> None:
        context = ssl.create_default_context()
        if self.port == 465:
            with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context) as smtp:
                self._login(smtp)
                smtp.send_message(message)
            return

        with smtplib.SMTP(self.host, self.port or 587, timeout=self.timeout) as smtp:
            smtp.ehlo()
            if smtp.has_extn("starttls"):
                smtp.starttls(context=context)
                smtp.ehlo()
            self._login(smtp)
            smtp.send_message(message)

    def _login(self, smtp: smtplib.SMTP) -> None:
        if self.username and self.password:
            smtp.login(self.username, self.password)
