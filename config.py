"""Application configuration module."""

from __future__ import annotations

import os
import re
from datetime import timedelta
from urllib.parse import urlparse

ENVIRONMENTS = ("development", "production", "test")
DURATION_PATTERN = re.compile(r"^(\d+)([smhd])$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_DURATION_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


class ConfigError(RuntimeError):
    """Raised when the environment does not describe a runnable application."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Invalid configuration: " + "; ".join(problems))


def parse_duration(value: str) -> timedelta:
    """Convert a duration such as ``15m`` or ``7d`` into a timedelta."""

    match = DURATION_PATTERN.match((value or "").strip())
    if match is None:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def _int_env(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return None


class Config:
    """Base configuration for the Flask application."""

    # Core
    APP_ENV = os.getenv("APP_ENV", "development")
    APP_NAME = os.getenv("APP_NAME", "Flask Auth API")
    PORT = _int_env("PORT", 5000)
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///app.db")
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MAX_CONTENT_LENGTH = 10 * 1024

    # Tokens
    JWT_SECRET = os.getenv("JWT_SECRET")
    REFRESH_TOKEN_SECRET = os.getenv("REFRESH_TOKEN_SECRET")
    JWT_EXPIRY = os.getenv("JWT_EXPIRY", "15m")
    REFRESH_TOKEN_EXPIRY = os.getenv("REFRESH_TOKEN_EXPIRY", "7d")
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_ALGORITHM = "HS256"

    # URLs
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
    SERVER_URL = os.getenv("SERVER_URL", "http://localhost:5000")
    PROMETHEUS_URL = os.getenv("PROMETHEUS_URL", "http://localhost:9090")

    # Email
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = _int_env("SMTP_PORT", None)
    SMTP_USER = os.getenv("SMTP_USER")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM = os.getenv("SMTP_FROM", "noreply@example.com")
    SMTP_TIMEOUT = 10

    # Rate limiting
    RATE_LIMIT = os.getenv("RATE_LIMIT", "50 per 15 minutes")
    AUTH_RATE_LIMIT = os.getenv("AUTH_RATE_LIMIT", "50 per 15 minutes")
    VERIFICATION_RATE_LIMIT = os.getenv("VERIFICATION_RATE_LIMIT", "3 per hour")
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_KEY_PREFIX = os.getenv("RATELIMIT_KEY_PREFIX", "")

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL")
    LOG_DIR = os.getenv("LOG_DIR", "logs")

    # Process-level exception hooks
    ERROR_MONITORING_ENABLED = True


def _is_url(value: str | None) -> bool:
    if not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def validate_config(config) -> None:
    """Check a config mapping and raise ConfigError with every problem found."""

    problems: list[str] = []
    env = config.get("APP_ENV")

    if env not in ENVIRONMENTS:
        problems.append(f"APP_ENV must be one of {', '.join(ENVIRONMENTS)}")

    port = config.get("PORT")
    if not isinstance(port, int) or not 1024 <= port <= 65535:
        problems.append("PORT must be between 1024 and 65535")

    if not config.get("SQLALCHEMY_DATABASE_URI"):
        problems.append("DATABASE_URL is required")

    for key in ("JWT_SECRET", "REFRESH_TOKEN_SECRET"):
        secret = config.get(key) or ""
        if len(secret) < 32:
            problems.append(f"{key} must be at least 32 characters")

    for key in ("JWT_EXPIRY", "REFRESH_TOKEN_EXPIRY"):
        if not DURATION_PATTERN.match(config.get(key) or ""):
            problems.append(f"{key} must look like 15m, 12h or 7d")

    for key in ("FRONTEND_URL", "SERVER_URL"):
        if not _is_url(config.get(key)):
            problems.append(f"{key} must be an http(s) URL")

    if env == "production":
        for key in ("SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASSWORD"):
            if not config.get(key):
                problems.append(f"{key} is required in production")
    elif config.get("SMTP_HOST") and not config.get("SMTP_PORT"):
        problems.append("SMTP_PORT is required when SMTP_HOST is set")

    sender = config.get("SMTP_FROM")
    if sender and not EMAIL_PATTERN.match(sender):
        problems.append("SMTP_FROM must be an email address")

    if problems:
        raise ConfigError(problems)
