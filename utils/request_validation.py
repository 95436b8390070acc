"""Utilities for validating incoming Flask requests."""

from __future__ import annotations

import re
import uuid
from typing import Iterable

from flask import Request
from werkzeug.exceptions import BadRequest

from utils.errors import AppError, ErrorCode

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]")
PASSWORD_RULE_MESSAGE = (
    "Password must contain at least one uppercase letter, one lowercase letter, "
    "one number and one special character"
)
ROLES = ("ADMIN", "USER")


class ValidationError(AppError):
    """A request field failed validation."""

    def __init__(self, message: str, field: str | None = None) -> None:
        details = {"field": field} if field else None
        super().__init__(message, 400, ErrorCode.VALIDATION_ERROR, details=details)


def parse_json_request(
    req: Request,
    *,
    required_keys: Iterable[str] | None = None,
    allow_empty: bool = False,
) -> dict:
    """Return the parsed JSON body or raise a 400 error."""

    if not req.is_json:
        raise BadRequest("Request content type must be application/json.")

    data = req.get_json(silent=False)
    if data is None:
        raise BadRequest("Request JSON body is required.")

    if not isinstance(data, dict):
        raise BadRequest("Request JSON payload must be an object.")

    if not data and not allow_empty:
        raise BadRequest("Request JSON body must not be empty.")

    if required_keys:
        missing = [key for key in required_keys if not data.get(key)]
        if missing:
            raise ValidationError(
                "Missing required fields: {}.".format(", ".join(sorted(missing)))
            )

    return data


def normalize_email(raw_email: object) -> str:
    """Normalize an email string by stripping whitespace and lowering case."""

    if not isinstance(raw_email, str):
        return ""
    return raw_email.strip().lower()


def validate_string(
    payload: dict, field: str, *, min_length: int = 1, max_length: int | None = None
) -> str:
    value = payload.get(field)
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field)
    value = value.strip()
    if len(value) < min_length:
        raise ValidationError(
            f"{field} must be at least {min_length} characters", field
        )
    if max_length is not None and len(value) > max_length:
        raise ValidationError(
            f"{field} must be at most {max_length} characters", field
        )
    return value


def validate_email(payload: dict, field: str = "email", *, max_length: int | None = None) -> str:
    email = normalize_email(payload.get(field))
    if not email or not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email address", field)
    if max_length is not None and len(email) > max_length:
        raise ValidationError(
            f"{field} must be at most {max_length} characters", field
        )
    return email


def validate_password(
    payload: dict,
    field: str = "password",
    *,
    min_length: int = 8,
    max_length: int = 100,
    strong: bool = True,
) -> str:
    """Validate a password without stripping it."""

    value = payload.get(field)
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field)
    if len(value) < min_length:
        raise ValidationError(
            f"{field} must be at least {min_length} characters", field
        )
    if len(value) > max_length:
        raise ValidationError(
            f"{field} must be at most {max_length} characters", field
        )
    if strong and not PASSWORD_PATTERN.match(value):
        raise ValidationError(PASSWORD_RULE_MESSAGE, field)
    return value


def validate_role(payload: dict, field: str = "role") -> str:
    role = payload.get(field)
    if not isinstance(role, str) or role.strip().upper() not in ROLES:
        raise ValidationError(f"{field} must be one of: {', '.join(ROLES)}", field)
    return role.strip().upper()


def validate_uuid(value: str, field: str = "id") -> str:
    try:
        return str(uuid.UUID(value))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f"{field} must be a valid UUID", field) from None


def parse_positive_int(
    raw: str | None, field: str, *, default: int, maximum: int | None = None
) -> int:
    """Parse a query-string integer, falling back to ``default`` when absent."""

    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{field} must be an integer", field) from None
    if value < 1:
        raise ValidationError(f"{field} must be at least 1", field)
    if maximum is not None and value > maximum:
        raise ValidationError(f"{field} must be at most {maximum}", field)
    return value
