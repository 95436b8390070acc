"""Application error type and the fixed error-code catalogue."""

from __future__ import annotations

from enum import Enum
from http import HTTPStatus
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Error codes returned in the ``error.code`` field of failed responses."""

    UNAUTHORIZED = "ERR_1001"
    INVALID_CREDENTIALS = "ERR_1002"
    FORBIDDEN = "ERR_1003"
    INVALID_TOKEN = "ERR_1004"
    EMAIL_NOT_VERIFIED = "ERR_1005"
    VALIDATION_ERROR = "ERR_2001"
    INVALID_INPUT = "ERR_2002"
    INVALID_REQUEST = "ERR_2003"
    NOT_FOUND = "ERR_3001"
    ALREADY_EXISTS = "ERR_3002"
    RATE_LIMIT_EXCEEDED = "ERR_4001"
    INTERNAL_SERVER_ERROR = "ERR_5001"
    SERVICE_UNAVAILABLE = "ERR_5002"


_STATUS_CODES = {
    HTTPStatus.BAD_REQUEST: ErrorCode.INVALID_REQUEST,
    HTTPStatus.UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    HTTPStatus.FORBIDDEN: ErrorCode.FORBIDDEN,
    HTTPStatus.NOT_FOUND: ErrorCode.NOT_FOUND,
    HTTPStatus.CONFLICT: ErrorCode.ALREADY_EXISTS,
    HTTPStatus.REQUEST_ENTITY_TOO_LARGE: ErrorCode.INVALID_REQUEST,
    HTTPStatus.UNSUPPORTED_MEDIA_TYPE: ErrorCode.INVALID_REQUEST,
    HTTPStatus.TOO_MANY_REQUESTS: ErrorCode.RATE_LIMIT_EXCEEDED,
    HTTPStatus.SERVICE_UNAVAILABLE: ErrorCode.SERVICE_UNAVAILABLE,
}


def code_for_status(status_code: int) -> ErrorCode:
    """Return the error code used for a bare HTTP status."""

    if status_code in _STATUS_CODES:
        return _STATUS_CODES[status_code]
    if status_code >= 500:
        return ErrorCode.INTERNAL_SERVER_ERROR
    return ErrorCode.INVALID_REQUEST


class AppError(Exception):
    """An error with an HTTP status, an error code and an operational flag.

    Operational errors are expected outcomes (bad credentials, missing rows)
    and are shown to the client as-is. Anything else is a bug and is hidden
    behind a generic 500 response.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: Optional[ErrorCode] = None,
        *,
        is_operational: bool = True,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code or code_for_status(self.status_code)
        self.is_operational = is_operational
        self.details = details

    def to_dict(self) -> dict:
        payload = {"code": self.code.value, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<AppError {self.status_code} {self.code.value}: {self.message}>"
