"""JSON response envelope helpers."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Optional

from flask import Response, g, jsonify

from utils.errors import ErrorCode


def success(data: Any = None, status: int = HTTPStatus.OK) -> tuple[Response, int]:
    """Wrap ``data`` in the success envelope."""

    return jsonify({"success": True, "data": data}), int(status)


def error(
    message: str,
    status: int,
    code: ErrorCode,
    *,
    details: Any = None,
    request_id: Optional[str] = None,
) -> Response:
    """Build a failure envelope response with the request id attached."""

    payload: dict[str, Any] = {
        "success": False,
        "error": {"code": code.value, "message": message},
        "request_id": request_id or g.get("request_id"),
    }
    if details is not None:
        payload["error"]["details"] = details
    response = jsonify(payload)
    response.status_code = int(status)
    return response
