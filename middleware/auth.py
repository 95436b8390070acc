"""Bearer-token authentication and role-based authorization."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Callable, Optional

from flask import g
from flask_jwt_extended import JWTManager, get_jwt, get_jwt_identity, verify_jwt_in_request

from utils import api_response
from utils.errors import AppError, ErrorCode

logger = logging.getLogger(__name__)


def register_jwt_callbacks(jwt: JWTManager) -> None:
    """Render Flask-JWT-Extended failures in the API error envelope."""

    @jwt.unauthorized_loader
    def _missing_token(reason: str):
        return api_response.error("No token provided", 401, ErrorCode.UNAUTHORIZED)

    @jwt.invalid_token_loader
    def _invalid_token(reason: str):
        logger.warning("Invalid token: %s", reason)
        return api_response.error("Unauthorized - Invalid token", 401, ErrorCode.INVALID_TOKEN)

    @jwt.expired_token_loader
    def _expired_token(jwt_header: dict, jwt_payload: dict):
        logger.warning("Expired token", extra={"user_id": jwt_payload.get("sub")})
        return api_response.error("Unauthorized - Invalid token", 401, ErrorCode.INVALID_TOKEN)


def current_user_id() -> Optional[str]:
    """Return the identity of the verified access token, if any."""

    try:
        return get_jwt_identity()
    except RuntimeError:
        return None


def current_role() -> Optional[str]:
    try:
        return get_jwt().get("role")
    except RuntimeError:
        return None


def require_auth(fn: Callable) -> Callable:
    """Require a valid access token and expose its identity on ``g``."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        g.user_id = get_jwt_identity()
        g.user_role = get_jwt().get("role")
        return fn(*args, **kwargs)

    return wrapper


def require_role(*roles: str) -> Callable:
    """Require an access token whose ``role`` claim is one of ``roles``."""

    allowed = set(roles)

    def decorator(fn: Callable) -> Callable:
        @wraps(fn)
        @require_auth
        def wrapper(*args, **kwargs):
            if g.user_role not in allowed:
                logger.warning(
                    "Insufficient permissions",
                    extra={
                        "required_roles": sorted(allowed),
                        "user_role": g.user_role,
                        "user_id": g.user_id,
                    },
                )
                raise AppError("Forbidden - Insufficient permissions", 403, ErrorCode.FORBIDDEN)
            return fn(*args, **kwargs)

        return wrapper

    return decorator
