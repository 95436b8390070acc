"""User management blueprint (administrators, plus self-service profile reads)."""

from __future__ import annotations
from http import HTTPStatus

from flask import Blueprint, g, request

from middleware.auth import require_auth, require_role
from middleware.http import cache_control
from models.user import UserRole
from services.user_service import UserService
from utils import api_response
from utils.errors import AppError, ErrorCode
from utils.request_validation import (
    ValidationError,
    parse_json_request,
    parse_positive_int,
    validate_email,
    validate_password,
    validate_role,
    validate_string,
    validate_uuid,
)

users_bp = Blueprint("users", __name__)
user_service = UserService()

ADMIN = UserRole.ADMIN.value
UPDATABLE_FIELDS = {"name", "email", "role"}


@users_bp.route("", methods=["GET"])
@require_role(ADMIN)
@cache_control(duration=300)
def list_users():
    page = parse_positive_int(request.args.get("page"), "page", default=1)
    limit = parse_positive_int(request.args.get("limit"), "limit", default=10, maximum=100)
    return api_response.success(user_service.list_users(page=page, limit=limit))


@users_bp.route("/<user_id>", methods=["GET"])
@require_auth
@cache_control(duration=60, private=True)
def get_user(user_id: str):
    if g.user_role != ADMIN and g.user_id != user_id:
        raise AppError("Not authorized to access this profile", 403, ErrorCode.FORBIDDEN)
    return api_response.success(user_service.get_user(user_id))


@users_bp.route("", methods=["POST"])
@require_role(ADMIN)
def create_user():
    payload = parse_json_request(request)
    name = validate_string(payload, "name", min_length=2, max_length=99)
    email = validate_email(payload, max_length=99)
    password = validate_password(payload, strong=False)
    role = validate_role(payload) if payload.get("role") is not None else None

    email_verified = payload.get("email_verified", False)
    if not isinstance(email_verified, bool):
        raise ValidationError("email_verified must be a boolean", "email_verified")

    user = user_service.create_user(
        name=name,
        email=email,
        password=password,
        role=role,
        email_verified=email_verified,
    )
    return api_response.success(user, HTTPStatus.CREATED)


@users_bp.route("/<user_id>", methods=["PATCH"])
@require_role(ADMIN)
def update_user(user_id: str):
    user_id = validate_uuid(user_id)
    payload = parse_json_request(request, allow_empty=True)

    unknown = set(payload) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(
            "Unknown fields: {}".format(", ".join(sorted(unknown)))
        )

    changes = {}
    if "name" in payload:
        changes["name"] = validate_string(payload, "name", min_length=2, max_length=99)
    if "email" in payload:
        changes["email"] = validate_email(payload, max_length=99)
    if "role" in payload:
        changes["role"] = validate_role(payload)

    return api_response.success(user_service.update_user(user_id, changes))


@users_bp.route("/<user_id>", methods=["DELETE"])
@require_role(ADMIN)
def delete_user(user_id: str):
    user_service.delete_user(user_id)
    return api_response.success(None)
