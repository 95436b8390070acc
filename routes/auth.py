"""Authentication blueprint: signup, login, token rotation, verification, password reset."""

from __future__ import annotations
from http import HTTPStatus

from flask import Blueprint, current_app, g, request

from extensions import limiter
from middleware.auth import require_auth
from services.auth_service import AuthService
from utils import api_response
from utils.request_validation import (
    parse_json_request,
    validate_email,
    validate_password,
    validate_string,
)

auth_bp = Blueprint("auth", __name__)

# Failed attempts across every /api/auth route share one budget per client.
limiter.shared_limit(
    lambda: current_app.config.get("AUTH_RATE_LIMIT", "50 per 15 minutes"),
    scope="auth",
    deduct_when=lambda response: response.status_code >= 400,
)(auth_bp)


def _auth_service() -> AuthService:
    return AuthService(
        email_service=current_app.extensions["email_service"],
        signer=current_app.extensions["token_signer"],
    )


@auth_bp.route("/signup", methods=["POST"])
def signup():
    """Create an unverified account and send the verification email."""
    payload = parse_json_request(request)
    name = validate_string(payload, "name", min_length=2, max_length=99)
    email = validate_email(payload, max_length=99)
    password = validate_password(payload)

    user = _auth_service().signup(email, name, password)
    return api_response.success(user, HTTPStatus.CREATED)


@auth_bp.route("/login", methods=["POST"])
def login():
    """Exchange credentials for an access and refresh token."""
    payload = parse_json_request(request)
    email = validate_email(payload)
    password = validate_password(payload, min_length=6, max_length=100, strong=False)

    return api_response.success(_auth_service().login(email, password))


@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    return api_response.success(_auth_service().logout(g.user_id))


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """Rotate the caller's refresh token and mint a new access token."""
    payload = parse_json_request(request, allow_empty=True)
    token = payload.get("refresh_token")
    if not isinstance(token, str):
        token = None

    return api_response.success(_auth_service().refresh(token))


@auth_bp.route("/verify-email/<token>", methods=["GET"])
def verify_email(token: str):
    return api_response.success(_auth_service().verify_email(token))


@auth_bp.route("/resend-verification", methods=["POST"])
@limiter.limit(
    lambda: current_app.config.get("VERIFICATION_RATE_LIMIT", "3 per hour"),
    override_defaults=False,
)
def resend_verification():
    payload = parse_json_request(request)
    email = validate_email(payload)
    return api_response.success(_auth_service().resend_verification_email(email))


@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password():
    payload = parse_json_request(request)
    email = validate_email(payload)
    return api_response.success(_auth_service().forgot_password(email))


@auth_bp.route("/reset-password/<token>", methods=["POST"])
def reset_password(token: str):
    payload = parse_json_request(request)
    password = validate_password(payload)
    return api_response.success(_auth_service().reset_password(token, password))
