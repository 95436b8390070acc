"""Tests for access and refresh token signing."""

from __future__ import annotations

from datetime import timedelta

import jwt
import pytest
from flask_jwt_extended import decode_token

from services.tokens import TokenSigner, generate_opaque_token
from utils.errors import AppError, ErrorCode


def test_opaque_tokens_are_random_hex():
    first, second = generate_opaque_token(), generate_opaque_token()

    assert len(first) == 64
    assert int(first, 16) >= 0
    assert first != second


def test_access_token_carries_role(app):
    signer = app.extensions["token_signer"]

    with app.app_context():
        claims = decode_token(signer.access_token("user-1", "ADMIN"))

    assert claims["sub"] == "user-1"
    assert claims["role"] == "ADMIN"
    assert claims["exp"] - claims["iat"] == 15 * 60


def test_refresh_token_round_trip(app):
    signer = app.extensions["token_signer"]
    token = signer.refresh_token("user-1")

    assert signer.decode_refresh_token(token) == "user-1"
    assert token != signer.refresh_token("user-1")


def test_refresh_token_uses_separate_secret(app):
    signer = app.extensions["token_signer"]
    token = signer.refresh_token("user-1")

    with pytest.raises(jwt.InvalidSignatureError):
        jwt.decode(token, app.config["JWT_SECRET"], algorithms=["HS256"])


def test_expired_refresh_token_is_rejected():
    signer = TokenSigner("r" * 32, timedelta(seconds=-1))

    with pytest.raises(AppError) as excinfo:
        signer.decode_refresh_token(signer.refresh_token("user-1"))

    assert excinfo.value.status_code == 401
    assert excinfo.value.code is ErrorCode.INVALID_TOKEN


def test_refresh_token_requires_refresh_type():
    signer = TokenSigner("r" * 32, timedelta(days=1))
    token = jwt.encode({"sub": "user-1", "exp": 9999999999}, "r" * 32, algorithm="HS256")

    with pytest.raises(AppError):
        signer.decode_refresh_token(token)
