"""Signing and verification of access and refresh tokens.

Access tokens are issued by Flask-JWT-Extended so that the bearer-token gates
can use ``verify_jwt_in_request``. Refresh tokens are signed with PyJWT under a
separate secret, which keeps a leaked access-token key from minting refresh
tokens and the other way round.
"""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from flask_jwt_extended import create_access_token

from config import parse_duration
from utils.errors import AppError, ErrorCode

REFRESH_TOKEN_TYPE = "refresh"


def generate_opaque_token(num_bytes: int = 32) -> str:
    """Random hex string used for email verification and password reset links."""

    return secrets.token_hex(num_bytes)


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str


class TokenSigner:
    """Issue access/refresh token pairs for a user."""

    def __init__(self, refresh_secret: str, refresh_expiry: timedelta, algorithm: str = "HS256"):
        self.refresh_secret = refresh_secret
        self.refresh_expiry = refresh_expiry
        self.algorithm = algorithm

    @classmethod
    def from_config(cls, config) -> "TokenSigner":
        return cls(
            refresh_secret=config["REFRESH_TOKEN_SECRET"],
            refresh_expiry=parse_duration(config["REFRESH_TOKEN_EXPIRY"]),
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
        )

    def access_token(self, user_id: str, role: str) -> str:
        return create_access_token(identity=user_id, additional_claims={"role": role})

    def refresh_token(self, user_id: str) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": user_id,
            "type": REFRESH_TOKEN_TYPE,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + self.refresh_expiry,
        }
        return jwt.encode(claims, self.refresh_secret, algorithm=self.algorithm)

    def issue_pair(self, user_id: str, role: str) -> TokenPair:
        return TokenPair(
            access_token=self.access_token(user_id, role),
            refresh_token=self.refresh_token(user_id),
        )

    def decode_refresh_token(self, token: str) -> str:
        """Return the user id carried by a refresh token or raise INVALID_TOKEN."""

        try:
            claims = jwt.decode(
                token,
                self.refresh_secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.PyJWTError as exc:
            raise AppError("Invalid refresh token", 401, ErrorCode.INVALID_TOKEN) from exc

        if claims.get("type") != REFRESH_TOKEN_TYPE:
            raise AppError("Invalid refresh token", 401, ErrorCode.INVALID_TOKEN)
        return claims["sub"]
