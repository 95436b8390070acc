"""Account lifecycle: signup, email verification, login, token rotation, password reset."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import update
from werkzeug.security import generate_password_hash

from models import db
from models.user import User, UserRole
from services.email_service import EmailService
from services.tokens import TokenSigner, generate_opaque_token
from services.user_service import commit_unique_email
from utils.errors import AppError, ErrorCode

logger = logging.getLogger(__name__)

VERIFICATION_TOKEN_TTL = timedelta(hours=24)
RESET_TOKEN_TTL = timedelta(hours=1)


def _utcnow() -> datetime:
    return datetime.utcnow()


def _role_value(user: User) -> str:
    return user.role.value if isinstance(user.role, UserRole) else str(user.role)


def find_user_by_email(email: str) -> User | None:
    return User.query.filter_by(email=email).first()


class AuthService:
    """Orchestrates the auth flows against the database, token signer and mailer."""

    def __init__(self, email_service: EmailService, signer: TokenSigner):
        self.email_service = email_service
        self.signer = signer

    def signup(self, email: str, name: str, password: str) -> dict:
        if find_user_by_email(email) is not None:
            raise AppError("Email already exists", 409, ErrorCode.ALREADY_EXISTS)

        token = generate_opaque_token()
        user = User(
            email=email,
            name=name,
            email_verification_token=token,
            email_verification_expires=_utcnow() + VERIFICATION_TOKEN_TTL,
        )
        user.set_password(password)
        db.session.add(user)
        commit_unique_email()
        logger.info("User signed up", extra={"user_id": user.id})

        self.email_service.send_verification_email(user.email, user.name, token)
        return user.to_dict()

    def verify_email(self, token: str) -> dict:
        now = _utcnow()
        result = db.session.execute(
            update(User)
            .where(
                User.email_verification_token == token,
                User.email_verification_expires > now,
                User.email_verified.is_(None),
            )
            .values(
                email_verified=now,
                email_verification_token=None,
                email_verification_expires=None,
            )
            .execution_options(synchronize_session=False)
        )
        db.session.commit()

        if result.rowcount != 1:
            raise AppError(
                "Invalid or expired verification token", 400, ErrorCode.INVALID_TOKEN
            )
        return {"message": "Email verified successfully"}

    def cleanup_expired_verification_tokens(self) -> int:
        """Clear verification tokens that expired before anyone used them."""

        result = db.session.execute(
            update(User)
            .where(
                User.email_verification_expires < _utcnow(),
                User.email_verified.is_(None),
            )
            .values(email_verification_token=None, email_verification_expires=None)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        if result.rowcount:
            logger.debug("Cleared %d expired verification tokens", result.rowcount)
        return result.rowcount

    def resend_verification_email(self, email: str) -> dict:
        self.cleanup_expired_verification_tokens()

        user = find_user_by_email(email)
        if user is None:
            raise AppError("User not found", 404, ErrorCode.NOT_FOUND)
        if user.is_verified:
            raise AppError("Email is already verified", 400, ErrorCode.INVALID_REQUEST)

        token = generate_opaque_token()
        db.session.execute(
            update(User)
            .where(User.id == user.id)
            .values(
                email_verification_token=token,
                email_verification_expires=_utcnow() + VERIFICATION_TOKEN_TTL,
            )
            .execution_options(synchronize_session=False)
        )
        db.session.commit()

        self.email_service.send_verification_email(user.email, user.name, token)
        return {"message": "Verification email sent"}

    def login(self, email: str, password: str) -> dict:
        user = find_user_by_email(email)
        if user is None or not user.check_password(password):
            raise AppError("Invalid credentials", 401, ErrorCode.INVALID_CREDENTIALS)

        if not user.is_verified:
            raise AppError(
                "Please verify your email before logging in",
                401,
                ErrorCode.EMAIL_NOT_VERIFIED,
            )

        pair = self.signer.issue_pair(user.id, _role_value(user))
        db.session.execute(
            update(User)
            .where(User.id == user.id)
            .values(refresh_token=pair.refresh_token)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        logger.info("User logged in", extra={"user_id": user.id})

        return {
            "access_token": pair.access_token,
            "refresh_token": pair.refresh_token,
            "user": user.to_dict(),
        }

    def refresh(self, refresh_token: str | None) -> dict:
        if not refresh_token:
            raise AppError("Refresh token is required", 400, ErrorCode.INVALID_TOKEN)

        user_id = self.signer.decode_refresh_token(refresh_token)
        logger.debug("Processing refresh token request", extra={"user_id": user_id})

        user = User.query.filter_by(id=user_id, refresh_token=refresh_token).first()
        if user is None:
            raise AppError("Invalid refresh token", 401, ErrorCode.INVALID_TOKEN)

        pair = self.signer.issue_pair(user.id, _role_value(user))
        result = db.session.execute(
            update(User)
            .where(User.id == user.id, User.refresh_token == refresh_token)
            .values(refresh_token=pair.refresh_token)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()

        # Another request rotated the same token first.
        if result.rowcount != 1:
            raise AppError("Invalid refresh token", 401, ErrorCode.INVALID_TOKEN)

        return {
            "access_token": pair.access_token,
            "refresh_token": pair.refresh_token,
            "user": user.to_dict(),
        }

    def logout(self, user_id: str | None) -> dict:
        if not user_id:
            raise AppError("User ID is required", 400, ErrorCode.INVALID_INPUT)

        db.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(refresh_token=None)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return {"message": "Logged out successfully"}

    def forgot_password(self, email: str) -> dict:
        user = find_user_by_email(email)
        if user is None:
            raise AppError("User not found", 404, ErrorCode.NOT_FOUND)

        user_id, address, name = user.id, user.email, user.name
        token = generate_opaque_token()
        self._set_reset_token(user_id, token, _utcnow() + RESET_TOKEN_TTL)

        try:
            self.email_service.send_password_reset_email(address, name, token)
        except Exception:
            # A token nobody was told about must not stay usable.
            db.session.rollback()
            self._set_reset_token(user_id, None, None)
            raise

        return {"message": "Password reset email sent"}

    def reset_password(self, token: str, new_password: str) -> dict:
        now = _utcnow()
        pending = (
            User.query.filter(
                User.password_reset_token == token,
                User.password_reset_expires > now,
            ).first()
            is not None
        )
        if not pending:
            raise AppError("Invalid or expired reset token", 400, ErrorCode.INVALID_TOKEN)

        # Hashing is slow, so guessed tokens are turned away above; the
        # conditional UPDATE below still decides which concurrent reset wins.
        password_hash = generate_password_hash(new_password)
        result = db.session.execute(
            update(User)
            .where(
                User.password_reset_token == token,
                User.password_reset_expires > now,
            )
            .values(
                password_hash=password_hash,
                password_reset_token=None,
                password_reset_expires=None,
            )
            .execution_options(synchronize_session=False)
        )
        db.session.commit()

        if result.rowcount != 1:
            raise AppError("Invalid or expired reset token", 400, ErrorCode.INVALID_TOKEN)
        return {"message": "Password reset successfully"}

    def _set_reset_token(self, user_id: str, token: str | None, expires: datetime | None) -> None:
        db.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(password_reset_token=token, password_reset_expires=expires)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
