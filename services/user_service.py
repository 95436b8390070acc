"""Administrative CRUD over user accounts."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError

from models import db
from models.user import User, UserRole
from utils.errors import AppError, ErrorCode


def commit_unique_email() -> None:
    """Commit the session, reporting a lost race on the unique email index as a 409."""

    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise AppError("Email already exists", 409, ErrorCode.ALREADY_EXISTS) from exc


class UserService:
    def list_users(self, page: int = 1, limit: int = 10) -> dict:
        query = User.query.order_by(User.created_at.asc(), User.id.asc())
        total = query.count()
        users = query.offset((page - 1) * limit).limit(limit).all()
        return {
            "items": [user.to_dict() for user in users],
            "page": page,
            "limit": limit,
            "total": total,
        }

    def get_user(self, user_id: str) -> dict:
        return self._get_or_404(user_id).to_dict()

    def create_user(
        self,
        *,
        name: str,
        email: str,
        password: str,
        role: Optional[str] = None,
        email_verified: bool = False,
    ) -> dict:
        self._ensure_email_free(email)

        user = User(email=email, name=name, role=UserRole(role or UserRole.USER.value))
        user.set_password(password)
        if email_verified:
            user.mark_verified()

        db.session.add(user)
        commit_unique_email()
        return user.to_dict()

    def update_user(self, user_id: str, changes: dict) -> dict:
        user = self._get_or_404(user_id)

        if "email" in changes and changes["email"] != user.email:
            self._ensure_email_free(changes["email"])
            user.email = changes["email"]
        if "name" in changes:
            user.name = changes["name"]
        if "role" in changes:
            user.role = UserRole(changes["role"])

        user.updated_at = datetime.utcnow()
        commit_unique_email()
        return user.to_dict()

    def delete_user(self, user_id: str) -> None:
        user = self._get_or_404(user_id)
        db.session.delete(user)
        db.session.commit()

    @staticmethod
    def _get_or_404(user_id: str) -> User:
        user = db.session.get(User, user_id)
        if user is None:
            raise AppError("User not found", 404, ErrorCode.NOT_FOUND)
        return user

    @staticmethod
    def _ensure_email_free(email: str) -> None:
        if User.query.filter_by(email=email).first() is not None:
            raise AppError("Email already exists", 409, ErrorCode.ALREADY_EXISTS)
