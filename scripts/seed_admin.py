"""Seed the first administrator account.

Reads ``ADMIN_EMAIL``, ``ADMIN_NAME`` and ``ADMIN_PASSWORD`` from the
environment. Does nothing when the users table already has rows, so it is
safe to run on every deploy.
"""

import os
import sys

from app import create_app
from models import db
from models.user import User, UserRole
from utils.request_validation import normalize_email

DEFAULT_ADMIN_EMAIL = "admin@example.com"
DEFAULT_ADMIN_NAME = "Administrator"


def main() -> int:
    password = os.getenv("ADMIN_PASSWORD")
    if not password:
        print("ADMIN_PASSWORD must be set", file=sys.stderr)
        return 1

    email = normalize_email(os.getenv("ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL))
    name = os.getenv("ADMIN_NAME", DEFAULT_ADMIN_NAME)

    app = create_app()
    with app.app_context():
        if User.query.count() > 0:
            print("Users already exist, skipping admin seed")
            return 0

        admin = User(email=email, name=name, role=UserRole.ADMIN)
        admin.set_password(password)
        admin.mark_verified()
        db.session.add(admin)
        db.session.commit()
        print(f"Admin user created: {email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
