"""Reset the database to a small set of verified demo users.

Development only: every existing user is deleted first.
"""

import sys

from app import create_app
from models import db
from models.user import User, UserRole

DEMO_PASSWORD = "Password123!"

DEMO_USERS = [
    {"name": "John Doe", "email": "john@example.com", "role": UserRole.ADMIN},
    {"name": "Jane Smith", "email": "jane@example.com", "role": UserRole.USER},
    {"name": "Bob Johnson", "email": "bob@example.com", "role": UserRole.USER},
]


def main() -> int:
    app = create_app()
    if app.config["APP_ENV"] == "production":
        print("Refusing to seed demo data in production", file=sys.stderr)
        return 1

    with app.app_context():
        deleted = User.query.delete()
        db.session.commit()
        print(f"Removed {deleted} existing users")

        for data in DEMO_USERS:
            user = User(email=data["email"], name=data["name"], role=data["role"])
            user.set_password(DEMO_PASSWORD)
            user.mark_verified()
            db.session.add(user)
        db.session.commit()

        for data in DEMO_USERS:
            print(f"  {data['role'].value:<5} {data['email']} / {DEMO_PASSWORD}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
