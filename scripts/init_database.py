"""Create the LMS tables and the default accounts.
Run from the repo root:

    python scripts/init_database.py

This uses the same database configuration as the app (DATABASE_URL or DB_* env vars).
"""

import logging
import os
import sys

# Ensure we can import the app from the parent directory
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app import app  # noqa: E402
from models import db  # noqa: E402
from utils.auth_utils import create_user  # noqa: E402
from utils.db_conn import DatabaseConnection, fetch_one  # noqa: E402

logger = logging.getLogger("init_database")

DEFAULT_ACCOUNTS = [
    ("admin@lms.com", "admin123", "Admin", "User", "admin"),
    ("instructor@lms.com", "instructor123", "John", "Instructor", "instructor"),
    ("student@lms.com", "student123", "Jane", "Student", "student"),
]


def seed_default_accounts() -> list:
    """Insert any missing default account; return the emails created."""
    created = []
    for email, password, first_name, last_name, role in DEFAULT_ACCOUNTS:
        if fetch_one("SELECT id FROM users WHERE email = :email", {"email": email}):
            logger.info(f"Default {role} {email} already exists")
            continue
        create_user(email, password, first_name, last_name, role)
        created.append(email)
        logger.info(f"Default {role} created ({email} / {password})")
    db.session.commit()
    return created


def main() -> int:
    if not DatabaseConnection(app).init_database():
        logger.error("Database initialization failed")
        return 1
    with app.app_context():
        try:
            seed_default_accounts()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Seeding default accounts failed: {e}")
            return 2
    logger.info("Database initialization complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
