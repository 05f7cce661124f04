import os
import logging
import sqlite3
import time
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from flask import Flask
from sqlalchemy import event
from sqlalchemy.engine import Engine

from models import db

# Configure logging for database operations
logger = logging.getLogger(__name__)

DEFAULT_DB_HOST = "localhost"
DEFAULT_DB_PORT = 3306
DEFAULT_DB_USER = "root"
DEFAULT_DB_NAME = "lms_db"


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE rules unless enabled per connection
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_database_uri() -> str:
    """Return DATABASE_URL, or a mysql+pymysql URI assembled from DB_* variables."""
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    db_host = os.getenv("DB_HOST", DEFAULT_DB_HOST)
    db_port = os.getenv("DB_PORT", str(DEFAULT_DB_PORT))
    db_user = os.getenv("DB_USER", DEFAULT_DB_USER)
    db_password = os.getenv("DB_PASSWORD", "")
    db_name = os.getenv("DB_NAME", DEFAULT_DB_NAME)
    return f"mysql+pymysql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"


def _redact(uri: str) -> str:
    if "@" not in uri or "://" not in uri:
        return uri
    scheme, rest = uri.split("://", 1)
    credentials, host = rest.rsplit("@", 1)
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"


class DatabaseConnection:
    """Handles database connection, initialization, and management."""

    def __init__(self, app: Optional[Flask] = None):
        self.app = app
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask):
        """Initialize database connection with Flask app."""
        self.app = app
        if not app.config.get("SQLALCHEMY_DATABASE_URI"):
            app.config["SQLALCHEMY_DATABASE_URI"] = build_database_uri()
        app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

        db_uri = app.config["SQLALCHEMY_DATABASE_URI"]
        if not db_uri.startswith("sqlite"):
            # Connection pool settings to handle connection timeouts
            app.config.setdefault(
                "SQLALCHEMY_ENGINE_OPTIONS",
                {
                    "pool_size": 10,
                    "max_overflow": 20,
                    "pool_recycle": 3600,  # Recycle connections after 1 hour
                    "pool_pre_ping": True,
                    "pool_timeout": 30,
                },
            )
        logger.info(f"Database URI configured: {_redact(db_uri)}")

        # Check if SQLAlchemy is already registered with this app
        if "sqlalchemy" not in app.extensions:
            db.init_app(app)
            logger.info("Database initialized with Flask app")
        else:
            logger.info(
                "Database already initialized with Flask app - skipping re-initialization"
            )

    def test_connection(self, max_retries: int = 3) -> bool:
        """Test database connection with retry mechanism."""
        if self.app is None:
            logger.error("Database connection not initialized with Flask app")
            return False

        retry_delay = 1
        for attempt in range(max_retries):
            try:
                logger.info(
                    f"Testing database connection... (attempt {attempt + 1}/{max_retries})"
                )
                with self.app.app_context():
                    with db.engine.connect() as connection:
                        connection.execute(db.text("SELECT 1"))
                logger.info("Database connection successful")
                return True
            except Exception as e:
                logger.warning(
                    f"Database connection failed (attempt {attempt + 1}): {str(e)}"
                )
                if attempt < max_retries - 1:
                    time.sleep(retry_delay)
                    retry_delay *= 2  # Exponential backoff
        logger.error(f"Database connection failed after {max_retries} attempts")
        return False

    def create_tables(self) -> bool:
        """Create all database tables."""
        if self.app is None:
            logger.error("Database connection not initialized with Flask app")
            return False
        try:
            logger.info("Creating database tables...")
            with self.app.app_context():
                db.create_all()
            logger.info("Database tables created successfully")
            return True
        except Exception as e:
            logger.error(f"Database table creation failed: {str(e)}")
            return False

    def init_database(self) -> bool:
        """Initialize database connection and create tables if they don't exist."""
        logger.info("Starting database initialization...")

        if not self.test_connection():
            return False

        return self.create_tables()


def _to_json_value(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def serialize_row(row) -> Optional[dict]:
    """Convert a result mapping into a JSON-ready dict."""
    if row is None:
        return None
    return {key: _to_json_value(value) for key, value in dict(row).items()}


def fetch_one(sql: str, params: Optional[dict] = None) -> Optional[dict]:
    row = db.session.execute(db.text(sql), params or {}).mappings().first()
    return serialize_row(row)


def fetch_raw(sql: str, params: Optional[dict] = None) -> Optional[dict]:
    """Like fetch_one but keeps driver-native values (for writing them back)."""
    row = db.session.execute(db.text(sql), params or {}).mappings().first()
    return dict(row) if row is not None else None


def fetch_all(sql: str, params: Optional[dict] = None) -> list:
    rows = db.session.execute(db.text(sql), params or {}).mappings().all()
    return [serialize_row(row) for row in rows]


def execute(sql: str, params: Optional[dict] = None):
    """Run a write statement inside the current request transaction."""
    return db.session.execute(db.text(sql), params or {})


def insert(sql: str, params: Optional[dict] = None) -> int:
    """Run an INSERT and return the new primary key."""
    result = execute(sql, params)
    return result.lastrowid
