import logging
import os
import sys

from dotenv import load_dotenv
from flask import Flask, jsonify, request, send_from_directory
from flask_cors import CORS

from utils.db_conn import DatabaseConnection
from utils.errors import register_error_handlers

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
DEFAULT_TOKEN_MAX_AGE = 7 * 24 * 3600  # 7 days


def load_config() -> dict:
    """Read settings from the environment (.env is loaded first)."""
    load_dotenv()
    return {
        "ENVIRONMENT": os.getenv("ENVIRONMENT", "production").lower(),
        "PORT": int(os.getenv("PORT", 5000)),
        "SECRET_KEY": os.getenv("SECRET_KEY", "dev-secret-key-change-in-production"),
        "TOKEN_MAX_AGE": int(os.getenv("TOKEN_MAX_AGE", DEFAULT_TOKEN_MAX_AGE)),
        "UPLOAD_DIR": os.path.abspath(os.getenv("UPLOAD_DIR", "./uploads")),
        "MAX_FILE_SIZE": int(os.getenv("MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE)),
        "FRONTEND_URL": os.getenv("FRONTEND_URL", "http://localhost:3000"),
    }


def create_app(overrides: dict = None) -> Flask:
    """Build an app with its own database binding.

    ``overrides`` replaces environment settings (tests pass an in-memory
    SQLALCHEMY_DATABASE_URI and a temporary UPLOAD_DIR).
    """
    app = Flask(__name__)
    app.config.update(load_config())
    if overrides:
        app.config.update(overrides)
    app.config["MAX_CONTENT_LENGTH"] = app.config["MAX_FILE_SIZE"]

    DatabaseConnection(app)
    CORS(
        app,
        resources={r"/api/*": {"origins": app.config["FRONTEND_URL"]}},
        supports_credentials=True,
    )
    register_error_handlers(app)

    from blueprints.auth_routes import auth_bp
    from blueprints.course_routes import course_bp
    from blueprints.assignment_routes import assignment_bp
    from blueprints.submission_routes import submission_bp
    from blueprints.grade_routes import grade_bp
    from blueprints.announcement_routes import announcement_bp
    from blueprints.user_routes import user_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(course_bp)
    app.register_blueprint(assignment_bp)
    app.register_blueprint(submission_bp)
    app.register_blueprint(grade_bp)
    app.register_blueprint(announcement_bp)
    app.register_blueprint(user_bp)

    # API: GET "/api/health"
    # Used by: uptime checks; no authentication
    @app.route("/api/health", methods=["GET"], endpoint="health")
    def health():
        logger.info(f"Request received: {request.method} {request.path}")
        return jsonify({"status": "ok", "message": "LMS API is running"})

    # Route: GET "/uploads/<name>"
    # Purpose: Serve stored submission files.
    @app.route("/uploads/<path:filename>", methods=["GET"], endpoint="uploaded_file")
    def uploaded_file(filename):
        return send_from_directory(app.config["UPLOAD_DIR"], filename)

    os.makedirs(app.config["UPLOAD_DIR"], exist_ok=True)
    logger.info(f"Application created ({app.config['ENVIRONMENT']})")
    return app


def run_startup_checks_or_exit(app: Flask):
    """Verify the database is reachable and the schema exists; exit otherwise."""
    logger.info("Running startup checks...")
    if DatabaseConnection(app).init_database():
        logger.info("All systems green. Starting server...")
        return
    logger.error("Startup checks failed. Aborting launch.")
    sys.exit(1)


# Default instance for `flask --app app run` and WSGI servers (app:app)
app = create_app()


if __name__ == "__main__":
    logger.info("Application startup initiated")
    run_startup_checks_or_exit(app)
    app.run(
        host="0.0.0.0",
        port=app.config["PORT"],
        debug=app.config["ENVIRONMENT"] == "development",
    )
