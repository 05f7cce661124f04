import logging

from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from models import db

logger = logging.getLogger(__name__)


class LMSError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str, payload: dict = None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        body.update(self.payload)
        return body


class ValidationError(LMSError):
    """Malformed or missing input; carries a field-level error list."""

    status_code = 400

    def __init__(self, errors, message: str = "Validation failed"):
        super().__init__(message, {"errors": list(errors)})
        self.errors = list(errors)


class AuthenticationError(LMSError):
    status_code = 401


class AuthorizationError(LMSError):
    status_code = 403


class NotFoundError(LMSError):
    status_code = 404


class ConflictError(LMSError):
    # Business-rule uniqueness violations are reported as bad requests
    status_code = 400


class InternalError(LMSError):
    status_code = 500


def _is_development() -> bool:
    return str(current_app.config.get("ENVIRONMENT", "")).lower() == "development"


def register_error_handlers(app):
    """Render every failure as JSON and roll back the request transaction."""

    @app.errorhandler(LMSError)
    def handle_lms_error(error):
        db.session.rollback()
        if error.status_code >= 500:
            logger.error(f"Internal error: {error.message}")
            body = {"error": "Something went wrong!"}
            if _is_development():
                body["message"] = error.message
            return jsonify(body), error.status_code
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(error):
        db.session.rollback()
        limit = current_app.config.get("MAX_CONTENT_LENGTH")
        logger.warning(f"Upload rejected: request exceeds {limit} bytes")
        return jsonify({"error": "File too large", "max_size": limit}), 413

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        db.session.rollback()
        return jsonify({"error": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        db.session.rollback()
        logger.exception(f"Unhandled error: {str(error)}")
        body = {"error": "Something went wrong!"}
        if _is_development():
            body["message"] = str(error)
        return jsonify(body), 500
