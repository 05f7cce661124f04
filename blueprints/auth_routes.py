import logging

from flask import Blueprint, g, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash

from models import db
from utils.auth_utils import USER_COLUMNS, create_user, issue_token, login_required
from utils.db_conn import fetch_one
from utils.errors import AuthenticationError, ConflictError
from utils.validation import (
    json_object,
    raise_if_errors,
    require_choice,
    require_email,
    require_string,
)

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)

# Admin accounts are seeded, never self-registered
SELF_REGISTER_ROLES = ("student", "instructor")
MIN_PASSWORD_LENGTH = 6


# API: POST "/api/auth/register"
# Used by: sign-up form
# Purpose: Create a student/instructor account and return a bearer token.
@auth_bp.route("/api/auth/register", methods=["POST"], endpoint="register")
def register():
    data = json_object()
    errors = []
    email = require_email(data, "email", errors)
    password = data.get("password")
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        errors.append(
            {
                "field": "password",
                "message": f"password must be at least {MIN_PASSWORD_LENGTH} characters",
            }
        )
    first_name = require_string(data, "firstName", errors)
    last_name = require_string(data, "lastName", errors)
    role = require_choice(data, "role", errors, SELF_REGISTER_ROLES)
    raise_if_errors(errors)

    if fetch_one("SELECT id FROM users WHERE email = :email", {"email": email}):
        raise ConflictError("User already exists")

    try:
        user_id = create_user(email, password, first_name, last_name, role)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("User already exists")

    user = fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = :id", {"id": user_id})
    logger.info(f"Registered {role} account {email}")
    return jsonify({"token": issue_token(user), "user": user}), 201


# API: POST "/api/auth/login"
# Used by: login form
# Purpose: Exchange email/password for a bearer token.
@auth_bp.route("/api/auth/login", methods=["POST"], endpoint="login")
def login():
    data = json_object()
    errors = []
    email = require_email(data, "email", errors)
    require_string(data, "password", errors)
    raise_if_errors(errors)
    password = data["password"]

    logger.info(f"Login attempt for {email}")
    row = fetch_one(
        f"SELECT {USER_COLUMNS}, password_hash FROM users WHERE email = :email",
        {"email": email},
    )
    if not row or not check_password_hash(row.pop("password_hash"), password):
        logger.warning(f"Login failed for {email}")
        raise AuthenticationError("Invalid credentials")

    logger.info(f"User {email} logged in successfully")
    return jsonify({"token": issue_token(row), "user": row})


# API: GET "/api/auth/me"
# Used by: client bootstrap to restore the signed-in user
# Purpose: Return the profile behind the bearer token.
@auth_bp.route("/api/auth/me", methods=["GET"], endpoint="me")
@login_required
def me():
    return jsonify({"user": g.current_user})
