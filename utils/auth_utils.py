import logging
from functools import wraps
from typing import Optional, Dict, Any

from flask import current_app, g, request
from itsdangerous import URLSafeTimedSerializer, BadData, SignatureExpired
from werkzeug.security import generate_password_hash

from utils.access_policy import Actor
from utils.db_conn import fetch_one, insert
from utils.errors import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

TOKEN_SALT = "lms-auth-token"

USER_COLUMNS = "id, email, first_name, last_name, role, created_at"


def _get_serializer() -> URLSafeTimedSerializer:
    secret = current_app.config.get("SECRET_KEY") or current_app.secret_key
    return URLSafeTimedSerializer(secret, salt=TOKEN_SALT)


def issue_token(user: Dict[str, Any]) -> str:
    """Create a signed bearer token for ``user`` (needs id and role)."""
    return _get_serializer().dumps({"user_id": user["id"], "role": user["role"]})


def resolve_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the token payload, or None when it is forged, malformed or expired."""
    max_age = current_app.config.get("TOKEN_MAX_AGE")
    try:
        data = _get_serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        logger.info("Rejected expired bearer token")
        return None
    except BadData:
        return None
    if isinstance(data, dict) and "user_id" in data:
        return data
    return None


def create_user(email, password, first_name, last_name, role) -> int:
    """Insert a user row with a hashed password and return its id."""
    return insert(
        """INSERT INTO users (email, password_hash, first_name, last_name, role)
        VALUES (:email, :password_hash, :first_name, :last_name, :role)""",
        {
            "email": email,
            "password_hash": generate_password_hash(password),
            "first_name": first_name,
            "last_name": last_name,
            "role": role,
        },
    )


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def login_required(f):
    """Decorator: require a valid bearer token and load the caller into ``g``.

    The user row is re-read on every request so deleted accounts lose access
    immediately.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            raise AuthenticationError("Access token required")

        payload = resolve_token(token)
        if payload is None:
            raise AuthenticationError("Invalid or expired token")

        user = fetch_one(
            f"SELECT {USER_COLUMNS} FROM users WHERE id = :id",
            {"id": payload["user_id"]},
        )
        if not user:
            raise AuthenticationError("Invalid or expired token")

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def role_required(*roles):
    """Decorator applied under ``login_required``; rejects other roles with 403."""

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            role = g.current_user["role"]
            if role not in roles:
                logger.warning(
                    f"Role {role} rejected for {request.method} {request.path}"
                )
                raise AuthorizationError(
                    f"Access denied. {' or '.join(r.title() for r in roles)} privileges required."
                )
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def current_actor() -> Actor:
    user = g.current_user
    return Actor(id=user["id"], role=user["role"])
