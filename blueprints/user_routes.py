import logging

from flask import Blueprint, jsonify

from utils import access_policy as policy
from utils.auth_utils import USER_COLUMNS, current_actor, login_required, role_required
from utils.db_conn import fetch_all, fetch_one
from utils.errors import NotFoundError

logger = logging.getLogger(__name__)

user_bp = Blueprint("users", __name__)


# API: GET "/api/users"
# Used by: admin user management
@user_bp.route("/api/users", methods=["GET"], endpoint="list_users")
@login_required
@role_required(policy.ADMIN)
def list_users():
    users = fetch_all(f"SELECT {USER_COLUMNS} FROM users ORDER BY created_at DESC, id DESC")
    logger.info(f"Retrieved {len(users)} users")
    return jsonify({"users": users})


# API: GET "/api/users/<id>"
# Used by: profile page
# Purpose: Users can only view their own profile unless admin.
@user_bp.route("/api/users/<int:user_id>", methods=["GET"], endpoint="get_user")
@login_required
def get_user(user_id):
    actor = current_actor()
    policy.authorize(
        actor,
        policy.READ,
        policy.Resource(kind=policy.USER, owner_id=user_id),
        "Not authorized",
    )

    user = fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = :id", {"id": user_id})
    if not user:
        raise NotFoundError("User not found")
    return jsonify({"user": user})
