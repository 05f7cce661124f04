import logging

from flask import Blueprint, jsonify

from models import db
from blueprints.course_routes import course_resource, load_course, read_denied_message
from utils import access_policy as policy
from utils.auth_utils import current_actor, login_required, role_required
from utils.db_conn import execute, fetch_all, fetch_one, fetch_raw, insert
from utils.errors import NotFoundError
from utils.validation import (
    json_object,
    merge_updates,
    optional_string,
    raise_if_errors,
    require_int,
    require_string,
)

logger = logging.getLogger(__name__)

announcement_bp = Blueprint("announcements", __name__)

ANNOUNCEMENT_SELECT = """
    SELECT a.*, u.first_name, u.last_name
    FROM announcements a
    LEFT JOIN users u ON a.created_by = u.id
"""


def _load_for_write(announcement_id: int) -> dict:
    announcement = fetch_raw(
        """
        SELECT a.id, a.course_id, a.title, a.content, c.instructor_id
        FROM announcements a
        JOIN courses c ON a.course_id = c.id
        WHERE a.id = :id
        """,
        {"id": announcement_id},
    )
    if not announcement:
        raise NotFoundError("Announcement not found")
    return announcement


def _resource(announcement: dict) -> policy.Resource:
    return policy.Resource(
        kind=policy.ANNOUNCEMENT, course_instructor_id=announcement["instructor_id"]
    )


# API: GET "/api/announcements/course/<course_id>"
# Used by: course page announcement feed
# Purpose: Newest-first announcements; students must be enrolled and
#          instructors must own the course.
@announcement_bp.route(
    "/api/announcements/course/<int:course_id>",
    methods=["GET"],
    endpoint="list_announcements",
)
@login_required
def list_announcements(course_id):
    actor = current_actor()
    course = load_course(course_id)
    policy.authorize(
        actor,
        policy.READ,
        course_resource(course, kind=policy.ANNOUNCEMENT, actor=actor),
        read_denied_message(actor),
    )

    announcements = fetch_all(
        ANNOUNCEMENT_SELECT
        + " WHERE a.course_id = :course_id ORDER BY a.created_at DESC, a.id DESC",
        {"course_id": course_id},
    )
    return jsonify({"announcements": announcements})


# API: POST "/api/announcements"
# Used by: course page (owner instructor/admin)
@announcement_bp.route(
    "/api/announcements", methods=["POST"], endpoint="create_announcement"
)
@login_required
@role_required(policy.INSTRUCTOR, policy.ADMIN)
def create_announcement():
    actor = current_actor()
    data = json_object()
    errors = []
    course_id = require_int(data, "courseId", errors)
    title = require_string(data, "title", errors)
    content = require_string(data, "content", errors)
    raise_if_errors(errors)

    course = load_course(course_id)
    policy.authorize(
        actor,
        policy.CREATE,
        course_resource(course, kind=policy.ANNOUNCEMENT),
        "Not authorized to create announcements for this course",
    )

    announcement_id = insert(
        """INSERT INTO announcements (course_id, title, content, created_by)
        VALUES (:course_id, :title, :content, :created_by)""",
        {"course_id": course_id, "title": title, "content": content, "created_by": actor.id},
    )
    db.session.commit()

    logger.info(f"Announcement '{title}' posted to course {course_id} by {actor.id}")
    announcement = fetch_one(ANNOUNCEMENT_SELECT + " WHERE a.id = :id", {"id": announcement_id})
    return jsonify({"announcement": announcement}), 201


# API: PUT "/api/announcements/<id>"
# Purpose: Partial update of title/content.
@announcement_bp.route(
    "/api/announcements/<int:announcement_id>",
    methods=["PUT"],
    endpoint="update_announcement",
)
@login_required
@role_required(policy.INSTRUCTOR, policy.ADMIN)
def update_announcement(announcement_id):
    actor = current_actor()
    existing = _load_for_write(announcement_id)
    policy.authorize(
        actor, policy.UPDATE, _resource(existing), "Not authorized to update this announcement"
    )

    data = json_object()
    errors = []
    updates = {
        "title": optional_string(data, "title", errors),
        "content": optional_string(data, "content", errors),
    }
    for field, value in updates.items():
        if value is not None and not value.strip():
            errors.append({"field": field, "message": f"{field} cannot be empty"})
    raise_if_errors(errors)

    merged = merge_updates(existing, updates)
    execute(
        """UPDATE announcements
        SET title = :title, content = :content, updated_at = CURRENT_TIMESTAMP
        WHERE id = :id""",
        {"title": merged["title"], "content": merged["content"], "id": announcement_id},
    )
    db.session.commit()

    logger.info(f"Announcement {announcement_id} updated by {actor.role} {actor.id}")
    announcement = fetch_one(ANNOUNCEMENT_SELECT + " WHERE a.id = :id", {"id": announcement_id})
    return jsonify({"announcement": announcement})


# API: DELETE "/api/announcements/<id>"
@announcement_bp.route(
    "/api/announcements/<int:announcement_id>",
    methods=["DELETE"],
    endpoint="delete_announcement",
)
@login_required
@role_required(policy.INSTRUCTOR, policy.ADMIN)
def delete_announcement(announcement_id):
    actor = current_actor()
    existing = _load_for_write(announcement_id)
    policy.authorize(
        actor, policy.DELETE, _resource(existing), "Not authorized to delete this announcement"
    )

    execute("DELETE FROM announcements WHERE id = :id", {"id": announcement_id})
    db.session.commit()
    logger.info(f"Announcement {announcement_id} deleted by {actor.role} {actor.id}")
    return jsonify({"message": "Announcement deleted successfully"})
