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
    optional_datetime,
    optional_int,
    optional_string,
    raise_if_errors,
    require_int,
    require_string,
)

logger = logging.getLogger(__name__)

assignment_bp = Blueprint("assignments", __name__)

DEFAULT_POINTS = 100
DEFAULT_ASSIGNMENT_TYPE = "assignment"


def load_assignment(assignment_id: int) -> dict:
    """Assignment joined with its course code/name and owning instructor."""
    assignment = fetch_one(
        """
        SELECT a.*, c.code AS course_code, c.name AS course_name,
               c.instructor_id, u.first_name, u.last_name
        FROM assignments a
        JOIN courses c ON a.course_id = c.id
        LEFT JOIN users u ON a.created_by = u.id
        WHERE a.id = :id
        """,
        {"id": assignment_id},
    )
    if not assignment:
        raise NotFoundError("Assignment not found")
    return assignment


def assignment_resource(assignment: dict, actor=None) -> policy.Resource:
    course = {"id": assignment["course_id"], "instructor_id": assignment["instructor_id"]}
    return course_resource(course, kind=policy.ASSIGNMENT, actor=actor)


# API: GET "/api/assignments/course/<course_id>"
# Used by: course page assignment list
# Purpose: Assignments of a course with a per-caller `submitted` flag;
#          students must be enrolled, instructors must own the course.
@assignment_bp.route(
    "/api/assignments/course/<int:course_id>", methods=["GET"], endpoint="list_assignments"
)
@login_required
def list_assignments(course_id):
    actor = current_actor()
    course = load_course(course_id)
    policy.authorize(
        actor,
        policy.READ,
        course_resource(course, kind=policy.ASSIGNMENT, actor=actor),
        read_denied_message(actor),
    )

    assignments = fetch_all(
        """
        SELECT a.*, u.first_name, u.last_name,
               EXISTS(SELECT 1 FROM submissions
                      WHERE assignment_id = a.id AND student_id = :user_id) AS submitted
        FROM assignments a
        LEFT JOIN users u ON a.created_by = u.id
        WHERE a.course_id = :course_id
        ORDER BY a.due_date ASC, a.created_at DESC, a.id DESC
        """,
        {"user_id": actor.id, "course_id": course_id},
    )
    for assignment in assignments:
        assignment["submitted"] = bool(assignment["submitted"])
    return jsonify({"assignments": assignments})


# API: GET "/api/assignments/<id>"
# Used by: assignment detail page
# Purpose: Single assignment with course code/name.
@assignment_bp.route(
    "/api/assignments/<int:assignment_id>", methods=["GET"], endpoint="get_assignment"
)
@login_required
def get_assignment(assignment_id):
    actor = current_actor()
    assignment = load_assignment(assignment_id)
    policy.authorize(
        actor,
        policy.READ,
        assignment_resource(assignment, actor=actor),
        read_denied_message(actor),
    )
    return jsonify({"assignment": assignment})


# API: POST "/api/assignments"
# Used by: assignment creation form (course owner/admin)
# Purpose: Create an assignment under a course.
@assignment_bp.route("/api/assignments", methods=["POST"], endpoint="create_assignment")
@login_required
@role_required(policy.INSTRUCTOR, policy.ADMIN)
def create_assignment():
    actor = current_actor()
    data = json_object()
    errors = []
    course_id = require_int(data, "courseId", errors)
    title = require_string(data, "title", errors)
    description = optional_string(data, "description", errors)
    due_date = optional_datetime(data, "dueDate", errors)
    points = optional_int(data, "points", errors, minimum=0)
    assignment_type = optional_string(data, "assignmentType", errors)
    raise_if_errors(errors)

    course = load_course(course_id)
    policy.authorize(
        actor,
        policy.CREATE,
        course_resource(course, kind=policy.ASSIGNMENT),
        "Not authorized to create assignments for this course",
    )

    assignment_id = insert(
        """INSERT INTO assignments
        (course_id, title, description, due_date, points, assignment_type, created_by)
        VALUES (:course_id, :title, :description, :due_date, :points, :assignment_type, :created_by)""",
        {
            "course_id": course_id,
            "title": title,
            "description": description or None,
            "due_date": due_date,
            "points": DEFAULT_POINTS if points is None else points,
            "assignment_type": assignment_type or DEFAULT_ASSIGNMENT_TYPE,
            "created_by": actor.id,
        },
    )
    db.session.commit()

    logger.info(f"Assignment '{title}' created in course {course_id} by {actor.id}")
    return jsonify({"assignment": load_assignment(assignment_id)}), 201


# API: PUT "/api/assignments/<id>"
# Used by: assignment edit form (course owner/admin)
# Purpose: Partial update; omitted fields keep their stored value.
@assignment_bp.route(
    "/api/assignments/<int:assignment_id>", methods=["PUT"], endpoint="update_assignment"
)
@login_required
@role_required(policy.INSTRUCTOR, policy.ADMIN)
def update_assignment(assignment_id):
    actor = current_actor()
    existing = fetch_raw(
        """
        SELECT a.course_id, a.title, a.description, a.due_date, a.points,
               a.assignment_type, c.instructor_id
        FROM assignments a
        JOIN courses c ON a.course_id = c.id
        WHERE a.id = :id
        """,
        {"id": assignment_id},
    )
    if not existing:
        raise NotFoundError("Assignment not found")
    policy.authorize(
        actor,
        policy.UPDATE,
        assignment_resource(existing),
        "Not authorized to update this assignment",
    )

    data = json_object()
    errors = []
    updates = {
        "title": optional_string(data, "title", errors),
        "description": optional_string(data, "description", errors),
        "due_date": optional_datetime(data, "dueDate", errors),
        "points": optional_int(data, "points", errors, minimum=0),
        "assignment_type": optional_string(data, "assignmentType", errors),
    }
    if updates["title"] is not None and not updates["title"].strip():
        errors.append({"field": "title", "message": "title cannot be empty"})
    raise_if_errors(errors)

    merged = merge_updates(existing, updates)
    execute(
        """UPDATE assignments
        SET title = :title, description = :description, due_date = :due_date,
            points = :points, assignment_type = :assignment_type,
            updated_at = CURRENT_TIMESTAMP
        WHERE id = :id""",
        {
            "title": merged["title"],
            "description": merged["description"],
            "due_date": merged["due_date"],
            "points": merged["points"],
            "assignment_type": merged["assignment_type"],
            "id": assignment_id,
        },
    )
    db.session.commit()

    logger.info(f"Assignment {assignment_id} updated by {actor.role} {actor.id}")
    return jsonify({"assignment": load_assignment(assignment_id)})


# API: DELETE "/api/assignments/<id>"
# Used by: assignment page (course owner/admin)
# Purpose: Remove an assignment with its submissions and grades.
@assignment_bp.route(
    "/api/assignments/<int:assignment_id>", methods=["DELETE"], endpoint="delete_assignment"
)
@login_required
@role_required(policy.INSTRUCTOR, policy.ADMIN)
def delete_assignment(assignment_id):
    actor = current_actor()
    assignment = load_assignment(assignment_id)
    policy.authorize(
        actor,
        policy.DELETE,
        assignment_resource(assignment),
        "Not authorized to delete this assignment",
    )

    execute("DELETE FROM assignments WHERE id = :id", {"id": assignment_id})
    db.session.commit()
    logger.info(f"Assignment {assignment_id} deleted by {actor.role} {actor.id}")
    return jsonify({"message": "Assignment deleted successfully"})
