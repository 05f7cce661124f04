import logging

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import IntegrityError

from models import db
from utils import access_policy as policy
from utils.auth_utils import current_actor, login_required, role_required
from utils.db_conn import execute, fetch_all, fetch_one, fetch_raw, insert
from utils.errors import ConflictError, NotFoundError
from utils.validation import (
    json_object,
    merge_updates,
    optional_int,
    optional_string,
    raise_if_errors,
    require_string,
)

logger = logging.getLogger(__name__)

course_bp = Blueprint("courses", __name__)

COURSE_SELECT = """
    SELECT c.*, u.first_name, u.last_name
    FROM courses c
    LEFT JOIN users u ON c.instructor_id = u.id
"""


def load_course(course_id: int) -> dict:
    """Return the course row or raise NotFoundError."""
    course = fetch_one("SELECT * FROM courses WHERE id = :id", {"id": course_id})
    if not course:
        raise NotFoundError("Course not found")
    return course


def is_enrolled(student_id: int, course_id: int) -> bool:
    row = fetch_one(
        "SELECT id FROM enrollments WHERE student_id = :student_id AND course_id = :course_id",
        {"student_id": student_id, "course_id": course_id},
    )
    return row is not None


def course_resource(course: dict, kind: str = policy.COURSE, actor=None):
    """Describe a course-scoped resource for the access policy."""
    enrolled = False
    if actor is not None and actor.role == policy.STUDENT:
        enrolled = is_enrolled(actor.id, course["id"])
    return policy.Resource(
        kind=kind, course_instructor_id=course.get("instructor_id"), enrolled=enrolled
    )


def read_denied_message(actor) -> str:
    if actor.role == policy.STUDENT:
        return "Not enrolled in this course"
    return "Not authorized to view this course"


# API: GET "/api/courses"
# Used by: course catalogue and dashboard
# Purpose: Role-scoped course list. Students get their enrolled courses (or
#          the whole catalogue with ?scope=all) flagged with `enrolled`;
#          instructors/admins get every course with its enrollment count.
@course_bp.route("/api/courses", methods=["GET"], endpoint="list_courses")
@login_required
def list_courses():
    actor = current_actor()
    if actor.role == policy.STUDENT:
        enrolled_flag = """
            EXISTS(SELECT 1 FROM enrollments
                   WHERE course_id = c.id AND student_id = :student_id) AS enrolled
        """
        sql = f"""
            SELECT c.*, u.first_name, u.last_name, {enrolled_flag}
            FROM courses c
            LEFT JOIN users u ON c.instructor_id = u.id
        """
        if request.args.get("scope") != "all":
            sql += " WHERE c.id IN (SELECT course_id FROM enrollments WHERE student_id = :student_id)"
        sql += " ORDER BY c.created_at DESC, c.id DESC"
        courses = fetch_all(sql, {"student_id": actor.id})
        for course in courses:
            course["enrolled"] = bool(course["enrolled"])
    else:
        courses = fetch_all(
            """
            SELECT c.*, u.first_name, u.last_name,
                   (SELECT COUNT(*) FROM enrollments WHERE course_id = c.id) AS enrollment_count
            FROM courses c
            LEFT JOIN users u ON c.instructor_id = u.id
            ORDER BY c.created_at DESC, c.id DESC
            """
        )

    logger.info(f"Retrieved {len(courses)} courses for {actor.role} {actor.id}")
    return jsonify({"courses": courses})


# API: GET "/api/courses/<id>"
# Used by: course detail page
# Purpose: Course with instructor contact; the roster is included for the
#          owning instructor/admin, students see their own `enrolled` flag.
@course_bp.route("/api/courses/<int:course_id>", methods=["GET"], endpoint="get_course")
@login_required
def get_course(course_id):
    actor = current_actor()
    course = fetch_one(
        """
        SELECT c.*, u.first_name, u.last_name, u.email AS instructor_email
        FROM courses c
        LEFT JOIN users u ON c.instructor_id = u.id
        WHERE c.id = :id
        """,
        {"id": course_id},
    )
    if not course:
        raise NotFoundError("Course not found")

    resource = course_resource(course, actor=actor)
    policy.authorize(actor, policy.READ, resource)

    if policy.is_allowed(actor, policy.REVIEW, resource):
        course["enrollments"] = fetch_all(
            """
            SELECT u.id, u.first_name, u.last_name, u.email, e.enrolled_at
            FROM enrollments e
            JOIN users u ON e.student_id = u.id
            WHERE e.course_id = :course_id
            ORDER BY u.last_name, u.first_name
            """,
            {"course_id": course_id},
        )
    if actor.role == policy.STUDENT:
        course["enrolled"] = resource.enrolled
    return jsonify({"course": course})


# API: POST "/api/courses"
# Used by: instructor/admin course creation form
# Purpose: Create a course; instructors become its owner, admin-created
#          courses start without an instructor.
@course_bp.route("/api/courses", methods=["POST"], endpoint="create_course")
@login_required
@role_required(policy.INSTRUCTOR, policy.ADMIN)
def create_course():
    actor = current_actor()
    policy.authorize(actor, policy.CREATE, policy.Resource(kind=policy.COURSE))

    data = json_object()
    errors = []
    code = require_string(data, "code", errors)
    name = require_string(data, "name", errors)
    description = optional_string(data, "description", errors)
    semester = optional_string(data, "semester", errors)
    year = optional_int(data, "year", errors)
    raise_if_errors(errors)

    # Exact, case-sensitive match
    if fetch_one("SELECT id FROM courses WHERE code = :code", {"code": code}):
        raise ConflictError("Course code already exists")

    try:
        course_id = insert(
            """INSERT INTO courses (code, name, description, instructor_id, semester, year)
            VALUES (:code, :name, :description, :instructor_id, :semester, :year)""",
            {
                "code": code,
                "name": name,
                "description": description or None,
                "instructor_id": None if actor.role == policy.ADMIN else actor.id,
                "semester": semester or None,
                "year": year,
            },
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Course code already exists")

    course = fetch_one(COURSE_SELECT + " WHERE c.id = :id", {"id": course_id})
    logger.info(f"Course {code} created by {actor.role} {actor.id}")
    return jsonify({"course": course}), 201


# API: PUT "/api/courses/<id>"
# Used by: course settings form (owner instructor/admin)
# Purpose: Partial update; omitted fields keep their stored value.
@course_bp.route("/api/courses/<int:course_id>", methods=["PUT"], endpoint="update_course")
@login_required
@role_required(policy.INSTRUCTOR, policy.ADMIN)
def update_course(course_id):
    actor = current_actor()
    existing = fetch_raw(
        "SELECT instructor_id, name, description, semester, year FROM courses WHERE id = :id",
        {"id": course_id},
    )
    if not existing:
        raise NotFoundError("Course not found")
    policy.authorize(
        actor,
        policy.UPDATE,
        course_resource(existing),
        "Not authorized to update this course",
    )

    data = json_object()
    errors = []
    updates = {
        "name": optional_string(data, "name", errors),
        "description": optional_string(data, "description", errors),
        "semester": optional_string(data, "semester", errors),
        "year": optional_int(data, "year", errors),
    }
    if updates["name"] is not None and not updates["name"].strip():
        errors.append({"field": "name", "message": "name cannot be empty"})
    raise_if_errors(errors)

    merged = merge_updates(existing, updates)
    execute(
        """UPDATE courses
        SET name = :name, description = :description, semester = :semester,
            year = :year, updated_at = CURRENT_TIMESTAMP
        WHERE id = :id""",
        {
            "name": merged["name"],
            "description": merged["description"],
            "semester": merged["semester"],
            "year": merged["year"],
            "id": course_id,
        },
    )
    db.session.commit()

    course = fetch_one(COURSE_SELECT + " WHERE c.id = :id", {"id": course_id})
    logger.info(f"Course {course_id} updated by {actor.role} {actor.id}")
    return jsonify({"course": course})


# API: DELETE "/api/courses/<id>"
# Used by: course settings page (owner instructor/admin)
# Purpose: Remove a course; enrollments, assignments (with their submissions
#          and grades) and announcements go with it through FK cascades.
@course_bp.route("/api/courses/<int:course_id>", methods=["DELETE"], endpoint="delete_course")
@login_required
@role_required(policy.INSTRUCTOR, policy.ADMIN)
def delete_course(course_id):
    actor = current_actor()
    course = load_course(course_id)
    policy.authorize(
        actor, policy.DELETE, course_resource(course), "Not authorized to delete this course"
    )

    execute("DELETE FROM courses WHERE id = :id", {"id": course_id})
    db.session.commit()
    logger.info(f"Course {course['code']} deleted by {actor.role} {actor.id}")
    return jsonify({"message": "Course deleted successfully"})


# API: POST "/api/courses/<id>/enroll"
# Used by: student course catalogue
# Purpose: Enroll the calling student; a second enroll is rejected.
@course_bp.route("/api/courses/<int:course_id>/enroll", methods=["POST"], endpoint="enroll")
@login_required
@role_required(policy.STUDENT)
def enroll(course_id):
    actor = current_actor()
    load_course(course_id)
    policy.authorize(
        actor, policy.CREATE, policy.Resource(kind=policy.ENROLLMENT, owner_id=actor.id)
    )

    if is_enrolled(actor.id, course_id):
        logger.info(f"Student {actor.id} already enrolled in course {course_id}")
        raise ConflictError("Already enrolled in this course")

    try:
        execute(
            "INSERT INTO enrollments (student_id, course_id) VALUES (:student_id, :course_id)",
            {"student_id": actor.id, "course_id": course_id},
        )
        db.session.commit()
    except IntegrityError:
        # A concurrent request inserted the same pair first
        db.session.rollback()
        raise ConflictError("Already enrolled in this course")

    logger.info(f"Student {actor.id} enrolled in course {course_id}")
    return jsonify({"message": "Enrolled successfully"})


# API: DELETE "/api/courses/<id>/enroll"
# Used by: student course page
# Purpose: Drop the calling student's enrollment; succeeds even when absent.
#          Existing submissions and grades are kept.
@course_bp.route("/api/courses/<int:course_id>/enroll", methods=["DELETE"], endpoint="unenroll")
@login_required
@role_required(policy.STUDENT)
def unenroll(course_id):
    actor = current_actor()
    policy.authorize(
        actor, policy.DELETE, policy.Resource(kind=policy.ENROLLMENT, owner_id=actor.id)
    )
    execute(
        "DELETE FROM enrollments WHERE student_id = :student_id AND course_id = :course_id",
        {"student_id": actor.id, "course_id": course_id},
    )
    db.session.commit()
    logger.info(f"Student {actor.id} unenrolled from course {course_id}")
    return jsonify({"message": "Unenrolled successfully"})
