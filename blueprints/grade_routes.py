import logging

from flask import Blueprint, jsonify
from sqlalchemy.exc import IntegrityError

from models import db
from blueprints.course_routes import course_resource, is_enrolled, load_course
from utils import access_policy as policy
from utils.auth_utils import current_actor, login_required, role_required
from utils.db_conn import execute, fetch_all, fetch_one
from utils.errors import NotFoundError, ValidationError
from utils.validation import (
    json_object,
    optional_string,
    raise_if_errors,
    require_int,
    require_number,
)

logger = logging.getLogger(__name__)

grade_bp = Blueprint("grades", __name__)


def _write_grade(submission: dict, points_earned: float, feedback, graded_by: int):
    params = {
        "submission_id": submission["id"],
        "assignment_id": submission["assignment_id"],
        "student_id": submission["student_id"],
        "points_earned": points_earned,
        "feedback": feedback or None,
        "graded_by": graded_by,
    }
    update_sql = """UPDATE grades
        SET points_earned = :points_earned, feedback = :feedback,
            graded_by = :graded_by, graded_at = CURRENT_TIMESTAMP
        WHERE submission_id = :submission_id"""

    existing = fetch_one(
        "SELECT id FROM grades WHERE submission_id = :submission_id",
        {"submission_id": submission["id"]},
    )
    if existing:
        execute(update_sql, params)
        db.session.commit()
        return

    try:
        execute(
            """INSERT INTO grades
            (submission_id, assignment_id, student_id, points_earned, feedback, graded_by)
            VALUES (:submission_id, :assignment_id, :student_id, :points_earned, :feedback, :graded_by)""",
            params,
        )
        db.session.commit()
    except IntegrityError:
        # Another grader inserted first; the unique submission_id makes this an update
        db.session.rollback()
        execute(update_sql, params)
        db.session.commit()


# API: GET "/api/grades/course/<course_id>"
# Used by: gradebook (instructor/admin) and "my grades" (student)
# Purpose: Students get their own grades in the course; the owning
#          instructor/admin gets every student's grades.
@grade_bp.route("/api/grades/course/<int:course_id>", methods=["GET"], endpoint="list_grades")
@login_required
def list_grades(course_id):
    actor = current_actor()
    course = load_course(course_id)

    if actor.role == policy.STUDENT:
        # Scoped to the caller's own rows by the query itself
        policy.authorize(
            actor,
            policy.READ,
            policy.Resource(
                kind=policy.GRADE,
                owner_id=actor.id,
                enrolled=is_enrolled(actor.id, course_id),
            ),
            "Not enrolled in this course",
        )
        grades = fetch_all(
            """
            SELECT g.*, a.title AS assignment_title, a.points AS max_points,
                   s.submitted_at, s.content, s.file_path
            FROM grades g
            JOIN submissions s ON g.submission_id = s.id
            JOIN assignments a ON g.assignment_id = a.id
            WHERE g.student_id = :student_id AND a.course_id = :course_id
            ORDER BY a.due_date DESC, a.id DESC
            """,
            {"student_id": actor.id, "course_id": course_id},
        )
        return jsonify({"grades": grades})

    policy.authorize(
        actor,
        policy.REVIEW,
        course_resource(course, kind=policy.GRADE),
        "Not authorized to view grades for this course",
    )
    grades = fetch_all(
        """
        SELECT g.*, a.title AS assignment_title, a.points AS max_points,
               u.first_name, u.last_name, u.email, s.submitted_at
        FROM grades g
        JOIN submissions s ON g.submission_id = s.id
        JOIN assignments a ON g.assignment_id = a.id
        JOIN users u ON g.student_id = u.id
        WHERE a.course_id = :course_id
        ORDER BY a.due_date DESC, a.id DESC, u.last_name ASC
        """,
        {"course_id": course_id},
    )
    return jsonify({"grades": grades})


# API: POST "/api/grades"
# Used by: grading view (course owner/admin)
# Purpose: Grade a submission (create or replace its single grade). The
#          grader's authority comes from submission -> assignment -> course.
@grade_bp.route("/api/grades", methods=["POST"], endpoint="grade_submission")
@login_required
@role_required(policy.INSTRUCTOR, policy.ADMIN)
def grade_submission():
    actor = current_actor()
    data = json_object()
    errors = []
    submission_id = require_int(data, "submissionId", errors)
    points_earned = require_number(data, "pointsEarned", errors, minimum=0)
    feedback = optional_string(data, "feedback", errors)
    raise_if_errors(errors)

    submission = fetch_one(
        """
        SELECT s.id, s.assignment_id, s.student_id,
               a.course_id, a.points AS max_points, c.instructor_id
        FROM submissions s
        JOIN assignments a ON s.assignment_id = a.id
        JOIN courses c ON a.course_id = c.id
        WHERE s.id = :id
        """,
        {"id": submission_id},
    )
    if not submission:
        raise NotFoundError("Submission not found")

    policy.authorize(
        actor,
        policy.GRADE_WORK,
        course_resource(
            {"id": submission["course_id"], "instructor_id": submission["instructor_id"]},
            kind=policy.SUBMISSION,
        ),
        "Not authorized to grade this submission",
    )

    if points_earned > submission["max_points"]:
        logger.warning(
            f"Grade rejected for submission {submission_id}: "
            f"{points_earned} > {submission['max_points']}"
        )
        raise ValidationError(
            [
                {
                    "field": "pointsEarned",
                    "message": f"Points cannot exceed maximum points ({submission['max_points']})",
                }
            ],
            message="Points cannot exceed maximum points",
        )

    _write_grade(submission, points_earned, feedback, actor.id)

    grade = fetch_one(
        "SELECT * FROM grades WHERE submission_id = :submission_id",
        {"submission_id": submission_id},
    )
    logger.info(
        f"Submission {submission_id} graded {points_earned}/{submission['max_points']} by {actor.id}"
    )
    return jsonify({"grade": grade}), 201
