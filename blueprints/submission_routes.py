import logging

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import IntegrityError

from models import db
from blueprints.assignment_routes import assignment_resource, load_assignment
from utils import access_policy as policy
from utils.auth_utils import current_actor, login_required, role_required
from utils.db_conn import execute, fetch_all, fetch_one, fetch_raw
from utils.errors import InternalError, NotFoundError
from utils.uploads import discard_upload, save_upload
from utils.validation import json_object, optional_string, raise_if_errors, require_int

logger = logging.getLogger(__name__)

submission_bp = Blueprint("submissions", __name__)


def _find_submission(assignment_id: int, student_id: int):
    return fetch_raw(
        """SELECT id, content, file_path FROM submissions
        WHERE assignment_id = :assignment_id AND student_id = :student_id""",
        {"assignment_id": assignment_id, "student_id": student_id},
    )


def _update_submission(existing: dict, content, file_path):
    # content and file_path fall back to the stored value independently
    execute(
        """UPDATE submissions
        SET content = :content, file_path = :file_path, updated_at = CURRENT_TIMESTAMP
        WHERE id = :id""",
        {
            "content": content if content is not None else existing["content"],
            "file_path": file_path if file_path is not None else existing["file_path"],
            "id": existing["id"],
        },
    )
    db.session.commit()


def upsert_submission(assignment_id: int, student_id: int, content, file_path) -> dict:
    """Insert the (assignment, student) submission or update it in place.

    Returns the stored row before the write (None for a first submission).
    """
    existing = _find_submission(assignment_id, student_id)
    if existing:
        _update_submission(existing, content, file_path)
        return existing

    try:
        execute(
            """INSERT INTO submissions (assignment_id, student_id, content, file_path)
            VALUES (:assignment_id, :student_id, :content, :file_path)""",
            {
                "assignment_id": assignment_id,
                "student_id": student_id,
                "content": content,
                "file_path": file_path,
            },
        )
        db.session.commit()
        return None
    except IntegrityError:
        # Lost an insert race against the same student; apply as an update
        db.session.rollback()
        existing = _find_submission(assignment_id, student_id)
        if existing is None:
            raise
        _update_submission(existing, content, file_path)
        return existing


# API: GET "/api/submissions/assignment/<assignment_id>"
# Used by: grading view (course owner/admin)
# Purpose: Every submission for an assignment with student and grade columns.
@submission_bp.route(
    "/api/submissions/assignment/<int:assignment_id>",
    methods=["GET"],
    endpoint="list_submissions",
)
@login_required
@role_required(policy.INSTRUCTOR, policy.ADMIN)
def list_submissions(assignment_id):
    actor = current_actor()
    assignment = load_assignment(assignment_id)
    policy.authorize(
        actor,
        policy.REVIEW,
        assignment_resource(assignment),
        "Not authorized to view submissions for this assignment",
    )

    submissions = fetch_all(
        """
        SELECT s.*, u.first_name, u.last_name, u.email,
               g.points_earned, g.feedback, g.graded_at
        FROM submissions s
        JOIN users u ON s.student_id = u.id
        LEFT JOIN grades g ON s.id = g.submission_id
        WHERE s.assignment_id = :assignment_id
        ORDER BY s.submitted_at DESC, s.id DESC
        """,
        {"assignment_id": assignment_id},
    )
    return jsonify({"submissions": submissions})


# API: GET "/api/submissions/assignment/<assignment_id>/my-submission"
# Used by: student assignment page
# Purpose: The caller's own submission with its grade, or null.
@submission_bp.route(
    "/api/submissions/assignment/<int:assignment_id>/my-submission",
    methods=["GET"],
    endpoint="my_submission",
)
@login_required
@role_required(policy.STUDENT)
def my_submission(assignment_id):
    actor = current_actor()
    # The query is scoped to the caller, so there is no other owner to check
    submission = fetch_one(
        """
        SELECT s.*, g.points_earned, g.feedback, g.graded_at
        FROM submissions s
        LEFT JOIN grades g ON s.id = g.submission_id
        WHERE s.assignment_id = :assignment_id AND s.student_id = :student_id
        """,
        {"assignment_id": assignment_id, "student_id": actor.id},
    )
    return jsonify({"submission": submission})


# API: GET "/api/submissions/<id>"
# Used by: submission detail (owning student, course owner, admin)
# Purpose: One submission with its grade columns.
@submission_bp.route(
    "/api/submissions/<int:submission_id>", methods=["GET"], endpoint="get_submission"
)
@login_required
def get_submission(submission_id):
    actor = current_actor()
    submission = fetch_one(
        """
        SELECT s.*, a.title AS assignment_title, a.points AS max_points,
               a.course_id, c.instructor_id,
               g.points_earned, g.feedback, g.graded_by, g.graded_at
        FROM submissions s
        JOIN assignments a ON s.assignment_id = a.id
        JOIN courses c ON a.course_id = c.id
        LEFT JOIN grades g ON s.id = g.submission_id
        WHERE s.id = :id
        """,
        {"id": submission_id},
    )
    if not submission:
        raise NotFoundError("Submission not found")

    policy.authorize(
        actor,
        policy.READ,
        policy.Resource(
            kind=policy.SUBMISSION,
            course_instructor_id=submission["instructor_id"],
            owner_id=submission["student_id"],
        ),
        "Not authorized to view this submission",
    )
    return jsonify({"submission": submission})


# API: POST "/api/submissions" (multipart or JSON)
# Used by: student assignment page
# Purpose: Submit or resubmit work. Fields: assignmentId, content?, file?
@submission_bp.route("/api/submissions", methods=["POST"], endpoint="submit_assignment")
@login_required
@role_required(policy.STUDENT)
def submit_assignment():
    actor = current_actor()
    data = request.form if request.files or request.form else json_object()
    errors = []
    assignment_id = require_int(data, "assignmentId", errors)
    content = optional_string(data, "content", errors)
    raise_if_errors(errors)
    if content is not None and not content.strip():
        content = None

    assignment = load_assignment(assignment_id)
    policy.authorize(
        actor,
        policy.SUBMIT,
        assignment_resource(assignment, actor=actor),
        "Not enrolled in this course",
    )

    file_path = save_upload(request.files.get("file"))
    try:
        previous = upsert_submission(assignment_id, actor.id, content, file_path)
    except Exception as e:
        db.session.rollback()
        discard_upload(file_path)
        raise InternalError(f"Failed to store submission: {e}") from e

    if previous and file_path and previous["file_path"] != file_path:
        discard_upload(previous["file_path"])

    submission = fetch_one(
        "SELECT * FROM submissions WHERE assignment_id = :assignment_id AND student_id = :student_id",
        {"assignment_id": assignment_id, "student_id": actor.id},
    )
    action = "resubmitted" if previous else "submitted"
    logger.info(f"Student {actor.id} {action} assignment {assignment_id}")
    return jsonify({"submission": submission}), 201
