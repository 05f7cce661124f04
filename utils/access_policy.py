"""Access-control rules for every LMS resource.

All routes build an ``Actor`` and a ``Resource`` descriptor and call
``authorize(actor, action, resource)``. The decision only looks at the
descriptor; loading the course owner, enrollment flag and row owner is the
caller's job (done fresh for every request, nothing is cached).

Rules:
    admin       -> every action on every resource.
    instructor  -> may read any course and may create courses; everything
                   else (assignments and announcements included) requires
                   ``course_instructor_id == actor.id`` (a course with no
                   instructor is owned by nobody).
    student     -> may read courses; reading assignments/announcements and
                   submitting work require an enrollment; submissions,
                   grades and enrollments must belong to the student;
                   course grades are only listed while enrolled.
    any role    -> may read its own user profile.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from utils.errors import AuthorizationError

logger = logging.getLogger(__name__)

ADMIN = "admin"
INSTRUCTOR = "instructor"
STUDENT = "student"

# Resource kinds
COURSE = "course"
ENROLLMENT = "enrollment"
ASSIGNMENT = "assignment"
SUBMISSION = "submission"
GRADE = "grade"
ANNOUNCEMENT = "announcement"
USER = "user"

# Actions
READ = "read"
CREATE = "create"
UPDATE = "update"
DELETE = "delete"
SUBMIT = "submit"
GRADE_WORK = "grade"
REVIEW = "review"  # list every student's rows within a course

@dataclass(frozen=True)
class Actor:
    id: int
    role: str


@dataclass(frozen=True)
class Resource:
    kind: str
    course_instructor_id: Optional[int] = None
    owner_id: Optional[int] = None
    enrolled: bool = False


def _owns_course(actor: Actor, resource: Resource) -> bool:
    return (
        resource.course_instructor_id is not None
        and resource.course_instructor_id == actor.id
    )


def _instructor_allowed(actor: Actor, action: str, resource: Resource) -> bool:
    if resource.kind == ENROLLMENT or action == SUBMIT:
        return False
    if resource.kind == COURSE and action in (READ, CREATE):
        return True
    return _owns_course(actor, resource)


def _student_allowed(actor: Actor, action: str, resource: Resource) -> bool:
    if resource.kind == COURSE:
        return action == READ
    if resource.kind in (ASSIGNMENT, ANNOUNCEMENT):
        return action in (READ, SUBMIT) and resource.enrolled
    if resource.kind == ENROLLMENT:
        return action in (READ, CREATE, DELETE) and resource.owner_id == actor.id
    if resource.kind == SUBMISSION:
        return action == READ and resource.owner_id == actor.id
    if resource.kind == GRADE:
        return action == READ and resource.owner_id == actor.id and resource.enrolled
    return False


def is_allowed(actor: Optional[Actor], action: str, resource: Resource) -> bool:
    """Pure allow/deny decision; never touches the database."""
    if actor is None:
        return False
    if actor.role == ADMIN:
        return True
    if resource.kind == USER:
        return action == READ and resource.owner_id == actor.id
    if actor.role == INSTRUCTOR:
        return _instructor_allowed(actor, action, resource)
    if actor.role == STUDENT:
        return _student_allowed(actor, action, resource)
    return False


def authorize(actor: Actor, action: str, resource: Resource, message: str = None):
    """Raise AuthorizationError unless ``actor`` may perform ``action``."""
    if is_allowed(actor, action, resource):
        return
    logger.warning(
        f"Access denied: {actor.role} {actor.id} -> {action} {resource.kind}"
    )
    raise AuthorizationError(message or f"Not authorized to {action} this {resource.kind}")
