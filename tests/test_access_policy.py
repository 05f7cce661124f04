import pytest

from utils import access_policy as policy
from utils.access_policy import Actor, Resource
from utils.errors import AuthorizationError

ADMIN = Actor(id=1, role=policy.ADMIN)
OWNER = Actor(id=2, role=policy.INSTRUCTOR)
OTHER = Actor(id=3, role=policy.INSTRUCTOR)
STUDENT = Actor(id=4, role=policy.STUDENT)


@pytest.mark.parametrize(
    "kind",
    [policy.COURSE, policy.ASSIGNMENT, policy.ANNOUNCEMENT, policy.GRADE, policy.SUBMISSION],
)
@pytest.mark.parametrize("action", [policy.UPDATE, policy.DELETE, policy.REVIEW])
def test_admin_always_allowed_even_without_owner(kind, action):
    assert policy.is_allowed(ADMIN, action, Resource(kind=kind))


def test_instructor_manages_only_owned_course_content():
    owned = Resource(kind=policy.ASSIGNMENT, course_instructor_id=OWNER.id)
    assert policy.is_allowed(OWNER, policy.UPDATE, owned)
    assert not policy.is_allowed(OTHER, policy.UPDATE, owned)
    assert policy.is_allowed(OWNER, policy.GRADE_WORK, Resource(kind=policy.SUBMISSION, course_instructor_id=OWNER.id))


def test_orphaned_course_belongs_to_no_instructor():
    orphan = Resource(kind=policy.COURSE, course_instructor_id=None)
    assert not policy.is_allowed(OWNER, policy.DELETE, orphan)
    assert policy.is_allowed(ADMIN, policy.DELETE, orphan)


def test_instructor_reads_any_course_but_only_owned_content():
    assert policy.is_allowed(OTHER, policy.READ, Resource(kind=policy.COURSE, course_instructor_id=OWNER.id))
    for kind in (policy.ASSIGNMENT, policy.ANNOUNCEMENT):
        foreign = Resource(kind=kind, course_instructor_id=OWNER.id)
        assert not policy.is_allowed(OTHER, policy.READ, foreign)
        assert policy.is_allowed(OWNER, policy.READ, foreign)
    assert not policy.is_allowed(
        OTHER, policy.REVIEW, Resource(kind=policy.GRADE, course_instructor_id=OWNER.id)
    )


def test_student_needs_enrollment_for_course_content():
    assert not policy.is_allowed(STUDENT, policy.READ, Resource(kind=policy.ASSIGNMENT))
    assert policy.is_allowed(
        STUDENT, policy.READ, Resource(kind=policy.ASSIGNMENT, enrolled=True)
    )
    assert policy.is_allowed(
        STUDENT, policy.SUBMIT, Resource(kind=policy.ASSIGNMENT, enrolled=True)
    )
    assert not policy.is_allowed(
        STUDENT, policy.UPDATE, Resource(kind=policy.ASSIGNMENT, enrolled=True)
    )


def test_student_rows_must_be_their_own():
    mine = Resource(kind=policy.SUBMISSION, owner_id=STUDENT.id)
    theirs = Resource(kind=policy.SUBMISSION, owner_id=99)
    assert policy.is_allowed(STUDENT, policy.READ, mine)
    assert not policy.is_allowed(STUDENT, policy.READ, theirs)
    assert not policy.is_allowed(STUDENT, policy.GRADE_WORK, mine)


def test_user_profiles_are_private():
    assert policy.is_allowed(STUDENT, policy.READ, Resource(kind=policy.USER, owner_id=STUDENT.id))
    assert not policy.is_allowed(OWNER, policy.READ, Resource(kind=policy.USER, owner_id=STUDENT.id))
    assert policy.is_allowed(ADMIN, policy.READ, Resource(kind=policy.USER, owner_id=STUDENT.id))


def test_unknown_role_and_missing_actor_are_denied():
    assert not policy.is_allowed(None, policy.READ, Resource(kind=policy.COURSE))
    assert not policy.is_allowed(Actor(id=5, role="guest"), policy.READ, Resource(kind=policy.COURSE))


def test_authorize_raises_with_message():
    with pytest.raises(AuthorizationError) as excinfo:
        policy.authorize(OTHER, policy.DELETE, Resource(kind=policy.COURSE, course_instructor_id=OWNER.id), "nope")
    assert excinfo.value.status_code == 403
    assert excinfo.value.message == "nope"


def test_student_grade_list_requires_enrollment():
    mine = Resource(kind=policy.GRADE, owner_id=STUDENT.id)
    assert not policy.is_allowed(STUDENT, policy.READ, mine)
    assert policy.is_allowed(
        STUDENT, policy.READ, Resource(kind=policy.GRADE, owner_id=STUDENT.id, enrolled=True)
    )
