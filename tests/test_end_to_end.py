from models import db


def _count(app, table, **where):
    clause = " AND ".join(f"{column} = :{column}" for column in where) or "1 = 1"
    with app.app_context():
        return db.session.execute(
            db.text(f"SELECT COUNT(*) FROM {table} WHERE {clause}"), where
        ).scalar()


def test_course_to_grade_flow(client, api, people):
    instructor, student = people["instructor"], people["student"]

    course = api.create_course(instructor, code="C101")
    api.enroll(student, course["id"])
    assignment = api.create_assignment(instructor, course["id"], points=100)
    submission = api.submit(student, assignment["id"], content="hello")

    rejected = client.post(
        "/api/grades",
        json={"submissionId": submission["id"], "pointsEarned": 150},
        headers=instructor["headers"],
    )
    assert rejected.status_code == 400

    graded = client.post(
        "/api/grades",
        json={"submissionId": submission["id"], "pointsEarned": 90, "feedback": "Nice"},
        headers=instructor["headers"],
    )
    assert graded.status_code == 201

    for user in (student, instructor):
        detail = client.get(f"/api/submissions/{submission['id']}", headers=user["headers"])
        assert detail.status_code == 200
        assert detail.get_json()["submission"]["points_earned"] == 90

    own = client.get(
        f"/api/submissions/assignment/{assignment['id']}/my-submission", headers=student["headers"]
    ).get_json()["submission"]
    assert own["feedback"] == "Nice"


def test_deleting_a_course_cascades_to_everything_below_it(app, client, api, people):
    instructor, student = people["instructor"], people["student"]
    course = api.create_course(instructor, code="C101")
    keep = api.create_course(instructor, code="KEEP")
    api.enroll(student, course["id"])
    api.enroll(student, keep["id"])
    assignment = api.create_assignment(instructor, course["id"])
    api.create_announcement(instructor, course["id"])
    submission = api.submit(student, assignment["id"], content="work")
    client.post(
        "/api/grades",
        json={"submissionId": submission["id"], "pointsEarned": 50},
        headers=instructor["headers"],
    )

    resp = client.delete(f"/api/courses/{course['id']}", headers=instructor["headers"])
    assert resp.status_code == 200

    assert _count(app, "courses", id=course["id"]) == 0
    assert _count(app, "enrollments", course_id=course["id"]) == 0
    assert _count(app, "assignments", course_id=course["id"]) == 0
    assert _count(app, "announcements", course_id=course["id"]) == 0
    assert _count(app, "submissions", assignment_id=assignment["id"]) == 0
    assert _count(app, "grades", submission_id=submission["id"]) == 0
    assert _count(app, "enrollments", course_id=keep["id"]) == 1


def test_deleting_the_instructor_orphans_the_course(app, client, api, people):
    course = api.create_course(people["instructor"], code="C101")
    with app.app_context():
        db.session.execute(
            db.text("DELETE FROM users WHERE id = :id"), {"id": people["instructor"]["id"]}
        )
        db.session.commit()

    detail = client.get(f"/api/courses/{course['id']}", headers=people["admin"]["headers"])
    assert detail.status_code == 200
    assert detail.get_json()["course"]["instructor_id"] is None


def test_unenroll_keeps_submissions_and_grades(app, client, api, people, assignment, enrolled_course):
    submission = api.submit(people["student"], assignment["id"], content="kept")
    client.delete(f"/api/courses/{enrolled_course['id']}/enroll", headers=people["student"]["headers"])
    assert _count(app, "submissions", id=submission["id"]) == 1
