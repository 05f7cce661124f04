import os
import sys

import pytest

# Ensure project root is on sys.path so tests can import app.py
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app import create_app  # noqa: E402
from models import db  # noqa: E402
from utils.auth_utils import create_user, issue_token  # noqa: E402

PASSWORD = "secret123"


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "ENVIRONMENT": "testing",
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "SECRET_KEY": "test-secret",
            "UPLOAD_DIR": str(tmp_path / "uploads"),
        }
    )
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _make_user(app, email, role, first_name, last_name):
    with app.app_context():
        user_id = create_user(email, PASSWORD, first_name, last_name, role)
        db.session.commit()
        token = issue_token({"id": user_id, "role": role})
    return {
        "id": user_id,
        "email": email,
        "role": role,
        "token": token,
        "headers": {"Authorization": f"Bearer {token}"},
    }


@pytest.fixture
def people(app):
    return {
        "admin": _make_user(app, "admin@lms.test", "admin", "Ada", "Admin"),
        "instructor": _make_user(app, "ivy@lms.test", "instructor", "Ivy", "Owner"),
        "other_instructor": _make_user(app, "oscar@lms.test", "instructor", "Oscar", "Other"),
        "student": _make_user(app, "sam@lms.test", "student", "Sam", "Student"),
        "other_student": _make_user(app, "tess@lms.test", "student", "Tess", "Peer"),
    }


class Api:
    """Thin helpers over the test client for building fixtures through the API."""

    def __init__(self, client):
        self.client = client

    def create_course(self, user, code="C101", **fields):
        payload = {"code": code, "name": fields.pop("name", f"Course {code}")}
        payload.update(fields)
        resp = self.client.post("/api/courses", json=payload, headers=user["headers"])
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["course"]

    def enroll(self, student, course_id):
        resp = self.client.post(f"/api/courses/{course_id}/enroll", headers=student["headers"])
        assert resp.status_code == 200, resp.get_json()

    def create_assignment(self, user, course_id, title="Homework 1", **fields):
        payload = {"courseId": course_id, "title": title}
        payload.update(fields)
        resp = self.client.post("/api/assignments", json=payload, headers=user["headers"])
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["assignment"]

    def submit(self, student, assignment_id, **fields):
        payload = {"assignmentId": assignment_id}
        payload.update(fields)
        resp = self.client.post("/api/submissions", json=payload, headers=student["headers"])
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["submission"]

    def create_announcement(self, user, course_id, title="Welcome", content="Hello class"):
        resp = self.client.post(
            "/api/announcements",
            json={"courseId": course_id, "title": title, "content": content},
            headers=user["headers"],
        )
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["announcement"]


@pytest.fixture
def api(client):
    return Api(client)


@pytest.fixture
def course(api, people):
    return api.create_course(people["instructor"], code="C101")


@pytest.fixture
def enrolled_course(api, people, course):
    api.enroll(people["student"], course["id"])
    return course


@pytest.fixture
def assignment(api, people, enrolled_course):
    return api.create_assignment(people["instructor"], enrolled_course["id"], points=100)
