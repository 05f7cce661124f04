def test_create_assignment_defaults(api, people, course):
    assignment = api.create_assignment(people["instructor"], course["id"], title="Essay")
    assert assignment["points"] == 100
    assert assignment["assignment_type"] == "assignment"
    assert assignment["course_code"] == "C101"
    assert assignment["created_by"] == people["instructor"]["id"]


def test_zero_points_is_kept(api, people, course):
    assignment = api.create_assignment(people["instructor"], course["id"], points=0)
    assert assignment["points"] == 0


def test_create_assignment_validation(client, people, course):
    resp = client.post(
        "/api/assignments",
        json={"courseId": "abc", "title": " ", "dueDate": "next week", "points": -5},
        headers=people["instructor"]["headers"],
    )
    assert resp.status_code == 400
    fields = {e["field"] for e in resp.get_json()["errors"]}
    assert fields == {"courseId", "title", "dueDate", "points"}


def test_create_assignment_requires_ownership(client, people, course):
    payload = {"courseId": course["id"], "title": "Sneaky"}
    resp = client.post("/api/assignments", json=payload, headers=people["other_instructor"]["headers"])
    assert resp.status_code == 403

    resp = client.post(
        "/api/assignments", json={"courseId": 999, "title": "Ghost"}, headers=people["admin"]["headers"]
    )
    assert resp.status_code == 404


def test_student_listing_requires_enrollment_and_flags_submitted(client, api, people, course):
    first = api.create_assignment(people["instructor"], course["id"], title="A1", dueDate="2030-01-01T10:00:00Z")
    api.create_assignment(people["instructor"], course["id"], title="A2", dueDate="2030-02-01T10:00:00Z")

    url = f"/api/assignments/course/{course['id']}"
    denied = client.get(url, headers=people["student"]["headers"])
    assert denied.status_code == 403
    assert denied.get_json()["error"] == "Not enrolled in this course"

    api.enroll(people["student"], course["id"])
    api.submit(people["student"], first["id"], content="done")

    listed = client.get(url, headers=people["student"]["headers"]).get_json()["assignments"]
    assert [(a["title"], a["submitted"]) for a in listed] == [("A1", True), ("A2", False)]


def test_single_assignment_access(client, people, assignment):
    url = f"/api/assignments/{assignment['id']}"
    assert client.get(url, headers=people["student"]["headers"]).status_code == 200
    assert client.get(url, headers=people["other_student"]["headers"]).status_code == 403
    assert client.get(url, headers=people["other_instructor"]["headers"]).status_code == 403
    assert client.get(url, headers=people["instructor"]["headers"]).status_code == 200
    assert client.get("/api/assignments/999", headers=people["admin"]["headers"]).status_code == 404


def test_partial_update_keeps_omitted_fields(client, api, people, course):
    assignment = api.create_assignment(
        people["instructor"],
        course["id"],
        title="Lab",
        description="Do the lab",
        dueDate="2030-03-01T09:00:00",
        points=50,
        assignmentType="lab",
    )
    resp = client.put(
        f"/api/assignments/{assignment['id']}",
        json={"points": 80},
        headers=people["instructor"]["headers"],
    )
    assert resp.status_code == 200
    updated = resp.get_json()["assignment"]
    assert updated["points"] == 80
    assert updated["title"] == "Lab"
    assert updated["description"] == "Do the lab"
    assert updated["assignment_type"] == "lab"
    assert updated["due_date"].startswith("2030-03-01")


def test_update_and_delete_require_ownership(client, people, assignment):
    url = f"/api/assignments/{assignment['id']}"
    other = people["other_instructor"]["headers"]
    assert client.put(url, json={"title": "x"}, headers=other).status_code == 403
    assert client.delete(url, headers=other).status_code == 403

    assert client.delete(url, headers=people["instructor"]["headers"]).status_code == 200
    assert client.get(url, headers=people["instructor"]["headers"]).status_code == 404


def test_other_instructors_cannot_list_course_assignments(client, people, assignment):
    url = f"/api/assignments/course/{assignment['course_id']}"
    resp = client.get(url, headers=people["other_instructor"]["headers"])
    assert resp.status_code == 403
    assert "assignments" not in resp.get_json()
    assert client.get(url, headers=people["instructor"]["headers"]).status_code == 200
