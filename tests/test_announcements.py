def test_announcements_require_enrollment_for_students(client, api, people, course):
    api.create_announcement(people["instructor"], course["id"], title="First")
    api.create_announcement(people["instructor"], course["id"], title="Second")

    url = f"/api/announcements/course/{course['id']}"
    assert client.get(url, headers=people["student"]["headers"]).status_code == 403

    api.enroll(people["student"], course["id"])
    titles = [a["title"] for a in client.get(url, headers=people["student"]["headers"]).get_json()["announcements"]]
    assert titles == ["Second", "First"]


def test_create_announcement_validation_and_ownership(client, people, course):
    resp = client.post(
        "/api/announcements", json={"courseId": course["id"]}, headers=people["instructor"]["headers"]
    )
    assert resp.status_code == 400
    assert {e["field"] for e in resp.get_json()["errors"]} == {"title", "content"}

    resp = client.post(
        "/api/announcements",
        json={"courseId": course["id"], "title": "Hi", "content": "x"},
        headers=people["other_instructor"]["headers"],
    )
    assert resp.status_code == 403


def test_partial_update_and_delete(client, api, people, course):
    announcement = api.create_announcement(people["instructor"], course["id"], title="Old", content="Body")
    url = f"/api/announcements/{announcement['id']}"

    resp = client.put(url, json={"title": "New"}, headers=people["instructor"]["headers"])
    assert resp.status_code == 200
    updated = resp.get_json()["announcement"]
    assert (updated["title"], updated["content"]) == ("New", "Body")

    assert client.put(url, json={"title": "x"}, headers=people["other_instructor"]["headers"]).status_code == 403
    assert client.delete(url, headers=people["other_instructor"]["headers"]).status_code == 403
    assert client.delete(url, headers=people["admin"]["headers"]).status_code == 200
    assert client.delete(url, headers=people["admin"]["headers"]).status_code == 404


def test_other_instructors_cannot_read_announcements(client, api, people, course):
    api.create_announcement(people["instructor"], course["id"])
    url = f"/api/announcements/course/{course['id']}"
    resp = client.get(url, headers=people["other_instructor"]["headers"])
    assert resp.status_code == 403
    assert "announcements" not in resp.get_json()
