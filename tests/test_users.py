def test_only_admin_lists_users(client, people):
    resp = client.get("/api/users", headers=people["admin"]["headers"])
    assert resp.status_code == 200
    users = resp.get_json()["users"]
    assert len(users) == 5
    assert all("password_hash" not in u for u in users)

    assert client.get("/api/users", headers=people["instructor"]["headers"]).status_code == 403


def test_profiles_are_visible_to_self_and_admin(client, people):
    student = people["student"]
    url = f"/api/users/{student['id']}"
    assert client.get(url, headers=student["headers"]).get_json()["user"]["email"] == student["email"]
    assert client.get(url, headers=people["admin"]["headers"]).status_code == 200
    assert client.get(url, headers=people["other_student"]["headers"]).status_code == 403
    assert client.get("/api/users/999", headers=people["admin"]["headers"]).status_code == 404


def test_unknown_route_returns_json(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert "error" in resp.get_json()


def test_unexpected_errors_are_redacted_outside_development(app, client, people, monkeypatch):
    import blueprints.user_routes as user_routes

    def boom(*args, **kwargs):
        raise RuntimeError("db exploded")

    monkeypatch.setattr(user_routes, "fetch_all", boom)

    resp = client.get("/api/users", headers=people["admin"]["headers"])
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Something went wrong!"}

    app.config["ENVIRONMENT"] = "development"
    resp = client.get("/api/users", headers=people["admin"]["headers"])
    assert resp.get_json()["message"] == "db exploded"
