import importlib.util
import os

SCRIPT = os.path.join(os.path.dirname(__file__), "..", "scripts", "init_database.py")


def _load_script():
    spec = importlib.util.spec_from_file_location("init_database", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_seeding_default_accounts_is_idempotent(app, client):
    init_database = _load_script()
    with app.app_context():
        assert init_database.seed_default_accounts() == [
            "admin@lms.com",
            "instructor@lms.com",
            "student@lms.com",
        ]
        assert init_database.seed_default_accounts() == []

    resp = client.post("/api/auth/login", json={"email": "admin@lms.com", "password": "admin123"})
    assert resp.status_code == 200
    assert resp.get_json()["user"]["role"] == "admin"
