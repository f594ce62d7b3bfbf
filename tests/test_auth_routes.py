import pytest
from fastapi.testclient import TestClient

from internship_auth import main as main_module
from internship_auth.config import settings
from internship_auth.core.database import get_db
from internship_auth.main import app
from internship_auth.services.user_service import user_service

PASSWORD = "Secret123"


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    # Not used as a context manager, so the lifespan (db init, sweeper) does not run.
    yield TestClient(app)
    app.dependency_overrides.clear()


def _login(client, email="student@example.com", password=PASSWORD):
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_register_login_me(client, outbox):
    resp = client.post(
        "/api/v1/auth/register",
        json={"name": "New Student", "email": "New@Example.com", "password": PASSWORD},
    )
    assert resp.status_code == 201
    assert resp.json()["email"] == "new@example.com"
    assert "password_hash" not in resp.json()
    assert outbox[-1]["to"] == "new@example.com"

    tokens = _login(client, "new@example.com")
    assert tokens["token_type"] == "bearer"
    assert tokens["user"]["role"] == "student"

    me = client.get("/api/v1/auth/me", headers=_bearer(tokens["access_token"]))
    assert me.status_code == 200
    assert me.json()["email"] == "new@example.com"
    assert me.headers["Cache-Control"] == "no-store"


def test_register_cannot_pick_privileged_role(client):
    resp = client.post(
        "/api/v1/auth/register",
        json={"name": "Mallory", "email": "m@example.com", "password": PASSWORD, "role": "admin"},
    )
    assert resp.status_code == 403


def test_duplicate_registration_conflicts(client, make_user):
    make_user()
    resp = client.post(
        "/api/v1/auth/register",
        json={"name": "Again", "email": "student@example.com", "password": PASSWORD},
    )
    assert resp.status_code == 409


def test_validation_errors_are_listed(client):
    resp = client.post("/api/v1/auth/register", json={"name": "X", "email": "nope", "password": "short"})
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    fields = {error["field"] for error in body["details"]["errors"]}
    assert "body.email" in fields


def test_bad_login_is_generic_401(client, make_user):
    make_user()
    wrong = client.post("/api/v1/auth/login", json={"email": "student@example.com", "password": "WrongPass1"})
    unknown = client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json()["error"] == unknown.json()["error"] == "Invalid credentials"


def test_missing_bearer_token_is_401(client):
    resp = client.get("/api/v1/auth/me")
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"].startswith("Bearer")
    assert client.get("/api/v1/auth/me", headers=_bearer("garbage")).status_code == 401


def test_refresh_rotation_and_replay_over_http(client, make_user):
    make_user()
    first = _login(client)

    rotated = client.post("/api/v1/auth/refresh", json={"refresh_token": first["refresh_token"]})
    assert rotated.status_code == 200
    second = rotated.json()
    assert second["refresh_token"] != first["refresh_token"]

    replay = client.post("/api/v1/auth/refresh", json={"refresh_token": first["refresh_token"]})
    assert replay.status_code == 401
    assert replay.json()["error"] == "Token reuse detected"

    after = client.post("/api/v1/auth/refresh", json={"refresh_token": second["refresh_token"]})
    assert after.status_code == 401
    assert client.get("/api/v1/auth/me", headers=_bearer(second["access_token"])).status_code == 401


def test_logout_kills_access_token(client, make_user):
    make_user()
    tokens = _login(client)
    headers = _bearer(tokens["access_token"])

    assert client.post("/api/v1/auth/logout", headers=headers).status_code == 200
    assert client.get("/api/v1/auth/me", headers=headers).status_code == 401


def test_sessions_list_marks_current(client, make_user):
    make_user()
    _login(client)
    tokens = _login(client)

    resp = client.get("/api/v1/auth/sessions", headers=_bearer(tokens["access_token"]))
    assert resp.status_code == 200
    sessions = resp.json()
    assert len(sessions) == 2
    assert [s["current"] for s in sessions].count(True) == 1


def test_logout_all_reports_count(client, make_user):
    make_user()
    _login(client)
    tokens = _login(client)

    resp = client.post("/api/v1/auth/logout-all", headers=_bearer(tokens["access_token"]))
    assert resp.status_code == 200
    assert resp.json()["data"] == {"revoked_sessions": 2}


def test_forgot_password_response_does_not_reveal_account(client, make_user, outbox):
    make_user()
    known = client.post("/api/v1/auth/forgot-password", json={"email": "student@example.com"})
    unknown = client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert len(outbox) == 1


def test_forgot_password_is_rate_limited(client, make_user):
    make_user()
    for _ in range(3):
        assert client.post("/api/v1/auth/forgot-password", json={"email": "student@example.com"}).status_code == 200
    limited = client.post("/api/v1/auth/forgot-password", json={"email": "student@example.com"})
    assert limited.status_code == 429


def test_reset_password_over_http(client, make_user, last_reset_token):
    make_user()
    client.post("/api/v1/auth/forgot-password", json={"email": "student@example.com"})
    token = last_reset_token()

    resp = client.post("/api/v1/auth/reset-password", json={"token": token, "new_password": "Fresh4567"})
    assert resp.status_code == 200
    again = client.post("/api/v1/auth/reset-password", json={"token": token, "new_password": "Fresh4567"})
    assert again.status_code == 400
    _login(client, password="Fresh4567")


def test_change_password_over_http(client, make_user):
    make_user()
    other = _login(client)
    current = _login(client)

    resp = client.put(
        "/api/v1/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "Fresh4567"},
        headers=_bearer(current["access_token"]),
    )
    assert resp.status_code == 200
    assert resp.json()["data"] == {"revoked_sessions": 1}
    assert client.get("/api/v1/auth/me", headers=_bearer(current["access_token"])).status_code == 200
    assert client.get("/api/v1/auth/me", headers=_bearer(other["access_token"])).status_code == 401


def test_admin_can_deactivate_user(client, make_user):
    student = make_user()
    make_user(email="admin@example.com", name="Admin", role="admin")
    student_tokens = _login(client)
    admin_tokens = _login(client, "admin@example.com")

    resp = client.patch(
        f"/api/v1/users/{student.id}/status",
        json={"status": "inactive"},
        headers=_bearer(admin_tokens["access_token"]),
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "inactive"
    assert client.get("/api/v1/auth/me", headers=_bearer(student_tokens["access_token"])).status_code == 401

    audit = client.get(f"/api/v1/users/{student.id}/audit", headers=_bearer(admin_tokens["access_token"]))
    assert audit.status_code == 200
    events = audit.json()
    assert any(event["action"] == "login" for event in events)
    deactivated = [event for event in events if event["action"] == "account_deactivated"]
    assert len(deactivated) == 1
    assert deactivated[0]["actor_id"] not in (None, student.id)
    assert deactivated[0]["metadata"] == {"revoked_sessions": 1}


def test_admin_cannot_deactivate_self(client, make_user):
    admin = make_user(email="admin@example.com", name="Admin", role="admin")
    tokens = _login(client, "admin@example.com")
    resp = client.patch(
        f"/api/v1/users/{admin.id}/status",
        json={"status": "inactive"},
        headers=_bearer(tokens["access_token"]),
    )
    assert resp.status_code == 422


def test_user_admin_routes_need_admin_role(client, make_user):
    make_user()
    tokens = _login(client)
    resp = client.get("/api/v1/users/", headers=_bearer(tokens["access_token"]))
    assert resp.status_code == 403


def test_admin_lists_users_with_filter(client, make_user):
    make_user()
    make_user(email="admin@example.com", name="Admin", role="admin")
    tokens = _login(client, "admin@example.com")

    resp = client.get("/api/v1/users/", params={"role": "student"}, headers=_bearer(tokens["access_token"]))
    assert resp.status_code == 200
    assert [u["email"] for u in resp.json()] == ["student@example.com"]


def test_lifespan_bootstraps_admin_and_reports_health(session_factory, monkeypatch):
    monkeypatch.setattr(main_module, "SessionLocal", session_factory)

    with TestClient(app) as client:
        resp = client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["readiness"]["session_sweeper"]["running"] is False

    db = session_factory()
    try:
        admin = user_service.get_user_by_email(db, settings.ADMIN_EMAIL)
        assert admin is not None
        assert admin.role == "admin"
    finally:
        db.close()
