from app.core.exceptions import field_errors
from app.core.security import create_access_token
from app.models.user import User


def auth_headers(user_id):
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def test_missing_or_bad_token_is_unauthorized(client):
    anonymous = client.get("/api/orar")
    assert anonymous.status_code == 401
    assert anonymous.json()["code"] == "UNAUTHORIZED"

    forged = client.get("/api/orar", headers={"Authorization": "Bearer forged"})
    assert forged.status_code == 401

    unknown_user = client.get("/api/orar", headers=auth_headers("no-such-user"))
    assert unknown_user.status_code == 401


def test_errors_share_one_envelope(client, seed):
    headers = auth_headers(seed.user_ids["admin"])
    missing = client.get("/api/orar/unknown", headers=headers)
    assert missing.status_code == 404
    assert set(missing.json()) == {"code", "message", "details"}

    invalid = client.post("/api/orar", json={"day": "DUMINICA"}, headers=headers)
    assert invalid.status_code == 422
    fields = invalid.json()["details"]["fields"]
    assert "day" in fields
    assert "teacher_id" in fields


def test_inactive_user_is_refused(client, db_session, seed):
    db_session.get(User, seed.user_ids["student"]).is_active = False
    db_session.commit()
    response = client.get("/api/orar", headers=auth_headers(seed.user_ids["student"]))
    assert response.status_code == 403


def test_oversized_body_is_refused(client, seed):
    response = client.post(
        "/api/orar",
        content=b"x" * 1_000_001,
        headers={**auth_headers(seed.user_ids["admin"]), "Content-Type": "application/json"},
    )
    assert response.status_code == 413
    assert response.json()["code"] == "PAYLOAD_TOO_LARGE"


def test_request_id_is_echoed(client):
    response = client.get("/api/health", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"
    assert client.get("/api/health").headers["X-Request-ID"]


def test_field_errors_strip_location_prefix():
    errors = [
        {"loc": ("body", "group_ids"), "msg": "Value error, At least one group is required"},
        {"loc": ("body", "start_hour"), "msg": "Field required"},
        {"loc": ("body",), "msg": "Value error, end_hour must be after start_hour"},
    ]
    assert field_errors(errors) == {
        "group_ids": ["At least one group is required"],
        "start_hour": ["Field required"],
        "__root__": ["end_hour must be after start_hour"],
    }


def test_user_administration(client, seed):
    admin = auth_headers(seed.user_ids["admin"])
    created = client.post(
        "/api/users",
        json={"name": "Nou Secretar", "email": "Nou@Uni.ro", "role": "SECRETAR"},
        headers=admin,
    )
    assert created.status_code == 201
    assert created.json()["email"] == "nou@uni.ro"

    duplicate = client.post(
        "/api/users",
        json={"name": "Altul", "email": "nou@uni.ro", "role": "STUDENT"},
        headers=admin,
    )
    assert duplicate.status_code == 409

    deactivated = client.patch(f"/api/users/{created.json()['id']}", json={"is_active": False}, headers=admin)
    assert deactivated.json()["is_active"] is False

    secretaries = client.get("/api/users", params={"role": "SECRETAR"}, headers=admin).json()
    assert len(secretaries) == 3

    me = client.get("/api/users/me", headers=auth_headers(seed.user_ids["student"]))
    assert me.json()["role"] == "STUDENT"
    assert client.get("/api/users", headers=auth_headers(seed.user_ids["student"])).status_code == 403
