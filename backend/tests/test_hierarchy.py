from app.core.security import create_access_token
from app.models.event import EventStatus
from app.models.user import User
from app.services.hierarchy import (
    dependency_counts,
    find_academic_year_by_label,
    find_learning_type_by_name,
    parse_academic_year_label,
    resolve_teacher_for_user,
)


def auth_headers(user_id):
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def test_natural_key_lookups(db_session, seed):
    assert parse_academic_year_label("2024-2025") == (2024, 2025)
    assert parse_academic_year_label(" 2024 / 2025 ") == (2024, 2025)
    assert parse_academic_year_label("last year") is None

    assert find_academic_year_by_label(db_session, "2024-2025").id == seed.academic_year_id
    assert find_academic_year_by_label(db_session, "2030-2031") is None
    assert find_learning_type_by_name(db_session, "  LICENTA ").id == seed.learning_id
    assert find_learning_type_by_name(db_session, "") is None


def test_teacher_profile_resolution(db_session, seed):
    assert resolve_teacher_for_user(db_session, db_session.get(User, seed.user_ids["profesor"])).id == seed.teacher_id
    assert resolve_teacher_for_user(db_session, db_session.get(User, seed.user_ids["profesor2"])).id == seed.teacher2_id
    assert resolve_teacher_for_user(db_session, db_session.get(User, seed.user_ids["student"])) is None


def test_academic_year_crud(client, seed):
    headers = auth_headers(seed.user_ids["admin"])

    created = client.post("/api/ani-universitari", json={"start": 2025, "end": 2026}, headers=headers)
    assert created.status_code == 201
    assert created.json()["label"] == "2025-2026"
    assert created.json()["published"] is False

    duplicate = client.post("/api/ani-universitari", json={"start": 2025, "end": 2026}, headers=headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "CONFLICT"

    backwards = client.post("/api/ani-universitari", json={"start": 2026, "end": 2025}, headers=headers)
    assert backwards.status_code == 422

    by_label = client.get("/api/ani-universitari/by-label/2025-2026", headers=headers)
    assert by_label.status_code == 200
    assert by_label.json()["id"] == created.json()["id"]

    published = client.patch(f"/api/ani-universitari/{created.json()['id']}", json={"published": True}, headers=headers)
    assert published.json()["published"] is True

    assert client.delete(f"/api/ani-universitari/{created.json()['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/ani-universitari/{created.json()['id']}", headers=headers).status_code == 404


def test_hierarchy_writes_are_admin_only(client, seed):
    response = client.post(
        "/api/ani-universitari",
        json={"start": 2030, "end": 2031},
        headers=auth_headers(seed.user_ids["secretar"]),
    )
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"

    listing = client.get("/api/ani-universitari", headers=auth_headers(seed.user_ids["student"]))
    assert listing.status_code == 200
    assert [item["label"] for item in listing.json()] == ["2024-2025"]


def test_learning_cycle_names_are_case_insensitive(client, seed):
    headers = auth_headers(seed.user_ids["admin"])
    assert client.post("/api/cicluri", json={"learning_cycle": "LICENTA"}, headers=headers).status_code == 409

    found = client.get("/api/cicluri/by-name/licenta", headers=headers)
    assert found.status_code == 200
    assert found.json()["study_year_count"] == 1
    assert found.json()["group_count"] == 2

    assert client.get("/api/cicluri/by-name/doctorat", headers=headers).status_code == 404


def test_group_names_unique_per_study_year(client, seed):
    headers = auth_headers(seed.user_ids["admin"])
    payload = {"name": "1A", "group": 3, "semester": 1, "study_year_id": seed.study_year_id}
    assert client.post("/api/grupe", json=payload, headers=headers).status_code == 409

    created = client.post("/api/grupe", json={**payload, "name": "1C"}, headers=headers)
    assert created.status_code == 201

    renamed = client.put(f"/api/grupe/{created.json()['id']}", json={**payload, "name": "1B"}, headers=headers)
    assert renamed.status_code == 409

    orphan = client.post("/api/grupe", json={**payload, "name": "9Z", "study_year_id": "missing"}, headers=headers)
    assert orphan.status_code == 422
    assert "study_year_id" in orphan.json()["details"]["fields"]


def test_delete_blocked_while_events_reference_node(client, seed, make_event):
    event_id = make_event(status=EventStatus.PUBLISHED, group_ids=seed.group_ids)
    headers = auth_headers(seed.user_ids["admin"])

    blocked = client.delete(f"/api/sali/{seed.classroom_id}", headers=headers)
    assert blocked.status_code == 409
    assert blocked.json()["details"]["dependencies"] == {"events": 1}

    group_blocked = client.delete(f"/api/grupe/{seed.group_ids[1]}", headers=headers)
    assert group_blocked.status_code == 409

    year_blocked = client.delete(f"/api/ani-universitari/{seed.academic_year_id}", headers=headers)
    assert year_blocked.status_code == 409

    assert client.delete(f"/api/orar/{event_id}", headers=headers).status_code == 200
    assert client.delete(f"/api/sali/{seed.classroom_id}", headers=headers).status_code == 200
    assert client.delete(f"/api/grupe/{seed.group_ids[1]}", headers=headers).status_code == 200


def test_delete_blocked_by_indirect_dependents(client, db_session, seed):
    headers = auth_headers(seed.user_ids["admin"])

    teacher = client.delete(f"/api/cadre/{seed.teacher_id}", headers=headers)
    assert teacher.status_code == 409
    assert teacher.json()["details"]["dependencies"]["disciplines"] == 1

    study_year = client.delete(f"/api/ani-studiu/{seed.study_year_id}", headers=headers)
    assert study_year.status_code == 409
    assert dependency_counts(db_session, "study_year", seed.study_year_id) == {"groups": 2, "disciplines": 2}


def test_listing_counts_events(client, seed, make_event):
    make_event(group_ids=seed.group_ids)
    make_event(group_ids=[seed.group_ids[0]])
    headers = auth_headers(seed.user_ids["secretar"])

    groups = {item["name"]: item["event_count"] for item in client.get("/api/grupe", headers=headers).json()}
    assert groups == {"1A": 2, "1B": 1}

    teachers = {item["id"]: item for item in client.get("/api/cadre", headers=headers).json()}
    assert teachers[seed.teacher_id]["event_count"] == 2
    assert teachers[seed.teacher_id]["discipline_count"] == 1
    assert teachers[seed.teacher_id]["display_name"] == "Conf. dr. Paul Popescu"

    classroom = client.get(f"/api/sali/{seed.classroom_id}", headers=headers).json()
    assert classroom["event_count"] == 2


def test_teacher_profile_endpoints(client, seed):
    me = client.get("/api/cadre/me", headers=auth_headers(seed.user_ids["profesor2"]))
    assert me.status_code == 200
    assert me.json()["id"] == seed.teacher2_id

    admin = auth_headers(seed.user_ids["admin"])
    duplicate = client.post(
        "/api/cadre",
        json={"firstname": "Alt", "lastname": "Nume", "email": "PAUL@uni.ro"},
        headers=admin,
    )
    assert duplicate.status_code == 409

    created = client.post(
        "/api/cadre",
        json={"firstname": "Maria", "lastname": "Stan", "email": "maria@uni.ro", "grade": "Prof. dr."},
        headers=admin,
    )
    assert created.status_code == 201
    assert created.json()["display_name"] == "Prof. dr. Maria Stan"
    assert client.delete(f"/api/cadre/{created.json()['id']}", headers=admin).status_code == 200


def test_discipline_references_are_validated(client, seed):
    headers = auth_headers(seed.user_ids["admin"])
    response = client.post(
        "/api/discipline",
        json={"name": "Retele", "semester": 2, "teacher_id": "ghost", "study_year_id": seed.study_year_id},
        headers=headers,
    )
    assert response.status_code == 422
    assert "teacher_id" in response.json()["details"]["fields"]

    created = client.post(
        "/api/discipline",
        json={"name": "Retele", "semester": 2, "teacher_id": seed.teacher2_id, "study_year_id": seed.study_year_id},
        headers=headers,
    )
    assert created.status_code == 201
    filtered = client.get("/api/discipline", params={"teacher_id": seed.teacher2_id}, headers=headers).json()
    assert sorted(item["name"] for item in filtered) == ["Baze de date", "Retele"]


def test_classroom_names_are_unique(client, seed):
    headers = auth_headers(seed.user_ids["admin"])
    assert client.post("/api/sali", json={"name": "C101"}, headers=headers).status_code == 409

    created = client.post("/api/sali", json={"name": "A2", "capacity": 120}, headers=headers)
    assert created.status_code == 201
    renamed = client.put(f"/api/sali/{created.json()['id']}", json={"name": "C101"}, headers=headers)
    assert renamed.status_code == 409
    resized = client.put(f"/api/sali/{created.json()['id']}", json={"capacity": 80}, headers=headers)
    assert resized.json()["capacity"] == 80
    assert resized.json()["name"] == "A2"
