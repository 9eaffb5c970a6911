from itertools import product

import pytest
from sqlalchemy import select

from app.core.exceptions import ForbiddenError, InvalidStateError
from app.core.security import create_access_token
from app.models.event import Event, EventStatus
from app.models.notification import Notification
from app.models.user import User, UserRole
from app.services.notifications import NotificationDispatcher
from app.services.workflow import (
    TRANSITIONS,
    EventAction,
    is_allowed,
    iter_transitions,
    publish_event,
    transition_event,
)

ROLE_USERS = {
    UserRole.ADMIN: "admin",
    UserRole.SECRETAR: "secretar",
    UserRole.PROFESOR: "profesor",
    UserRole.STUDENT: "student",
}


def auth_headers(user_id):
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def test_transition_table_matches_workflow_rules():
    table = {(status, action): rule for status, action, rule in iter_transitions()}
    assert table == TRANSITIONS

    assert is_allowed(EventStatus.DRAFT, EventAction.submit, UserRole.PROFESOR)
    assert not is_allowed(EventStatus.DRAFT, EventAction.publish, UserRole.SECRETAR)
    assert is_allowed(EventStatus.DRAFT, EventAction.publish, UserRole.ADMIN)
    assert is_allowed(EventStatus.REJECTED, EventAction.publish, UserRole.ADMIN)
    assert not is_allowed(EventStatus.PUBLISHED, EventAction.publish, UserRole.ADMIN)
    assert not any(status == EventStatus.PUBLISHED for status, _, _ in iter_transitions())


@pytest.mark.parametrize(
    ("status", "action", "role"),
    list(product(EventStatus, EventAction, UserRole)),
)
def test_every_transition_triple(db_session, seed, make_event, status, action, role):
    event_id = make_event(status=status)
    actor = db_session.get(User, seed.user_ids[ROLE_USERS[role]])
    rule = TRANSITIONS.get((status, action))

    if rule is not None and role in rule.roles:
        event = transition_event(db_session, event_id, action, actor, NotificationDispatcher(), reason="motiv")
        assert event.status == rule.to_status
    else:
        with pytest.raises((ForbiddenError, InvalidStateError)):
            transition_event(db_session, event_id, action, actor, NotificationDispatcher(), reason="motiv")
        db_session.expire_all()
        assert db_session.get(Event, event_id).status == status


def test_secretary_cannot_publish_draft(client, db_session, seed, make_event):
    event_id = make_event(status=EventStatus.DRAFT)

    response = client.post(f"/api/orar/{event_id}/publish", headers=auth_headers(seed.user_ids["secretar"]))
    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_STATUS"
    assert response.json()["details"]["current_status"] == "DRAFT"
    assert db_session.get(Event, event_id).status == EventStatus.DRAFT


def test_admin_publishes_draft_and_backfills_approval(client, seed, make_event):
    event_id = make_event(status=EventStatus.DRAFT)

    response = client.post(f"/api/orar/{event_id}/publish", headers=auth_headers(seed.user_ids["admin"]))
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "PUBLISHED"
    assert body["approved_by_id"] == seed.user_ids["admin"]
    assert body["approved_at"] is not None
    assert body["published_by_id"] == seed.user_ids["admin"]
    assert body["published_at"] is not None


def test_publishing_approved_event_keeps_original_approver(client, seed, make_event):
    event_id = make_event(status=EventStatus.PENDING_APPROVAL)
    approved = client.post(f"/api/orar/{event_id}/approve", headers=auth_headers(seed.user_ids["secretar"]))
    assert approved.status_code == 200
    assert approved.json()["approved_by_id"] == seed.user_ids["secretar"]

    published = client.post(f"/api/orar/{event_id}/publish", headers=auth_headers(seed.user_ids["admin"]))
    assert published.status_code == 200
    assert published.json()["approved_by_id"] == seed.user_ids["secretar"]
    assert published.json()["approved_at"] == approved.json()["approved_at"]
    assert published.json()["published_by_id"] == seed.user_ids["admin"]


def test_second_publish_is_rejected(db_session, seed, make_event):
    event_id = make_event(status=EventStatus.APPROVED)
    actor = db_session.get(User, seed.user_ids["secretar"])

    first = publish_event(db_session, event_id, actor)
    published_at = first.published_at

    with pytest.raises(InvalidStateError) as exc_info:
        publish_event(db_session, event_id, db_session.get(User, seed.user_ids["admin"]))
    assert exc_info.value.code == "ALREADY_PUBLISHED"
    assert exc_info.value.current_status == "PUBLISHED"

    db_session.expire_all()
    event = db_session.get(Event, event_id)
    assert event.published_at == published_at
    assert event.published_by_id == seed.user_ids["secretar"]


def test_second_publish_over_http(client, seed, make_event):
    event_id = make_event(status=EventStatus.APPROVED)
    headers = auth_headers(seed.user_ids["admin"])
    assert client.post(f"/api/orar/{event_id}/publish", headers=headers).status_code == 200

    again = client.post(f"/api/orar/{event_id}/publish", headers=headers)
    assert again.status_code == 409
    assert again.json()["code"] == "ALREADY_PUBLISHED"


def test_rejected_event_can_be_published_by_admin(client, seed, make_event):
    event_id = make_event(status=EventStatus.PENDING_APPROVAL)

    rejected = client.post(
        f"/api/orar/{event_id}/reject",
        json={"rejection_reason": "Sala ocupată"},
        headers=auth_headers(seed.user_ids["secretar"]),
    )
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "REJECTED"
    assert rejected.json()["rejection_reason"] == "Sala ocupată"

    published = client.post(f"/api/orar/{event_id}/publish", headers=auth_headers(seed.user_ids["admin"]))
    assert published.status_code == 200
    assert published.json()["status"] == "PUBLISHED"
    assert published.json()["rejection_reason"] is None


def test_reject_without_reason_uses_default(client, seed, make_event):
    event_id = make_event(status=EventStatus.APPROVED)
    response = client.post(f"/api/orar/{event_id}/reject", headers=auth_headers(seed.user_ids["admin"]))
    assert response.status_code == 200
    assert response.json()["rejection_reason"] == "Fără motiv specificat"


def test_students_cannot_approve(client, seed, make_event):
    event_id = make_event(status=EventStatus.PENDING_APPROVAL)
    response = client.post(f"/api/orar/{event_id}/approve", headers=auth_headers(seed.user_ids["student"]))
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_teacher_submits_only_own_draft(client, seed, make_event):
    own = make_event(status=EventStatus.DRAFT)
    foreign = make_event(status=EventStatus.DRAFT, teacher_id=seed.teacher2_id, discipline_id=seed.discipline2_id)
    headers = auth_headers(seed.user_ids["profesor"])

    submitted = client.post(f"/api/orar/{own}/submit", headers=headers)
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "PENDING_APPROVAL"

    assert client.post(f"/api/orar/{foreign}/submit", headers=headers).status_code == 403


def test_transition_on_missing_event(client, seed):
    response = client.post("/api/orar/does-not-exist/approve", headers=auth_headers(seed.user_ids["admin"]))
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_review_outcome_notifies_event_owner(db_session, seed, make_event):
    event_id = make_event(status=EventStatus.PENDING_APPROVAL)
    reviewer = db_session.get(User, seed.user_ids["secretar"])

    transition_event(db_session, event_id, EventAction.approve, reviewer, NotificationDispatcher())
    transition_event(db_session, event_id, EventAction.reject, reviewer, NotificationDispatcher(), reason="Suprapunere")

    notifications = list(
        db_session.execute(select(Notification).where(Notification.user_id == seed.user_ids["profesor"])).scalars()
    )
    assert sorted(item.title for item in notifications) == ["Eveniment aprobat", "Eveniment respins"]
    assert any("Suprapunere" in item.message for item in notifications)


@pytest.mark.parametrize("stored_email", ["petra@uni.ro", "Petra@Uni.RO"])
def test_owner_linked_by_email_is_notified(db_session, seed, make_event, stored_email):
    db_session.get(User, seed.user_ids["profesor2"]).email = stored_email
    db_session.commit()
    event_id = make_event(
        status=EventStatus.APPROVED,
        teacher_id=seed.teacher2_id,
        discipline_id=seed.discipline2_id,
    )
    publish_event(db_session, event_id, db_session.get(User, seed.user_ids["admin"]), NotificationDispatcher())

    titles = list(
        db_session.execute(
            select(Notification.title).where(Notification.user_id == seed.user_ids["profesor2"])
        ).scalars()
    )
    assert titles == ["Eveniment publicat"]


def test_stale_status_is_not_overwritten(db_session, seed, make_event, session_factory):
    event_id = make_event(status=EventStatus.PENDING_APPROVAL)
    actor = db_session.get(User, seed.user_ids["secretar"])
    assert db_session.get(Event, event_id).status == EventStatus.PENDING_APPROVAL

    other = session_factory()
    try:
        other.get(Event, event_id).status = EventStatus.REJECTED
        other.commit()
    finally:
        other.close()

    # the identity map still says PENDING_APPROVAL; the guarded update must notice
    with pytest.raises(InvalidStateError):
        transition_event(db_session, event_id, EventAction.approve, actor)

    db_session.expire_all()
    assert db_session.get(Event, event_id).status == EventStatus.REJECTED
