import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.core.exceptions import ForbiddenError, NotFoundError
from app.core.security import create_access_token
from app.models.event import Event, EventStatus
from app.models.notification import Notification
from app.models.user import User, UserRole
from app.services.notifications import NotificationDispatcher
from app.services.workflow import BULK_SUBMIT_TITLE, bulk_publish_for_teacher


def auth_headers(user_id):
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def _statuses(db_session, teacher_id):
    db_session.expire_all()
    return sorted(
        status.value
        for status in db_session.execute(select(Event.status).where(Event.teacher_id == teacher_id)).scalars()
    )


def test_bulk_publish_submits_drafts_and_notifies_each_secretary(client, db_session, seed, make_event):
    for _ in range(3):
        make_event(status=EventStatus.DRAFT)

    response = client.post("/api/orar/publish-bulk", headers=auth_headers(seed.user_ids["profesor"]))
    assert response.status_code == 200
    body = response.json()
    assert body["published_count"] == 3
    assert body["total_events"] == 3
    assert body["notified_count"] == 2

    assert _statuses(db_session, seed.teacher_id) == ["PENDING_APPROVAL"] * 3
    for key in ("secretar", "secretar2"):
        rows = list(
            db_session.execute(select(Notification).where(Notification.user_id == seed.user_ids[key])).scalars()
        )
        assert len(rows) == 1
        assert rows[0].title == BULK_SUBMIT_TITLE
        assert "Conf. dr. Paul Popescu" in rows[0].message
        assert "3 evenimente" in rows[0].message


def test_already_pending_events_are_counted_but_not_resubmitted(db_session, seed, make_event):
    make_event(status=EventStatus.PENDING_APPROVAL)
    make_event(status=EventStatus.DRAFT)
    make_event(status=EventStatus.APPROVED)
    actor = db_session.get(User, seed.user_ids["profesor"])

    result = bulk_publish_for_teacher(db_session, actor, NotificationDispatcher())

    assert result.published_count == 1
    assert result.total_events == 2
    assert _statuses(db_session, seed.teacher_id) == ["APPROVED", "PENDING_APPROVAL", "PENDING_APPROVAL"]


def test_bulk_publish_leaves_other_teachers_alone(db_session, seed, make_event):
    make_event(status=EventStatus.DRAFT)
    make_event(status=EventStatus.DRAFT, teacher_id=seed.teacher2_id, discipline_id=seed.discipline2_id)

    bulk_publish_for_teacher(db_session, db_session.get(User, seed.user_ids["profesor"]), NotificationDispatcher())

    assert _statuses(db_session, seed.teacher2_id) == ["DRAFT"]


def test_nothing_pending_is_not_found(client, seed, make_event):
    make_event(status=EventStatus.PUBLISHED)
    response = client.post("/api/orar/publish-bulk", headers=auth_headers(seed.user_ids["profesor"]))
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_only_teachers_may_bulk_publish(client, db_session, seed):
    response = client.post("/api/orar/publish-bulk", headers=auth_headers(seed.user_ids["secretar"]))
    assert response.status_code == 403

    with pytest.raises(ForbiddenError):
        bulk_publish_for_teacher(db_session, db_session.get(User, seed.user_ids["admin"]), NotificationDispatcher())


def test_teacher_without_profile_is_forbidden(db_session, seed):
    orphan = User(name="Fara Profil", email="orphan@uni.ro", role=UserRole.PROFESOR)
    db_session.add(orphan)
    db_session.commit()

    with pytest.raises(ForbiddenError):
        bulk_publish_for_teacher(db_session, orphan, NotificationDispatcher())


def test_inactive_secretaries_are_skipped(db_session, seed, make_event):
    db_session.get(User, seed.user_ids["secretar2"]).is_active = False
    db_session.commit()
    make_event(status=EventStatus.DRAFT)

    result = bulk_publish_for_teacher(db_session, db_session.get(User, seed.user_ids["profesor"]), NotificationDispatcher())

    assert result.notified_count == 1
    assert result.recipients == 1


class FailingAfterFirstDispatcher(NotificationDispatcher):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def record(self, db, **kwargs):
        self.calls += 1
        if self.calls > 1:
            raise OperationalError("INSERT INTO notifications", {}, Exception("database is locked"))
        return super().record(db, **kwargs)


def test_notification_failure_keeps_submission(db_session, seed, make_event):
    for _ in range(2):
        make_event(status=EventStatus.DRAFT)

    result = bulk_publish_for_teacher(
        db_session,
        db_session.get(User, seed.user_ids["profesor"]),
        FailingAfterFirstDispatcher(),
    )

    assert result.published_count == 2
    assert result.total_events == 2
    assert result.notified_count == 1
    assert result.recipients == 2
    assert _statuses(db_session, seed.teacher_id) == ["PENDING_APPROVAL", "PENDING_APPROVAL"]
    assert db_session.execute(select(func.count()).select_from(Notification)).scalar_one() == 1
