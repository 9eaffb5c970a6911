from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.db.base import Base
from app.main import app
from app.models.calendar import AcademicYear, Group, LearningType, StudyYear
from app.models.classroom import Classroom
from app.models.discipline import Discipline
from app.models.teacher import Teacher
from app.models.user import User, UserRole


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def seed(db_session):
    """A small calendar: one year, one cycle, two groups, two teachers and every role."""
    users = {
        "admin": User(name="Ana Admin", email="admin@uni.ro", role=UserRole.ADMIN),
        "secretar": User(name="Sorina Secretar", email="secretar@uni.ro", role=UserRole.SECRETAR),
        "secretar2": User(name="Silviu Secretar", email="secretar2@uni.ro", role=UserRole.SECRETAR),
        "profesor": User(name="Paul Profesor", email="paul@uni.ro", role=UserRole.PROFESOR),
        "profesor2": User(name="Petra Profesor", email="petra@uni.ro", role=UserRole.PROFESOR),
        "student": User(name="Stefan Student", email="stefan@uni.ro", role=UserRole.STUDENT),
    }
    db_session.add_all(users.values())
    db_session.flush()

    year = AcademicYear(start=2024, end=2025)
    cycle = LearningType(learning_cycle="Licenta")
    db_session.add_all([year, cycle])
    db_session.flush()

    study_year = StudyYear(year=1, learning_type_id=cycle.id)
    db_session.add(study_year)
    db_session.flush()

    group_a = Group(name="1A", group=1, semester=1, study_year_id=study_year.id, learning_type_id=cycle.id)
    group_b = Group(name="1B", group=2, semester=1, study_year_id=study_year.id, learning_type_id=cycle.id)
    teacher = Teacher(
        firstname="Paul",
        lastname="Popescu",
        grade="Conf. dr.",
        email="paul@uni.ro",
        user_id=users["profesor"].id,
    )
    # linked by email only
    teacher2 = Teacher(firstname="Petra", lastname="Ionescu", grade="Lect. dr.", email="petra@uni.ro")
    classroom = Classroom(name="C101", building="Corp C", capacity=40)
    db_session.add_all([group_a, group_b, teacher, teacher2, classroom])
    db_session.flush()

    discipline = Discipline(name="Algoritmi", semester=1, teacher_id=teacher.id, study_year_id=study_year.id)
    discipline2 = Discipline(name="Baze de date", semester=1, teacher_id=teacher2.id, study_year_id=study_year.id)
    db_session.add_all([discipline, discipline2])
    db_session.commit()

    return SimpleNamespace(
        user_ids={key: value.id for key, value in users.items()},
        academic_year_id=year.id,
        learning_id=cycle.id,
        study_year_id=study_year.id,
        group_ids=[group_a.id, group_b.id],
        teacher_id=teacher.id,
        teacher2_id=teacher2.id,
        discipline_id=discipline.id,
        discipline2_id=discipline2.id,
        classroom_id=classroom.id,
    )


@pytest.fixture()
def event_payload(seed):
    def build(**overrides) -> dict:
        payload = {
            "day": "LUNI",
            "start_hour": "10:00",
            "end_hour": "12:00",
            "event_type": "C",
            "event_recurrence": "toate",
            "semester": 1,
            "academic_year_id": seed.academic_year_id,
            "learning_id": seed.learning_id,
            "teacher_id": seed.teacher_id,
            "discipline_id": seed.discipline_id,
            "classroom_id": seed.classroom_id,
            "group_ids": [seed.group_ids[0]],
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture()
def make_event(db_session, seed):
    from app.models.event import Event, EventGroup, EventStatus, EventType, WeekDay

    def create(
        *,
        status: EventStatus = EventStatus.DRAFT,
        teacher_id: str | None = None,
        discipline_id: str | None = None,
        day: WeekDay = WeekDay.LUNI,
        start_hour: str = "10:00",
        end_hour: str = "12:00",
        group_ids: list[str] | None = None,
    ) -> str:
        event = Event(
            day=day,
            start_hour=start_hour,
            end_hour=end_hour,
            event_type=EventType.C,
            semester=1,
            status=status,
            academic_year_id=seed.academic_year_id,
            learning_id=seed.learning_id,
            teacher_id=teacher_id or seed.teacher_id,
            discipline_id=discipline_id or seed.discipline_id,
            classroom_id=seed.classroom_id,
        )
        db_session.add(event)
        db_session.flush()
        for group_id in group_ids or [seed.group_ids[0]]:
            db_session.add(EventGroup(event_id=event.id, group_id=group_id))
        db_session.commit()
        return event.id

    return create
