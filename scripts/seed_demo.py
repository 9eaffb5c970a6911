"""Seed demo accounts, a small academic calendar and print a bearer token per account.

Run:
  PYTHONPATH=backend python scripts/seed_demo.py
"""

from __future__ import annotations

import os
from typing import Iterable

from sqlalchemy import select

from app.core.security import create_access_token
from app.db.bootstrap import init_db
from app.db.session import SessionLocal
from app.models.calendar import AcademicYear, Group, LearningType, StudyYear
from app.models.classroom import Classroom
from app.models.discipline import Discipline
from app.models.teacher import Teacher
from app.models.user import User, UserRole

DEMO_DOMAIN = os.getenv("DEMO_EMAIL_DOMAIN", "orar.demo")

DEMO_ACCOUNTS = {
    "admin": {"name": "Demo Admin", "role": UserRole.ADMIN},
    "secretar": {"name": "Demo Secretar", "role": UserRole.SECRETAR},
    "profesor": {"name": "Demo Profesor", "role": UserRole.PROFESOR},
    "student": {"name": "Demo Student", "role": UserRole.STUDENT},
}


def _upsert_user(session, *, key: str, name: str, role: UserRole) -> User:
    email = f"{key}@{DEMO_DOMAIN}"
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user is None:
        user = User(name=name, email=email, role=role, is_active=True)
        session.add(user)
    else:
        user.name = name
        user.role = role
        user.is_active = True
    session.flush()
    return user


def _get_or_create(session, model, lookup: dict, **values):
    instance = session.execute(select(model).filter_by(**lookup)).scalars().first()
    if instance is None:
        instance = model(**lookup, **values)
        session.add(instance)
        session.flush()
    return instance


def _seed_calendar(session, professor: User) -> None:
    _get_or_create(session, AcademicYear, {"start": 2024, "end": 2025})
    cycle = _get_or_create(session, LearningType, {"learning_cycle": "Licenta"})
    first_year = _get_or_create(session, StudyYear, {"year": 1, "learning_type_id": cycle.id})
    for number, name in enumerate(("1A", "1B"), start=1):
        _get_or_create(
            session,
            Group,
            {"name": name, "study_year_id": first_year.id},
            group=number,
            semester=1,
            learning_type_id=cycle.id,
        )
    teacher = _get_or_create(
        session,
        Teacher,
        {"email": professor.email},
        firstname="Demo",
        lastname="Profesor",
        grade="Lect. dr.",
        user_id=professor.id,
    )
    _get_or_create(
        session,
        Discipline,
        {"name": "Programare", "teacher_id": teacher.id},
        semester=1,
        study_year_id=first_year.id,
        learning_type_id=cycle.id,
    )
    _get_or_create(session, Classroom, {"name": "C101"}, building="Corp C", capacity=40)


def _print_accounts(items: Iterable[tuple[str, User]]) -> None:
    print("\nDemo accounts ready:")
    for label, user in items:
        print(f"  - {label}: {user.email} | role={user.role.value}")
        print(f"    Authorization: Bearer {create_access_token(user.id)}")


def main() -> None:
    init_db()
    with SessionLocal() as session:
        users = {
            key: _upsert_user(session, key=key, name=item["name"], role=item["role"])
            for key, item in DEMO_ACCOUNTS.items()
        }
        _seed_calendar(session, users["profesor"])
        session.commit()
        for user in users.values():
            session.refresh(user)
        _print_accounts(users.items())


if __name__ == "__main__":
    main()
