"""Lookups over the academic calendar hierarchy and its reference data.

Every node (academic year, learning type, study year, group, discipline,
teacher, classroom) can be resolved by id; the calendar nodes can also be
resolved by their natural key. Deletes are guarded by a dependency count
taken at delete time.
"""
from __future__ import annotations

import re

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError
from app.models.calendar import AcademicYear, Group, LearningType, StudyYear
from app.models.classroom import Classroom
from app.models.discipline import Discipline
from app.models.event import Event, EventGroup
from app.models.teacher import Teacher
from app.models.user import User

ACADEMIC_YEAR_LABEL = re.compile(r"^\s*(\d{4})\s*[-/]\s*(\d{4})\s*$")

NODE_MODELS = {
    "academic_year": AcademicYear,
    "learning_type": LearningType,
    "study_year": StudyYear,
    "group": Group,
    "discipline": Discipline,
    "teacher": Teacher,
    "classroom": Classroom,
}

NODE_LABELS = {
    "academic_year": "Academic year",
    "learning_type": "Learning type",
    "study_year": "Study year",
    "group": "Group",
    "discipline": "Discipline",
    "teacher": "Teacher",
    "classroom": "Classroom",
}

# node -> ordered (dependent name, referencing column)
DEPENDENCIES = {
    "academic_year": [("events", Event.academic_year_id)],
    "learning_type": [
        ("study_years", StudyYear.learning_type_id),
        ("disciplines", Discipline.learning_type_id),
        ("groups", Group.learning_type_id),
        ("events", Event.learning_id),
    ],
    "study_year": [
        ("groups", Group.study_year_id),
        ("disciplines", Discipline.study_year_id),
    ],
    "group": [("events", EventGroup.group_id)],
    "discipline": [("events", Event.discipline_id)],
    "teacher": [
        ("disciplines", Discipline.teacher_id),
        ("events", Event.teacher_id),
    ],
    "classroom": [("events", Event.classroom_id)],
}


def get_node(db: Session, kind: str, node_id: str):
    return db.get(NODE_MODELS[kind], node_id)


def get_node_or_404(db: Session, kind: str, node_id: str):
    node = get_node(db, kind, node_id)
    if node is None:
        raise NotFoundError(NODE_LABELS[kind], node_id)
    return node


def parse_academic_year_label(label: str) -> tuple[int, int] | None:
    match = ACADEMIC_YEAR_LABEL.match(label or "")
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def find_academic_year(db: Session, start: int, end: int) -> AcademicYear | None:
    return db.execute(
        select(AcademicYear).where(AcademicYear.start == start, AcademicYear.end == end)
    ).scalar_one_or_none()


def find_academic_year_by_label(db: Session, label: str) -> AcademicYear | None:
    parsed = parse_academic_year_label(label)
    if parsed is None:
        return None
    return find_academic_year(db, *parsed)


def find_learning_type_by_name(db: Session, name: str) -> LearningType | None:
    normalized = (name or "").strip().lower()
    if not normalized:
        return None
    return db.execute(
        select(LearningType).where(func.lower(LearningType.learning_cycle) == normalized)
    ).scalars().first()


def find_study_year(db: Session, learning_type_id: str, year: int) -> StudyYear | None:
    return db.execute(
        select(StudyYear).where(StudyYear.learning_type_id == learning_type_id, StudyYear.year == year)
    ).scalar_one_or_none()


def find_group_by_name(
    db: Session,
    study_year_id: str,
    name: str,
    *,
    exclude_id: str | None = None,
) -> Group | None:
    query = select(Group).where(Group.study_year_id == study_year_id, Group.name == name.strip())
    if exclude_id is not None:
        query = query.where(Group.id != exclude_id)
    return db.execute(query).scalars().first()


def resolve_teacher_for_user(db: Session, user: User) -> Teacher | None:
    """Return the teacher profile linked to ``user`` by id or email; first match wins."""
    conditions = [Teacher.user_id == user.id]
    if user.email:
        conditions.append(func.lower(Teacher.email) == user.email.strip().lower())
    return db.execute(
        select(Teacher).where(or_(*conditions)).order_by(Teacher.created_at.asc(), Teacher.id.asc())
    ).scalars().first()


def count_references(db: Session, column, node_id: str) -> int:
    return int(db.execute(select(func.count()).select_from(column.class_).where(column == node_id)).scalar_one())


def dependency_counts(db: Session, kind: str, node_id: str) -> dict[str, int]:
    return {name: count_references(db, column, node_id) for name, column in DEPENDENCIES[kind]}


def ensure_deletable(db: Session, kind: str, node_id: str) -> dict[str, int]:
    counts = dependency_counts(db, kind, node_id)
    blocking = {name: count for name, count in counts.items() if count}
    if blocking:
        summary = ", ".join(f"{count} {name.replace('_', ' ')}" for name, count in blocking.items())
        raise ConflictError(
            f"Cannot delete {NODE_LABELS[kind].lower()}: it is still referenced by {summary}.",
            details={"dependencies": counts},
        )
    return counts


def count_by(db: Session, column, ids: list[str]) -> dict[str, int]:
    """Count rows per value of ``column`` restricted to ``ids``."""
    if not ids:
        return {}
    rows = db.execute(select(column, func.count()).where(column.in_(ids)).group_by(column)).all()
    return {key: int(total) for key, total in rows}
