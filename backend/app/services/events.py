"""Schedule event aggregate: create, update, delete, move and read projections.

An event always carries at least one group. Group membership lives in
``event_groups`` and is replaced wholesale on update, inside the same
transaction as the scalar fields.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
import math

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.orm import Session

from app.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from app.db.transaction import atomic
from app.models.calendar import AcademicYear, Group, LearningType, StudyYear
from app.models.classroom import Classroom
from app.models.discipline import Discipline
from app.models.event import DAY_ORDER, Event, EventGroup, EventStatus, WeekDay
from app.models.teacher import Teacher
from app.models.user import User, UserRole
from app.schemas.event import EventCreate, EventInput, EventOut, format_hour, hours_between, parse_hour
from app.services.audit import log_activity
from app.services.hierarchy import (
    find_academic_year_by_label,
    find_learning_type_by_name,
    resolve_teacher_for_user,
)

logger = logging.getLogger(__name__)

MAX_END_HOUR = 24

REFERENCE_FIELDS = (
    ("academic_year_id", AcademicYear, "Academic year"),
    ("learning_id", LearningType, "Learning type"),
    ("teacher_id", Teacher, "Teacher"),
    ("discipline_id", Discipline, "Discipline"),
    ("classroom_id", Classroom, "Classroom"),
)


@dataclass
class EventFilters:
    academic_year: str | None = None
    learning_cycle: str | None = None
    semester: int | None = None
    study_year: int | None = None
    teacher_id: str | None = None
    discipline_id: str | None = None
    classroom_id: str | None = None
    day: WeekDay | None = None
    group_id: str | None = None
    status: EventStatus | None = None


def get_event_or_404(db: Session, event_id: str) -> Event:
    event = db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event", event_id)
    return event


def load_group_ids(db: Session, event_ids: list[str]) -> dict[str, list[str]]:
    if not event_ids:
        return {}
    rows = db.execute(
        select(EventGroup.event_id, EventGroup.group_id)
        .where(EventGroup.event_id.in_(event_ids))
        .order_by(EventGroup.event_id, EventGroup.group_id)
    ).all()
    grouped: dict[str, list[str]] = {event_id: [] for event_id in event_ids}
    for event_id, group_id in rows:
        grouped[event_id].append(group_id)
    return grouped


def event_group_ids(db: Session, event_id: str) -> list[str]:
    return load_group_ids(db, [event_id])[event_id]


def to_event_out(event: Event, group_ids: list[str]) -> EventOut:
    return EventOut(
        id=event.id,
        day=event.day,
        start_hour=event.start_hour,
        end_hour=event.end_hour,
        duration=hours_between(event.start_hour, event.end_hour),
        event_type=event.event_type,
        event_recurrence=event.event_recurrence,
        semester=event.semester,
        status=event.status,
        rejection_reason=event.rejection_reason,
        academic_year_id=event.academic_year_id,
        learning_id=event.learning_id,
        teacher_id=event.teacher_id,
        discipline_id=event.discipline_id,
        classroom_id=event.classroom_id,
        group_ids=group_ids,
        approved_by_id=event.approved_by_id,
        approved_at=event.approved_at,
        published_by_id=event.published_by_id,
        published_at=event.published_at,
        created_by_id=event.created_by_id,
        updated_by_id=event.updated_by_id,
        created_at=event.created_at,
        updated_at=event.updated_at,
    )


def serialize_events(db: Session, events: list[Event]) -> list[EventOut]:
    groups = load_group_ids(db, [event.id for event in events])
    return [to_event_out(event, groups.get(event.id, [])) for event in events]


def validate_references(db: Session, payload: EventInput) -> None:
    fields: dict[str, list[str]] = {}
    for field_name, model, label in REFERENCE_FIELDS:
        value = getattr(payload, field_name)
        if db.get(model, value) is None:
            fields.setdefault(field_name, []).append(f"{label} {value} does not exist")

    existing_groups = set(
        db.execute(select(Group.id).where(Group.id.in_(payload.group_ids))).scalars()
    )
    missing = [group_id for group_id in payload.group_ids if group_id not in existing_groups]
    if missing:
        fields.setdefault("group_ids", []).append(f"Unknown group(s): {', '.join(missing)}")

    if fields:
        raise ValidationError(fields=fields)


def _ensure_owner(db: Session, actor: User, teacher_id: str) -> None:
    if actor.role != UserRole.PROFESOR:
        return
    teacher = resolve_teacher_for_user(db, actor)
    if teacher is None or teacher.id != teacher_id:
        raise ForbiddenError("Teachers can only manage their own events")


def _replace_groups(db: Session, event_id: str, group_ids: list[str]) -> None:
    db.execute(delete(EventGroup).where(EventGroup.event_id == event_id))
    db.add_all(EventGroup(event_id=event_id, group_id=group_id) for group_id in group_ids)


def create_event(db: Session, payload: EventCreate, actor: User) -> Event:
    validate_references(db, payload)
    _ensure_owner(db, actor, payload.teacher_id)

    status = EventStatus.DRAFT
    if payload.initial_status == EventStatus.PENDING_APPROVAL:
        if actor.role != UserRole.ADMIN:
            raise ForbiddenError("Only administrators can create events directly in PENDING_APPROVAL")
        status = EventStatus.PENDING_APPROVAL

    data = payload.model_dump(exclude={"group_ids", "initial_status"})
    with atomic(db, action="event.create"):
        event = Event(**data, status=status, created_by_id=actor.id, updated_by_id=actor.id)
        db.add(event)
        db.flush()
        db.add_all(EventGroup(event_id=event.id, group_id=group_id) for group_id in payload.group_ids)
        log_activity(
            db,
            user=actor,
            action="event.created",
            entity_type="event",
            entity_id=event.id,
            details={"status": status.value, "group_ids": payload.group_ids},
        )
    db.refresh(event)
    logger.info("Event %s created by %s with %d group(s)", event.id, actor.id, len(payload.group_ids))
    return event


def update_event(db: Session, event_id: str, payload: EventInput, actor: User) -> Event:
    event = get_event_or_404(db, event_id)
    if event.status == EventStatus.PUBLISHED and actor.role != UserRole.ADMIN:
        raise InvalidStateError(
            "Published events can only be changed by an administrator",
            current_status=event.status.value,
        )
    validate_references(db, payload)
    _ensure_owner(db, actor, event.teacher_id)
    _ensure_owner(db, actor, payload.teacher_id)

    data = payload.model_dump(exclude={"group_ids", "initial_status"})
    current = event.status
    with atomic(db, action="event.update"):
        # the lock above was checked against this status; a concurrent transition voids it
        result = db.execute(
            update(Event)
            .where(Event.id == event.id, Event.status == current)
            .values(**data, updated_by_id=actor.id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError(
                "Event status changed while the request was processed",
                current_status=current.value,
            )
        _replace_groups(db, event.id, payload.group_ids)
        log_activity(
            db,
            user=actor,
            action="event.updated",
            entity_type="event",
            entity_id=event.id,
            details={"group_ids": payload.group_ids},
        )
    db.refresh(event)
    return event


def delete_event(db: Session, event_id: str, actor: User) -> None:
    event = get_event_or_404(db, event_id)
    with atomic(db, action="event.delete"):
        db.execute(delete(EventGroup).where(EventGroup.event_id == event.id))
        log_activity(
            db,
            user=actor,
            action="event.deleted",
            entity_type="event",
            entity_id=event.id,
            details={"status": event.status.value},
        )
        db.delete(event)
    logger.info("Event %s deleted by %s", event_id, actor.id)


def move_event(db: Session, event_id: str, day: WeekDay | str, start_hour: str, actor: User) -> Event:
    """Shift an event to ``day``/``start_hour`` keeping its duration; status is untouched."""
    if not day or not start_hour or not str(start_hour).strip():
        raise ValidationError("Missing required fields", fields={"day": ["Day and start hour are required"]})
    event = get_event_or_404(db, event_id)
    _ensure_owner(db, actor, event.teacher_id)

    try:
        new_day = WeekDay(day)
    except ValueError as exc:
        raise ValidationError(fields={"day": [f"Unknown day {day}"]}) from exc
    try:
        new_start = parse_hour(start_hour)
    except ValueError as exc:
        raise ValidationError(fields={"start_hour": [str(exc)]}) from exc

    duration = hours_between(event.start_hour, event.end_hour)
    new_end = new_start + duration
    if new_end > MAX_END_HOUR:
        raise ValidationError(fields={"start_hour": ["The moved event would end after midnight"]})

    previous = {"day": event.day.value, "start_hour": event.start_hour, "end_hour": event.end_hour}
    with atomic(db, action="event.move"):
        event.day = new_day
        event.start_hour = format_hour(new_start)
        event.end_hour = format_hour(new_end)
        event.updated_by_id = actor.id
        log_activity(
            db,
            user=actor,
            action="event.moved",
            entity_type="event",
            entity_id=event.id,
            details={"from": previous, "to": {"day": new_day.value, "start_hour": event.start_hour}},
        )
    db.refresh(event)
    return event


def _visibility_clause(db: Session, principal: User):
    if principal.role in (UserRole.ADMIN, UserRole.SECRETAR):
        return None
    if principal.role == UserRole.PROFESOR:
        teacher = resolve_teacher_for_user(db, principal)
        if teacher is not None:
            return or_(Event.status == EventStatus.PUBLISHED, Event.teacher_id == teacher.id)
    return Event.status == EventStatus.PUBLISHED


def can_view(db: Session, principal: User, event: Event) -> bool:
    clause = _visibility_clause(db, principal)
    if clause is None:
        return True
    return db.execute(select(Event.id).where(Event.id == event.id, clause)).first() is not None


def get_visible_event(db: Session, event_id: str, principal: User) -> Event:
    event = get_event_or_404(db, event_id)
    if not can_view(db, principal, event):
        raise NotFoundError("Event", event_id)
    return event


def list_events(
    db: Session,
    principal: User,
    filters: EventFilters,
    *,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[Event], int]:
    conditions = []
    visibility = _visibility_clause(db, principal)
    if visibility is not None:
        conditions.append(visibility)

    if filters.academic_year:
        year = find_academic_year_by_label(db, filters.academic_year)
        if year is None:
            return [], 0
        conditions.append(Event.academic_year_id == year.id)
    if filters.learning_cycle:
        learning_type = find_learning_type_by_name(db, filters.learning_cycle)
        if learning_type is None:
            return [], 0
        conditions.append(Event.learning_id == learning_type.id)
    if filters.semester is not None:
        conditions.append(Event.semester == filters.semester)
    if filters.study_year is not None:
        conditions.append(
            Event.discipline_id.in_(
                select(Discipline.id)
                .join(StudyYear, StudyYear.id == Discipline.study_year_id)
                .where(StudyYear.year == filters.study_year)
            )
        )
    if filters.teacher_id:
        conditions.append(Event.teacher_id == filters.teacher_id)
    if filters.discipline_id:
        conditions.append(Event.discipline_id == filters.discipline_id)
    if filters.classroom_id:
        conditions.append(Event.classroom_id == filters.classroom_id)
    if filters.day is not None:
        conditions.append(Event.day == filters.day)
    if filters.group_id:
        conditions.append(Event.id.in_(select(EventGroup.event_id).where(EventGroup.group_id == filters.group_id)))
    if filters.status is not None:
        conditions.append(Event.status == filters.status)

    total = int(db.execute(select(func.count()).select_from(Event).where(*conditions)).scalar_one())
    day_rank = case(*[(Event.day == day, index) for index, day in enumerate(DAY_ORDER)], else_=len(DAY_ORDER))
    events = list(
        db.execute(
            select(Event)
            .where(*conditions)
            .order_by(day_rank, Event.start_hour, Event.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars()
    )
    return events, total


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
