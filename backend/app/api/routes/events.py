from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_notification_dispatcher, require_roles
from app.core.config import get_settings
from app.models.event import EventStatus, WeekDay
from app.models.user import User, UserRole
from app.schemas.event import (
    BulkPublishOut,
    EventCreate,
    EventHistoryEntry,
    EventListOut,
    EventMove,
    EventOut,
    EventReject,
    EventUpdate,
)
from app.services.audit import entity_history
from app.services.events import (
    EventFilters,
    create_event,
    delete_event,
    event_group_ids,
    get_event_or_404,
    get_visible_event,
    list_events,
    move_event,
    serialize_events,
    to_event_out,
    total_pages,
    update_event,
)
from app.services.notifications import NotificationDispatcher
from app.services.workflow import (
    approve_event,
    bulk_publish_for_teacher,
    publish_event,
    reject_event,
    submit_event,
)

router = APIRouter()
settings = get_settings()

_EDITORS = (UserRole.ADMIN, UserRole.SECRETAR, UserRole.PROFESOR)
_REVIEWERS = (UserRole.ADMIN, UserRole.SECRETAR)


def _event_out(db: Session, event) -> EventOut:
    return to_event_out(event, event_group_ids(db, event.id))


@router.get("", response_model=EventListOut)
def list_schedule(
    academic_year: str | None = Query(default=None, description="Academic year label, e.g. 2024-2025"),
    learning_cycle: str | None = Query(default=None),
    semester: int | None = Query(default=None, ge=1, le=2),
    study_year: int | None = Query(default=None, ge=1, le=6),
    teacher_id: str | None = Query(default=None),
    discipline_id: str | None = Query(default=None),
    classroom_id: str | None = Query(default=None),
    day: WeekDay | None = Query(default=None),
    group_id: str | None = Query(default=None),
    event_status: EventStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> EventListOut:
    filters = EventFilters(
        academic_year=academic_year,
        learning_cycle=learning_cycle,
        semester=semester,
        study_year=study_year,
        teacher_id=teacher_id,
        discipline_id=discipline_id,
        classroom_id=classroom_id,
        day=day,
        group_id=group_id,
        status=event_status,
    )
    events, total = list_events(db, current_user, filters, page=page, limit=limit)
    return EventListOut(
        items=serialize_events(db, events),
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


@router.post("", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_schedule_event(
    payload: EventCreate,
    current_user: User = Depends(require_roles(*_EDITORS)),
    db: Session = Depends(get_db),
) -> EventOut:
    event = create_event(db, payload, current_user)
    return _event_out(db, event)


@router.post("/publish-bulk", response_model=BulkPublishOut)
def publish_bulk(
    current_user: User = Depends(require_roles(UserRole.PROFESOR)),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> BulkPublishOut:
    result = bulk_publish_for_teacher(db, current_user, dispatcher)
    return BulkPublishOut(
        published_count=result.published_count,
        total_events=result.total_events,
        notified_count=result.notified_count,
        message=f"{result.total_events} events were sent for approval; {result.notified_count} secretaries notified.",
    )


@router.get("/{event_id}", response_model=EventOut)
def get_schedule_event(
    event_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> EventOut:
    return _event_out(db, get_visible_event(db, event_id, current_user))


@router.put("/{event_id}", response_model=EventOut)
def update_schedule_event(
    event_id: str,
    payload: EventUpdate,
    current_user: User = Depends(require_roles(*_EDITORS)),
    db: Session = Depends(get_db),
) -> EventOut:
    event = update_event(db, event_id, payload, current_user)
    return _event_out(db, event)


@router.delete("/{event_id}")
def delete_schedule_event(
    event_id: str,
    current_user: User = Depends(require_roles(*_REVIEWERS)),
    db: Session = Depends(get_db),
) -> dict:
    delete_event(db, event_id, current_user)
    return {"success": True, "id": event_id}


@router.post("/{event_id}/move", response_model=EventOut)
def move_schedule_event(
    event_id: str,
    payload: EventMove,
    current_user: User = Depends(require_roles(*_EDITORS)),
    db: Session = Depends(get_db),
) -> EventOut:
    event = move_event(db, event_id, payload.day, payload.start_hour, current_user)
    return _event_out(db, event)


@router.post("/{event_id}/submit", response_model=EventOut)
def submit_schedule_event(
    event_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> EventOut:
    return _event_out(db, submit_event(db, event_id, current_user, dispatcher))


@router.post("/{event_id}/approve", response_model=EventOut)
def approve_schedule_event(
    event_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> EventOut:
    return _event_out(db, approve_event(db, event_id, current_user, dispatcher))


@router.post("/{event_id}/reject", response_model=EventOut)
def reject_schedule_event(
    event_id: str,
    payload: EventReject | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> EventOut:
    reason = payload.rejection_reason if payload is not None else None
    return _event_out(db, reject_event(db, event_id, reason, current_user, dispatcher))


@router.post("/{event_id}/publish", response_model=EventOut)
def publish_schedule_event(
    event_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> EventOut:
    return _event_out(db, publish_event(db, event_id, current_user, dispatcher))


@router.get("/{event_id}/history", response_model=list[EventHistoryEntry])
def event_history(
    event_id: str,
    current_user: User = Depends(require_roles(*_REVIEWERS)),
    db: Session = Depends(get_db),
) -> list[EventHistoryEntry]:
    get_event_or_404(db, event_id)
    return entity_history(db, entity_type="event", entity_id=event_id)
