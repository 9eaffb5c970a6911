"""Approval workflow for schedule events.

Legal transitions live in ``TRANSITIONS``, keyed by (current status, action).
Each rule names the roles that may fire it, the target status and the side
effects applied in the same single-row update. Anything not in the table is
refused before a write happens.
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError
from app.db.transaction import atomic
from app.models.event import Event, EventStatus
from app.models.notification import Notification, NotificationType
from app.models.teacher import Teacher
from app.models.user import User, UserRole
from app.services.audit import log_activity
from app.services.events import get_event_or_404
from app.services.hierarchy import resolve_teacher_for_user
from app.services.notifications import NotificationDispatcher, active_user_ids_with_role

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "Fără motiv specificat"
BULK_SUBMIT_TITLE = "Solicitare de aprobare orar"


class EventAction(str, Enum):
    submit = "submit"
    approve = "approve"
    reject = "reject"
    publish = "publish"


class SideEffect(str, Enum):
    stamp_approval = "stamp_approval"
    backfill_approval = "backfill_approval"
    stamp_publication = "stamp_publication"
    record_rejection = "record_rejection"


@dataclass(frozen=True)
class TransitionRule:
    roles: frozenset[UserRole]
    to_status: EventStatus
    effects: tuple[SideEffect, ...] = ()
    owner_only: bool = False


_REVIEWERS = frozenset({UserRole.SECRETAR, UserRole.ADMIN})
_ADMIN_ONLY = frozenset({UserRole.ADMIN})
_PUBLISH_EFFECTS = (SideEffect.stamp_publication, SideEffect.backfill_approval)

TRANSITIONS: dict[tuple[EventStatus, EventAction], TransitionRule] = {
    (EventStatus.DRAFT, EventAction.submit): TransitionRule(
        roles=frozenset({UserRole.PROFESOR}),
        to_status=EventStatus.PENDING_APPROVAL,
        owner_only=True,
    ),
    (EventStatus.PENDING_APPROVAL, EventAction.approve): TransitionRule(
        roles=_REVIEWERS,
        to_status=EventStatus.APPROVED,
        effects=(SideEffect.stamp_approval,),
    ),
    (EventStatus.PENDING_APPROVAL, EventAction.reject): TransitionRule(
        roles=_REVIEWERS,
        to_status=EventStatus.REJECTED,
        effects=(SideEffect.record_rejection,),
    ),
    (EventStatus.APPROVED, EventAction.reject): TransitionRule(
        roles=_REVIEWERS,
        to_status=EventStatus.REJECTED,
        effects=(SideEffect.record_rejection,),
    ),
    (EventStatus.PENDING_APPROVAL, EventAction.publish): TransitionRule(
        roles=_REVIEWERS,
        to_status=EventStatus.PUBLISHED,
        effects=_PUBLISH_EFFECTS,
    ),
    (EventStatus.APPROVED, EventAction.publish): TransitionRule(
        roles=_REVIEWERS,
        to_status=EventStatus.PUBLISHED,
        effects=_PUBLISH_EFFECTS,
    ),
    # administrators publish from any state that is not already published
    (EventStatus.DRAFT, EventAction.publish): TransitionRule(
        roles=_ADMIN_ONLY,
        to_status=EventStatus.PUBLISHED,
        effects=_PUBLISH_EFFECTS,
    ),
    (EventStatus.REJECTED, EventAction.publish): TransitionRule(
        roles=_ADMIN_ONLY,
        to_status=EventStatus.PUBLISHED,
        effects=_PUBLISH_EFFECTS,
    ),
}

ACTION_ROLES: dict[EventAction, frozenset[UserRole]] = {
    action: frozenset().union(*(rule.roles for (_, key), rule in TRANSITIONS.items() if key == action))
    for action in EventAction
}

NOTIFY_TITLES = {
    EventAction.approve: "Eveniment aprobat",
    EventAction.reject: "Eveniment respins",
    EventAction.publish: "Eveniment publicat",
}


def iter_transitions() -> Iterator[tuple[EventStatus, EventAction, TransitionRule]]:
    for (status, action), rule in TRANSITIONS.items():
        yield status, action, rule


def is_allowed(status: EventStatus, action: EventAction, role: UserRole) -> bool:
    rule = TRANSITIONS.get((status, action))
    return rule is not None and role in rule.roles


def resolve_transition(status: EventStatus, action: EventAction, role: UserRole) -> TransitionRule:
    """Return the rule for firing ``action`` on an event in ``status`` as ``role``.

    Raises ForbiddenError when the role may never fire the action, and
    InvalidStateError when the action is not legal from ``status`` for it.
    """
    if role not in ACTION_ROLES[action]:
        raise ForbiddenError(f"Role {role.value} is not allowed to {action.value} events")

    rule = TRANSITIONS.get((status, action))
    if rule is None and action == EventAction.publish and status == EventStatus.PUBLISHED:
        raise InvalidStateError("Event is already published", current_status=status.value, code="ALREADY_PUBLISHED")
    if rule is None or role not in rule.roles:
        raise InvalidStateError(
            f"Cannot {action.value} an event in status {status.value}",
            current_status=status.value,
        )
    return rule


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _effect_values(
    rule: TransitionRule,
    event: Event,
    actor: User,
    *,
    reason: str | None,
    now: datetime,
) -> dict:
    values: dict = {"status": rule.to_status, "updated_by_id": actor.id}
    for effect in rule.effects:
        if effect == SideEffect.stamp_approval:
            values["approved_by_id"] = actor.id
            values["approved_at"] = now
        elif effect == SideEffect.backfill_approval:
            if event.status != EventStatus.APPROVED:
                values["approved_by_id"] = actor.id
                values["approved_at"] = now
        elif effect == SideEffect.stamp_publication:
            values["published_by_id"] = actor.id
            values["published_at"] = now
            values["rejection_reason"] = None
        elif effect == SideEffect.record_rejection:
            values["rejection_reason"] = reason
    return values


def _owner_user_ids(db: Session, teacher_id: str) -> list[str]:
    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        return []
    if teacher.user_id:
        return [teacher.user_id]
    return list(
        db.execute(
            select(User.id).where(func.lower(User.email) == teacher.email.strip().lower(), User.is_active.is_(True))
        ).scalars()
    )


def _notification_message(action: EventAction, event: Event, reason: str | None) -> str:
    slot = f"{event.day.value} {event.start_hour}-{event.end_hour}"
    if action == EventAction.reject:
        return f"Evenimentul din {slot} a fost respins. Motiv: {reason}"
    if action == EventAction.approve:
        return f"Evenimentul din {slot} a fost aprobat."
    return f"Evenimentul din {slot} a fost publicat și este vizibil pentru studenți."


def transition_event(
    db: Session,
    event_id: str,
    action: EventAction,
    actor: User,
    dispatcher: NotificationDispatcher | None = None,
    *,
    reason: str | None = None,
) -> Event:
    event = get_event_or_404(db, event_id)
    current = event.status
    rule = resolve_transition(current, action, actor.role)
    if rule.owner_only:
        teacher = resolve_teacher_for_user(db, actor)
        if teacher is None or teacher.id != event.teacher_id:
            raise ForbiddenError("Teachers can only submit their own events")

    values = _effect_values(rule, event, actor, reason=reason, now=_utc_now())
    notifications: list[Notification] = []
    with atomic(db, action=f"event.{action.value}"):
        result = db.execute(
            update(Event)
            .where(Event.id == event.id, Event.status == current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError(
                "Event status changed while the request was processed",
                current_status=current.value,
            )
        log_activity(
            db,
            user=actor,
            action=f"event.{action.value}",
            entity_type="event",
            entity_id=event.id,
            details={"from": current.value, "to": rule.to_status.value, "reason": reason},
        )
        if dispatcher is not None and action in NOTIFY_TITLES:
            notifications = dispatcher.record_many(
                db,
                user_ids=_owner_user_ids(db, event.teacher_id),
                title=NOTIFY_TITLES[action],
                message=_notification_message(action, event, reason),
                exclude_user_id=actor.id,
            )
    db.refresh(event)
    logger.info("Event %s: %s -> %s by %s", event.id, current.value, event.status.value, actor.id)
    if dispatcher is not None:
        dispatcher.push_many(notifications)
    return event


def submit_event(db: Session, event_id: str, actor: User, dispatcher: NotificationDispatcher | None = None) -> Event:
    return transition_event(db, event_id, EventAction.submit, actor, dispatcher)


def approve_event(db: Session, event_id: str, actor: User, dispatcher: NotificationDispatcher | None = None) -> Event:
    return transition_event(db, event_id, EventAction.approve, actor, dispatcher)


def reject_event(
    db: Session,
    event_id: str,
    reason: str | None,
    actor: User,
    dispatcher: NotificationDispatcher | None = None,
) -> Event:
    normalized = (reason or "").strip() or DEFAULT_REJECTION_REASON
    return transition_event(db, event_id, EventAction.reject, actor, dispatcher, reason=normalized)


def publish_event(db: Session, event_id: str, actor: User, dispatcher: NotificationDispatcher | None = None) -> Event:
    return transition_event(db, event_id, EventAction.publish, actor, dispatcher)


@dataclass
class BulkPublishResult:
    published_count: int
    total_events: int
    notified_count: int
    recipients: int


def bulk_publish_for_teacher(db: Session, actor: User, dispatcher: NotificationDispatcher) -> BulkPublishResult:
    """Submit every DRAFT event of the calling teacher and tell the secretaries.

    The status change is committed first. Secretary discovery and the
    notifications that follow are best effort: a failure there is logged
    and shows up as ``notified_count < recipients``, it never undoes the
    submission.
    """
    if actor.role != UserRole.PROFESOR:
        raise ForbiddenError("Only teachers can submit their schedule in bulk")
    teacher = resolve_teacher_for_user(db, actor)
    if teacher is None:
        raise ForbiddenError("No teacher profile is linked to this account")

    pending = list(
        db.execute(
            select(Event.id).where(
                Event.teacher_id == teacher.id,
                Event.status.in_([EventStatus.PENDING_APPROVAL, EventStatus.DRAFT]),
            )
        ).scalars()
    )
    if not pending:
        raise NotFoundError("Event", message="There are no pending events to submit")

    with atomic(db, action="event.bulk_submit"):
        result = db.execute(
            update(Event)
            .where(Event.teacher_id == teacher.id, Event.status == EventStatus.DRAFT)
            .values(status=EventStatus.PENDING_APPROVAL, updated_by_id=actor.id)
            .execution_options(synchronize_session=False)
        )
        published_count = result.rowcount
        log_activity(
            db,
            user=actor,
            action="event.bulk_submit",
            entity_type="teacher",
            entity_id=teacher.id,
            details={"submitted": published_count, "total": len(pending)},
        )
    logger.info(
        "Teacher %s submitted %d of %d pending event(s) for approval",
        teacher.id,
        published_count,
        len(pending),
    )

    display_name = teacher.display_name or actor.name or actor.email
    message = f"{display_name} a trimis {len(pending)} evenimente pentru aprobare."
    secretary_ids: list[str] = []
    delivered: list[Notification] = []
    try:
        secretary_ids = active_user_ids_with_role(db, UserRole.SECRETAR)
        for user_id in secretary_ids:
            notification = dispatcher.record(
                db,
                user_id=user_id,
                title=BULK_SUBMIT_TITLE,
                message=message,
                notification_type=NotificationType.workflow,
            )
            db.commit()
            delivered.append(notification)
    except SQLAlchemyError:
        db.rollback()
        logger.warning(
            "Notified %d of %d secretaries after bulk submission by teacher %s",
            len(delivered),
            len(secretary_ids),
            teacher.id,
            exc_info=True,
        )
    dispatcher.push_many(delivered)

    return BulkPublishResult(
        published_count=published_count,
        total_events=len(pending),
        notified_count=len(delivered),
        recipients=len(secretary_ids),
    )
