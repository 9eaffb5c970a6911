from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
import logging

from anyio import from_thread
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.notification import Notification, NotificationType
from app.models.user import User, UserRole
from app.services.notification_hub import NotificationHub

logger = logging.getLogger(__name__)


def _safe_iso(value: datetime | None) -> str:
    if value is None:
        return datetime.now(timezone.utc).isoformat()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc).isoformat()
    return value.isoformat()


def notification_to_event_payload(notification: Notification, *, event: str = "notification.created") -> dict:
    return {
        "event": event,
        "notification": {
            "id": notification.id,
            "user_id": notification.user_id,
            "title": notification.title,
            "message": notification.message,
            "notification_type": notification.notification_type.value,
            "is_read": notification.is_read,
            "created_at": _safe_iso(notification.created_at),
        },
    }


def active_user_ids_with_role(db: Session, role: UserRole) -> list[str]:
    return list(
        db.execute(
            select(User.id)
            .where(User.role == role, User.is_active.is_(True))
            .order_by(User.created_at.asc(), User.id.asc())
        ).scalars()
    )


class NotificationDispatcher:
    """Persists notifications and pushes them to connected sessions.

    The persisted row is the durable record. The realtime push is
    fire-and-forget: with no hub, or no connected session for the recipient,
    nothing is sent and nothing fails.
    """

    def __init__(self, hub: NotificationHub | None = None) -> None:
        self._hub = hub

    @property
    def hub(self) -> NotificationHub | None:
        return self._hub

    def record(
        self,
        db: Session,
        *,
        user_id: str,
        title: str,
        message: str,
        notification_type: NotificationType = NotificationType.workflow,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            notification_type=notification_type,
            is_read=False,
        )
        db.add(notification)
        db.flush()
        return notification

    def record_many(
        self,
        db: Session,
        *,
        user_ids: Iterable[str],
        title: str,
        message: str,
        notification_type: NotificationType = NotificationType.workflow,
        exclude_user_id: str | None = None,
    ) -> list[Notification]:
        recipients = [item for item in dict.fromkeys(user_ids) if item and item != exclude_user_id]
        return [
            self.record(db, user_id=user_id, title=title, message=message, notification_type=notification_type)
            for user_id in recipients
        ]

    def push(self, notification: Notification, *, event: str = "notification.created") -> None:
        if self._hub is None:
            return
        payload = notification_to_event_payload(notification, event=event)
        try:
            from_thread.run(self._hub.publish, notification.user_id, payload)
        except Exception:  # pragma: no cover - runtime environment dependent
            logger.debug("Unable to push realtime notification for user %s", notification.user_id, exc_info=True)

    def push_many(self, notifications: Iterable[Notification], *, event: str = "notification.created") -> None:
        for notification in notifications:
            self.push(notification, event=event)
