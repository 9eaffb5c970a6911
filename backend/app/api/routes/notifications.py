from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from jose import JWTError
from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_notification_dispatcher
from app.core.exceptions import NotFoundError
from app.core.security import decode_token
from app.db.transaction import atomic
from app.models.notification import Notification, NotificationType
from app.models.user import User
from app.schemas.notification import NotificationOut, NotificationSummary
from app.services.notifications import NotificationDispatcher

router = APIRouter()


@router.get("", response_model=list[NotificationOut])
def list_notifications(
    notification_type: NotificationType | None = Query(default=None),
    is_read: bool | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[NotificationOut]:
    query = (
        select(Notification)
        .where(Notification.user_id == current_user.id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    if notification_type:
        query = query.where(Notification.notification_type == notification_type)
    if is_read is not None:
        query = query.where(Notification.is_read == is_read)
    query = query.offset(offset).limit(limit)
    return list(db.execute(query).scalars())


@router.get("/summary", response_model=NotificationSummary)
def notification_summary(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationSummary:
    total, unread = db.execute(
        select(
            func.count(Notification.id),
            func.sum(case((Notification.is_read.is_(False), 1), else_=0)),
        ).where(Notification.user_id == current_user.id)
    ).one()
    return NotificationSummary(unread=int(unread or 0), total=int(total or 0))


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> NotificationOut:
    notification = db.get(Notification, notification_id)
    if notification is None or notification.user_id != current_user.id:
        raise NotFoundError("Notification", notification_id)
    with atomic(db, action="notification.read"):
        notification.is_read = True
    db.refresh(notification)
    dispatcher.push(notification, event="notification.read")
    return notification


@router.post("/read-all")
def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict[str, int]:
    with atomic(db, action="notification.read_all"):
        result = db.execute(
            update(Notification)
            .where(Notification.user_id == current_user.id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
    return {"updated": int(result.rowcount or 0)}


def _extract_ws_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if token:
        return token

    auth_header = websocket.headers.get("authorization")
    if not auth_header:
        return None
    scheme, _, value = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return value.strip() or None


def _resolve_ws_user(db: Session, token: str | None) -> str | None:
    """Return the id of the active user ``token`` belongs to, or None."""
    if not token:
        return None
    try:
        user_id = decode_token(token).get("sub")
    except JWTError:
        return None
    if not user_id:
        return None
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user.id


@router.websocket("/ws")
async def notifications_websocket(
    websocket: WebSocket,
    db: Session = Depends(get_db),
) -> None:
    hub = getattr(websocket.app.state, "notification_hub", None)
    try:
        user_id = _resolve_ws_user(db, _extract_ws_token(websocket))
    finally:
        # released before the receive loop
        db.close()
    if hub is None or user_id is None:
        await websocket.close(code=1008)
        return

    await hub.connect(user_id, websocket)
    try:
        await websocket.send_json({"event": "connected", "user_id": user_id})
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(user_id, websocket)
