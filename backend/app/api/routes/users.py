from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.core.exceptions import ConflictError, NotFoundError
from app.db.transaction import atomic
from app.models.user import User, UserRole
from app.schemas.user import UserCreate, UserOut, UserUpdate
from app.services.audit import log_activity

router = APIRouter()


@router.get("/me", response_model=UserOut)
def get_me(current_user: User = Depends(get_current_user)) -> UserOut:
    return current_user


@router.get("", response_model=list[UserOut])
def list_users(
    role: UserRole | None = Query(default=None),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> list[UserOut]:
    query = select(User).order_by(User.name)
    if role is not None:
        query = query.where(User.role == role)
    return list(db.execute(query).scalars())


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> UserOut:
    existing = db.execute(select(User.id).where(func.lower(User.email) == payload.email)).first()
    if existing is not None:
        raise ConflictError("Email already registered")
    with atomic(db, action="user.create"):
        user = User(**payload.model_dump(), is_active=True)
        db.add(user)
        db.flush()
        log_activity(
            db,
            user=current_user,
            action="user.created",
            entity_type="user",
            entity_id=user.id,
            details={"role": user.role.value},
        )
    db.refresh(user)
    return user


@router.patch("/{user_id}", response_model=UserOut)
def update_user(
    user_id: str,
    payload: UserUpdate,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> UserOut:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    data = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
    with atomic(db, action="user.update"):
        for key, value in data.items():
            setattr(user, key, value)
        if data:
            log_activity(
                db,
                user=current_user,
                action="user.updated",
                entity_type="user",
                entity_id=user.id,
                details={key: getattr(value, "value", value) for key, value in data.items()},
            )
    db.refresh(user)
    return user
