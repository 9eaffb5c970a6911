from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.core.exceptions import ConflictError, NotFoundError
from app.db.transaction import atomic
from app.models.calendar import LearningType
from app.models.user import User, UserRole
from app.schemas.calendar import LearningTypeCreate, LearningTypeOut
from app.services.audit import log_activity
from app.services.hierarchy import dependency_counts, ensure_deletable, find_learning_type_by_name, get_node_or_404

router = APIRouter()


def _to_out(db: Session, learning_type: LearningType) -> LearningTypeOut:
    counts = dependency_counts(db, "learning_type", learning_type.id)
    return LearningTypeOut(
        id=learning_type.id,
        learning_cycle=learning_type.learning_cycle,
        study_year_count=counts["study_years"],
        group_count=counts["groups"],
        discipline_count=counts["disciplines"],
        event_count=counts["events"],
    )


@router.get("", response_model=list[LearningTypeOut])
def list_learning_types(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[LearningTypeOut]:
    items = db.execute(select(LearningType).order_by(LearningType.learning_cycle)).scalars()
    return [_to_out(db, item) for item in items]


@router.get("/by-name/{name}", response_model=LearningTypeOut)
def get_learning_type_by_name(
    name: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LearningTypeOut:
    learning_type = find_learning_type_by_name(db, name)
    if learning_type is None:
        raise NotFoundError("Learning type", message=f"Learning type {name} not found")
    return _to_out(db, learning_type)


@router.get("/{learning_type_id}", response_model=LearningTypeOut)
def get_learning_type(
    learning_type_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LearningTypeOut:
    return _to_out(db, get_node_or_404(db, "learning_type", learning_type_id))


@router.post("", response_model=LearningTypeOut, status_code=status.HTTP_201_CREATED)
def create_learning_type(
    payload: LearningTypeCreate,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> LearningTypeOut:
    if find_learning_type_by_name(db, payload.learning_cycle) is not None:
        raise ConflictError(f"Learning cycle {payload.learning_cycle} already exists")
    with atomic(db, action="learning_type.create"):
        learning_type = LearningType(learning_cycle=payload.learning_cycle)
        db.add(learning_type)
        db.flush()
        log_activity(
            db,
            user=current_user,
            action="learning_type.created",
            entity_type="learning_type",
            entity_id=learning_type.id,
        )
    db.refresh(learning_type)
    return _to_out(db, learning_type)


@router.delete("/{learning_type_id}")
def delete_learning_type(
    learning_type_id: str,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    learning_type = get_node_or_404(db, "learning_type", learning_type_id)
    ensure_deletable(db, "learning_type", learning_type.id)
    with atomic(db, action="learning_type.delete"):
        db.delete(learning_type)
    return {"success": True, "id": learning_type_id}
