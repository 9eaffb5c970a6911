from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.core.exceptions import ConflictError, ValidationError
from app.db.transaction import atomic
from app.models.calendar import Group, LearningType, StudyYear
from app.models.event import EventGroup
from app.models.user import User, UserRole
from app.schemas.calendar import GroupCreate, GroupOut, GroupUpdate
from app.services.audit import log_activity
from app.services.hierarchy import count_by, ensure_deletable, find_group_by_name, get_node_or_404

router = APIRouter()


def _to_out(group: Group, event_count: int) -> GroupOut:
    out = GroupOut.model_validate(group)
    out.event_count = event_count
    return out


def _validate_parents(db: Session, payload: GroupCreate | GroupUpdate) -> None:
    errors: dict[str, list[str]] = {}
    if db.get(StudyYear, payload.study_year_id) is None:
        errors["study_year_id"] = ["Study year does not exist"]
    if payload.learning_type_id and db.get(LearningType, payload.learning_type_id) is None:
        errors["learning_type_id"] = ["Learning type does not exist"]
    if errors:
        raise ValidationError(fields=errors)


@router.get("", response_model=list[GroupOut])
def list_groups(
    study_year_id: str | None = Query(default=None),
    semester: int | None = Query(default=None, ge=1, le=2),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[GroupOut]:
    query = select(Group).order_by(Group.name, Group.group)
    if study_year_id:
        query = query.where(Group.study_year_id == study_year_id)
    if semester is not None:
        query = query.where(Group.semester == semester)
    groups = list(db.execute(query).scalars())
    counts = count_by(db, EventGroup.group_id, [group.id for group in groups])
    return [_to_out(group, counts.get(group.id, 0)) for group in groups]


@router.get("/{group_id}", response_model=GroupOut)
def get_group(
    group_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> GroupOut:
    group = get_node_or_404(db, "group", group_id)
    return _to_out(group, count_by(db, EventGroup.group_id, [group.id]).get(group.id, 0))


@router.post("", response_model=GroupOut, status_code=status.HTTP_201_CREATED)
def create_group(
    payload: GroupCreate,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> GroupOut:
    _validate_parents(db, payload)
    if find_group_by_name(db, payload.study_year_id, payload.name) is not None:
        raise ConflictError(f"Group {payload.name} already exists in this study year")
    with atomic(db, action="group.create"):
        group = Group(**payload.model_dump())
        db.add(group)
        db.flush()
        log_activity(db, user=current_user, action="group.created", entity_type="group", entity_id=group.id)
    db.refresh(group)
    return _to_out(group, 0)


@router.put("/{group_id}", response_model=GroupOut)
def update_group(
    group_id: str,
    payload: GroupUpdate,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> GroupOut:
    group = get_node_or_404(db, "group", group_id)
    _validate_parents(db, payload)
    if find_group_by_name(db, payload.study_year_id, payload.name, exclude_id=group.id) is not None:
        raise ConflictError(f"Group {payload.name} already exists in this study year")
    with atomic(db, action="group.update"):
        for key, value in payload.model_dump().items():
            setattr(group, key, value)
        log_activity(db, user=current_user, action="group.updated", entity_type="group", entity_id=group.id)
    db.refresh(group)
    return _to_out(group, count_by(db, EventGroup.group_id, [group.id]).get(group.id, 0))


@router.delete("/{group_id}")
def delete_group(
    group_id: str,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    group = get_node_or_404(db, "group", group_id)
    ensure_deletable(db, "group", group.id)
    with atomic(db, action="group.delete"):
        log_activity(db, user=current_user, action="group.deleted", entity_type="group", entity_id=group.id)
        db.delete(group)
    return {"success": True, "id": group_id}
