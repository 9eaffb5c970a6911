from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.core.exceptions import ConflictError
from app.db.transaction import atomic
from app.models.classroom import Classroom
from app.models.event import Event
from app.models.user import User, UserRole
from app.schemas.classroom import ClassroomCreate, ClassroomOut, ClassroomUpdate
from app.services.hierarchy import count_by, ensure_deletable, get_node_or_404

router = APIRouter()


def _to_out(classroom: Classroom, event_count: int) -> ClassroomOut:
    out = ClassroomOut.model_validate(classroom)
    out.event_count = event_count
    return out


def _ensure_unique_name(db: Session, name: str, *, exclude_id: str | None = None) -> None:
    query = select(Classroom.id).where(Classroom.name == name)
    if exclude_id is not None:
        query = query.where(Classroom.id != exclude_id)
    if db.execute(query).first() is not None:
        raise ConflictError(f"Classroom {name} already exists")


@router.get("", response_model=list[ClassroomOut])
def list_classrooms(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> list[ClassroomOut]:
    classrooms = list(db.execute(select(Classroom).order_by(Classroom.name)).scalars())
    counts = count_by(db, Event.classroom_id, [item.id for item in classrooms])
    return [_to_out(item, counts.get(item.id, 0)) for item in classrooms]


@router.get("/{classroom_id}", response_model=ClassroomOut)
def get_classroom(
    classroom_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ClassroomOut:
    classroom = get_node_or_404(db, "classroom", classroom_id)
    return _to_out(classroom, count_by(db, Event.classroom_id, [classroom.id]).get(classroom.id, 0))


@router.post("", response_model=ClassroomOut, status_code=status.HTTP_201_CREATED)
def create_classroom(
    payload: ClassroomCreate,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ClassroomOut:
    _ensure_unique_name(db, payload.name)
    with atomic(db, action="classroom.create"):
        classroom = Classroom(**payload.model_dump(), created_by_id=current_user.id, updated_by_id=current_user.id)
        db.add(classroom)
    db.refresh(classroom)
    return _to_out(classroom, 0)


@router.put("/{classroom_id}", response_model=ClassroomOut)
def update_classroom(
    classroom_id: str,
    payload: ClassroomUpdate,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ClassroomOut:
    classroom = get_node_or_404(db, "classroom", classroom_id)

    data = payload.model_dump(exclude_unset=True)
    for required in ("name", "capacity"):
        if required in data and data[required] is None:
            data.pop(required)
    if "name" in data:
        data["name"] = data["name"].strip()
        _ensure_unique_name(db, data["name"], exclude_id=classroom.id)

    with atomic(db, action="classroom.update"):
        for key, value in data.items():
            setattr(classroom, key, value)
        classroom.updated_by_id = current_user.id
    db.refresh(classroom)
    return _to_out(classroom, count_by(db, Event.classroom_id, [classroom.id]).get(classroom.id, 0))


@router.delete("/{classroom_id}")
def delete_classroom(
    classroom_id: str,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    classroom = get_node_or_404(db, "classroom", classroom_id)
    ensure_deletable(db, "classroom", classroom.id)
    with atomic(db, action="classroom.delete"):
        db.delete(classroom)
    return {"success": True, "id": classroom_id}
