from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.db.transaction import atomic
from app.models.discipline import Discipline
from app.models.event import Event
from app.models.teacher import Teacher
from app.models.user import User, UserRole
from app.schemas.teacher import TeacherCreate, TeacherOut, TeacherUpdate
from app.services.audit import log_activity
from app.services.hierarchy import count_by, ensure_deletable, get_node_or_404, resolve_teacher_for_user

router = APIRouter()


def _to_out(teacher: Teacher, event_count: int, discipline_count: int) -> TeacherOut:
    out = TeacherOut.model_validate(teacher)
    out.event_count = event_count
    out.discipline_count = discipline_count
    return out


def _serialize(db: Session, teachers: list[Teacher]) -> list[TeacherOut]:
    ids = [item.id for item in teachers]
    events = count_by(db, Event.teacher_id, ids)
    disciplines = count_by(db, Discipline.teacher_id, ids)
    return [_to_out(item, events.get(item.id, 0), disciplines.get(item.id, 0)) for item in teachers]


def _ensure_unique_email(db: Session, email: str, *, exclude_id: str | None = None) -> None:
    query = select(Teacher.id).where(func.lower(Teacher.email) == email.lower())
    if exclude_id is not None:
        query = query.where(Teacher.id != exclude_id)
    if db.execute(query).first() is not None:
        raise ConflictError(f"A teacher with email {email} already exists")


def _validate_user_link(db: Session, user_id: str | None) -> None:
    if user_id and db.get(User, user_id) is None:
        raise ValidationError(fields={"user_id": ["User does not exist"]})


@router.get("", response_model=list[TeacherOut])
def list_teachers(
    search: str | None = Query(default=None, max_length=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[TeacherOut]:
    query = select(Teacher).order_by(Teacher.lastname, Teacher.firstname)
    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        query = query.where(
            or_(
                func.lower(Teacher.firstname).like(pattern),
                func.lower(Teacher.lastname).like(pattern),
                func.lower(Teacher.email).like(pattern),
            )
        )
    return _serialize(db, list(db.execute(query).scalars()))


@router.get("/me", response_model=TeacherOut)
def get_my_teacher_profile(
    current_user: User = Depends(require_roles(UserRole.PROFESOR)),
    db: Session = Depends(get_db),
) -> TeacherOut:
    teacher = resolve_teacher_for_user(db, current_user)
    if teacher is None:
        raise NotFoundError("Teacher", message="No teacher profile is linked to this account")
    return _serialize(db, [teacher])[0]


@router.get("/{teacher_id}", response_model=TeacherOut)
def get_teacher(
    teacher_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TeacherOut:
    return _serialize(db, [get_node_or_404(db, "teacher", teacher_id)])[0]


@router.post("", response_model=TeacherOut, status_code=status.HTTP_201_CREATED)
def create_teacher(
    payload: TeacherCreate,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> TeacherOut:
    _ensure_unique_email(db, payload.email)
    _validate_user_link(db, payload.user_id)
    with atomic(db, action="teacher.create"):
        teacher = Teacher(**payload.model_dump(), created_by_id=current_user.id, updated_by_id=current_user.id)
        db.add(teacher)
        db.flush()
        log_activity(
            db,
            user=current_user,
            action="teacher.created",
            entity_type="teacher",
            entity_id=teacher.id,
            details={"email": teacher.email},
        )
    db.refresh(teacher)
    return _to_out(teacher, 0, 0)


@router.put("/{teacher_id}", response_model=TeacherOut)
def update_teacher(
    teacher_id: str,
    payload: TeacherUpdate,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> TeacherOut:
    teacher = get_node_or_404(db, "teacher", teacher_id)
    _ensure_unique_email(db, payload.email, exclude_id=teacher.id)
    _validate_user_link(db, payload.user_id)
    with atomic(db, action="teacher.update"):
        for key, value in payload.model_dump().items():
            setattr(teacher, key, value)
        teacher.updated_by_id = current_user.id
    db.refresh(teacher)
    return _serialize(db, [teacher])[0]


@router.delete("/{teacher_id}")
def delete_teacher(
    teacher_id: str,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    teacher = get_node_or_404(db, "teacher", teacher_id)
    ensure_deletable(db, "teacher", teacher.id)
    with atomic(db, action="teacher.delete"):
        log_activity(db, user=current_user, action="teacher.deleted", entity_type="teacher", entity_id=teacher.id)
        db.delete(teacher)
    return {"success": True, "id": teacher_id}
