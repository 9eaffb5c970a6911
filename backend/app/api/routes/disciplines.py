from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.core.exceptions import ValidationError
from app.db.transaction import atomic
from app.models.calendar import LearningType, StudyYear
from app.models.discipline import Discipline
from app.models.event import Event
from app.models.teacher import Teacher
from app.models.user import User, UserRole
from app.schemas.discipline import DisciplineCreate, DisciplineOut, DisciplineUpdate
from app.services.hierarchy import count_by, ensure_deletable, get_node_or_404

router = APIRouter()


def _to_out(discipline: Discipline, event_count: int) -> DisciplineOut:
    out = DisciplineOut.model_validate(discipline)
    out.event_count = event_count
    return out


def _validate_references(db: Session, payload: DisciplineCreate | DisciplineUpdate) -> None:
    errors: dict[str, list[str]] = {}
    if db.get(Teacher, payload.teacher_id) is None:
        errors["teacher_id"] = ["Teacher does not exist"]
    if db.get(StudyYear, payload.study_year_id) is None:
        errors["study_year_id"] = ["Study year does not exist"]
    if payload.learning_type_id and db.get(LearningType, payload.learning_type_id) is None:
        errors["learning_type_id"] = ["Learning type does not exist"]
    if errors:
        raise ValidationError(fields=errors)


@router.get("", response_model=list[DisciplineOut])
def list_disciplines(
    teacher_id: str | None = Query(default=None),
    study_year_id: str | None = Query(default=None),
    semester: int | None = Query(default=None, ge=1, le=2),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[DisciplineOut]:
    query = select(Discipline).order_by(Discipline.name)
    if teacher_id:
        query = query.where(Discipline.teacher_id == teacher_id)
    if study_year_id:
        query = query.where(Discipline.study_year_id == study_year_id)
    if semester is not None:
        query = query.where(Discipline.semester == semester)
    disciplines = list(db.execute(query).scalars())
    counts = count_by(db, Event.discipline_id, [item.id for item in disciplines])
    return [_to_out(item, counts.get(item.id, 0)) for item in disciplines]


@router.get("/{discipline_id}", response_model=DisciplineOut)
def get_discipline(
    discipline_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DisciplineOut:
    discipline = get_node_or_404(db, "discipline", discipline_id)
    return _to_out(discipline, count_by(db, Event.discipline_id, [discipline.id]).get(discipline.id, 0))


@router.post("", response_model=DisciplineOut, status_code=status.HTTP_201_CREATED)
def create_discipline(
    payload: DisciplineCreate,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> DisciplineOut:
    _validate_references(db, payload)
    with atomic(db, action="discipline.create"):
        discipline = Discipline(**payload.model_dump(), created_by_id=current_user.id, updated_by_id=current_user.id)
        db.add(discipline)
    db.refresh(discipline)
    return _to_out(discipline, 0)


@router.put("/{discipline_id}", response_model=DisciplineOut)
def update_discipline(
    discipline_id: str,
    payload: DisciplineUpdate,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> DisciplineOut:
    discipline = get_node_or_404(db, "discipline", discipline_id)
    _validate_references(db, payload)
    with atomic(db, action="discipline.update"):
        for key, value in payload.model_dump().items():
            setattr(discipline, key, value)
        discipline.updated_by_id = current_user.id
    db.refresh(discipline)
    return _to_out(discipline, count_by(db, Event.discipline_id, [discipline.id]).get(discipline.id, 0))


@router.delete("/{discipline_id}")
def delete_discipline(
    discipline_id: str,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    discipline = get_node_or_404(db, "discipline", discipline_id)
    ensure_deletable(db, "discipline", discipline.id)
    with atomic(db, action="discipline.delete"):
        db.delete(discipline)
    return {"success": True, "id": discipline_id}
