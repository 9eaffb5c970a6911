from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.core.exceptions import ConflictError, ValidationError
from app.db.transaction import atomic
from app.models.calendar import LearningType, StudyYear
from app.models.user import User, UserRole
from app.schemas.calendar import StudyYearCreate, StudyYearOut
from app.services.hierarchy import dependency_counts, ensure_deletable, find_study_year, get_node_or_404

router = APIRouter()


def _to_out(db: Session, study_year: StudyYear) -> StudyYearOut:
    counts = dependency_counts(db, "study_year", study_year.id)
    return StudyYearOut(
        id=study_year.id,
        year=study_year.year,
        learning_type_id=study_year.learning_type_id,
        group_count=counts["groups"],
        discipline_count=counts["disciplines"],
    )


@router.get("", response_model=list[StudyYearOut])
def list_study_years(
    learning_type_id: str | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[StudyYearOut]:
    query = select(StudyYear).order_by(StudyYear.learning_type_id, StudyYear.year)
    if learning_type_id:
        query = query.where(StudyYear.learning_type_id == learning_type_id)
    return [_to_out(db, item) for item in db.execute(query).scalars()]


@router.get("/{study_year_id}", response_model=StudyYearOut)
def get_study_year(
    study_year_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StudyYearOut:
    return _to_out(db, get_node_or_404(db, "study_year", study_year_id))


@router.post("", response_model=StudyYearOut, status_code=status.HTTP_201_CREATED)
def create_study_year(
    payload: StudyYearCreate,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> StudyYearOut:
    if db.get(LearningType, payload.learning_type_id) is None:
        raise ValidationError(fields={"learning_type_id": ["Learning type does not exist"]})
    if find_study_year(db, payload.learning_type_id, payload.year) is not None:
        raise ConflictError(f"Study year {payload.year} already exists for this learning type")
    with atomic(db, action="study_year.create"):
        study_year = StudyYear(**payload.model_dump())
        db.add(study_year)
    db.refresh(study_year)
    return _to_out(db, study_year)


@router.delete("/{study_year_id}")
def delete_study_year(
    study_year_id: str,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    study_year = get_node_or_404(db, "study_year", study_year_id)
    ensure_deletable(db, "study_year", study_year.id)
    with atomic(db, action="study_year.delete"):
        db.delete(study_year)
    return {"success": True, "id": study_year_id}
