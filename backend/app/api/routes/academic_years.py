from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.core.exceptions import ConflictError, NotFoundError
from app.db.transaction import atomic
from app.models.calendar import AcademicYear
from app.models.event import Event
from app.models.user import User, UserRole
from app.schemas.calendar import AcademicYearCreate, AcademicYearOut, AcademicYearUpdate
from app.services.audit import log_activity
from app.services.hierarchy import count_by, ensure_deletable, find_academic_year, find_academic_year_by_label, get_node_or_404

router = APIRouter()


def _to_out(year: AcademicYear, event_count: int) -> AcademicYearOut:
    return AcademicYearOut(
        id=year.id,
        start=year.start,
        end=year.end,
        label=year.label,
        published=year.published,
        event_count=event_count,
        created_at=year.created_at,
    )


@router.get("", response_model=list[AcademicYearOut])
def list_academic_years(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[AcademicYearOut]:
    years = list(db.execute(select(AcademicYear).order_by(AcademicYear.start.desc())).scalars())
    counts = count_by(db, Event.academic_year_id, [year.id for year in years])
    return [_to_out(year, counts.get(year.id, 0)) for year in years]


@router.get("/by-label/{label}", response_model=AcademicYearOut)
def get_academic_year_by_label(
    label: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AcademicYearOut:
    year = find_academic_year_by_label(db, label)
    if year is None:
        raise NotFoundError("Academic year", message=f"Academic year {label} not found")
    return _to_out(year, count_by(db, Event.academic_year_id, [year.id]).get(year.id, 0))


@router.get("/{year_id}", response_model=AcademicYearOut)
def get_academic_year(
    year_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AcademicYearOut:
    year = get_node_or_404(db, "academic_year", year_id)
    return _to_out(year, count_by(db, Event.academic_year_id, [year.id]).get(year.id, 0))


@router.post("", response_model=AcademicYearOut, status_code=status.HTTP_201_CREATED)
def create_academic_year(
    payload: AcademicYearCreate,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> AcademicYearOut:
    if find_academic_year(db, payload.start, payload.end) is not None:
        raise ConflictError(f"Academic year {payload.start}-{payload.end} already exists")
    with atomic(db, action="academic_year.create"):
        year = AcademicYear(**payload.model_dump())
        db.add(year)
        db.flush()
        log_activity(db, user=current_user, action="academic_year.created", entity_type="academic_year", entity_id=year.id)
    db.refresh(year)
    return _to_out(year, 0)


@router.patch("/{year_id}", response_model=AcademicYearOut)
def update_academic_year(
    year_id: str,
    payload: AcademicYearUpdate,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> AcademicYearOut:
    year = get_node_or_404(db, "academic_year", year_id)
    with atomic(db, action="academic_year.update"):
        year.published = payload.published
    db.refresh(year)
    return _to_out(year, count_by(db, Event.academic_year_id, [year.id]).get(year.id, 0))


@router.delete("/{year_id}")
def delete_academic_year(
    year_id: str,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> dict:
    year = get_node_or_404(db, "academic_year", year_id)
    ensure_deletable(db, "academic_year", year.id)
    with atomic(db, action="academic_year.delete"):
        log_activity(db, user=current_user, action="academic_year.deleted", entity_type="academic_year", entity_id=year.id)
        db.delete(year)
    return {"success": True, "id": year_id}
