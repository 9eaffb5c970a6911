import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class WeekDay(str, Enum):
    LUNI = "LUNI"
    MARTI = "MARTI"
    MIERCURI = "MIERCURI"
    JOI = "JOI"
    VINERI = "VINERI"


DAY_ORDER = [item for item in WeekDay]


class EventType(str, Enum):
    C = "C"
    S = "S"
    L = "L"
    P = "P"


class EventRecurrence(str, Enum):
    toate = "toate"
    para = "para"
    impara = "impara"


class EventStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PUBLISHED = "PUBLISHED"


class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    day: Mapped[WeekDay] = mapped_column(SAEnum(WeekDay, name="week_day"), nullable=False)
    start_hour: Mapped[str] = mapped_column(String(5), nullable=False)
    end_hour: Mapped[str] = mapped_column(String(5), nullable=False)
    event_type: Mapped[EventType] = mapped_column(SAEnum(EventType, name="event_type"), nullable=False)
    event_recurrence: Mapped[EventRecurrence] = mapped_column(
        SAEnum(EventRecurrence, name="event_recurrence"),
        nullable=False,
        default=EventRecurrence.toate,
    )
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[EventStatus] = mapped_column(
        SAEnum(EventStatus, name="event_status"),
        nullable=False,
        default=EventStatus.DRAFT,
        index=True,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    academic_year_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    learning_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    teacher_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    discipline_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    classroom_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    approved_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    published_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    updated_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class EventGroup(Base):
    __tablename__ = "event_groups"
    __table_args__ = (UniqueConstraint("event_id", "group_id", name="uq_event_groups_event_group"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    group_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
