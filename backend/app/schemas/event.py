import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.config import get_settings
from app.models.event import EventRecurrence, EventStatus, EventType, WeekDay

HOUR_PATTERN = re.compile(r"^([01]?\d|2[0-4]):([0-5]\d)$")


def parse_hour(value: str) -> int:
    """Return the whole hour of an "HH:MM" string; minutes must be zero."""
    match = HOUR_PATTERN.match(value.strip())
    if not match:
        raise ValueError("Hour must be in HH:00 format")
    if match.group(2) != "00":
        raise ValueError("Hour must fall on the hourly grid (HH:00)")
    return int(match.group(1))


def format_hour(hour: int) -> str:
    return f"{hour:02d}:00"


def hours_between(start_hour: str, end_hour: str) -> int:
    return parse_hour(end_hour) - parse_hour(start_hour)


class EventInput(BaseModel):
    day: WeekDay
    start_hour: str = Field(min_length=1, max_length=5)
    end_hour: str = Field(min_length=1, max_length=5)
    event_type: EventType
    event_recurrence: EventRecurrence = EventRecurrence.toate
    semester: int = Field(ge=1, le=2)
    academic_year_id: str = Field(min_length=1, max_length=36)
    learning_id: str = Field(min_length=1, max_length=36)
    teacher_id: str = Field(min_length=1, max_length=36)
    discipline_id: str = Field(min_length=1, max_length=36)
    classroom_id: str = Field(min_length=1, max_length=36)
    group_ids: list[str] = Field(default_factory=list, max_length=100)

    @field_validator("academic_year_id", "learning_id", "teacher_id", "discipline_id", "classroom_id")
    @classmethod
    def strip_reference(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Field is required")
        return trimmed

    @field_validator("start_hour", "end_hour")
    @classmethod
    def validate_hour(cls, value: str) -> str:
        settings = get_settings()
        hour = parse_hour(value)
        if hour < settings.schedule_day_start_hour or hour > settings.schedule_day_end_hour:
            raise ValueError(
                f"Hour must be between {format_hour(settings.schedule_day_start_hour)} "
                f"and {format_hour(settings.schedule_day_end_hour)}"
            )
        return format_hour(hour)

    @field_validator("group_ids")
    @classmethod
    def normalize_group_ids(cls, value: list[str]) -> list[str]:
        normalized = list(dict.fromkeys(item.strip() for item in value if item and item.strip()))
        if not normalized:
            raise ValueError("At least one group is required")
        return normalized

    @model_validator(mode="after")
    def validate_order(self) -> "EventInput":
        if parse_hour(self.end_hour) <= parse_hour(self.start_hour):
            raise ValueError("end_hour must be after start_hour")
        return self

    @property
    def duration(self) -> int:
        return hours_between(self.start_hour, self.end_hour)


class EventCreate(EventInput):
    initial_status: EventStatus | None = None

    @field_validator("initial_status")
    @classmethod
    def validate_initial_status(cls, value: EventStatus | None) -> EventStatus | None:
        if value not in (None, EventStatus.DRAFT, EventStatus.PENDING_APPROVAL):
            raise ValueError("Events can only be created as DRAFT or PENDING_APPROVAL")
        return value


class EventUpdate(EventInput):
    pass


class EventMove(BaseModel):
    day: WeekDay
    start_hour: str = Field(min_length=1, max_length=5)


class EventReject(BaseModel):
    rejection_reason: str | None = Field(default=None, max_length=1000)


class EventOut(BaseModel):
    id: str
    day: WeekDay
    start_hour: str
    end_hour: str
    duration: int
    event_type: EventType
    event_recurrence: EventRecurrence
    semester: int
    status: EventStatus
    rejection_reason: str | None = None
    academic_year_id: str
    learning_id: str
    teacher_id: str
    discipline_id: str
    classroom_id: str
    group_ids: list[str]
    approved_by_id: str | None = None
    approved_at: datetime | None = None
    published_by_id: str | None = None
    published_at: datetime | None = None
    created_by_id: str | None = None
    updated_by_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class EventListOut(BaseModel):
    items: list[EventOut]
    total: int
    page: int
    limit: int
    total_pages: int


class BulkPublishOut(BaseModel):
    published_count: int
    total_events: int
    notified_count: int
    message: str


class EventHistoryEntry(BaseModel):
    id: str
    user_id: str | None
    action: str
    details: dict
    created_at: datetime

    model_config = {"from_attributes": True}
