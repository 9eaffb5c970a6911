from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator


def _strip_optional(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


class AcademicYearCreate(BaseModel):
    start: int = Field(ge=2000, le=2100)
    end: int = Field(ge=2000, le=2100)
    published: bool = False

    @model_validator(mode="after")
    def validate_order(self) -> "AcademicYearCreate":
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class AcademicYearUpdate(BaseModel):
    published: bool


class AcademicYearOut(BaseModel):
    id: str
    start: int
    end: int
    label: str
    published: bool
    event_count: int = 0
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class LearningTypeCreate(BaseModel):
    learning_cycle: str = Field(min_length=2, max_length=100)

    @field_validator("learning_cycle")
    @classmethod
    def normalize_cycle(cls, value: str) -> str:
        trimmed = value.strip()
        if len(trimmed) < 2:
            raise ValueError("Learning cycle name must have at least 2 characters")
        return trimmed


class LearningTypeOut(BaseModel):
    id: str
    learning_cycle: str
    study_year_count: int = 0
    group_count: int = 0
    discipline_count: int = 0
    event_count: int = 0

    model_config = {"from_attributes": True}


class StudyYearCreate(BaseModel):
    year: int = Field(ge=1, le=6)
    learning_type_id: str = Field(min_length=1, max_length=36)


class StudyYearOut(BaseModel):
    id: str
    year: int
    learning_type_id: str
    group_count: int = 0
    discipline_count: int = 0

    model_config = {"from_attributes": True}


class GroupBase(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    group: int = Field(ge=1)
    semester: int = Field(ge=1, le=2)
    study_year_id: str = Field(min_length=1, max_length=36)
    learning_type_id: str | None = Field(default=None, max_length=36)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        trimmed = value.strip()
        if len(trimmed) < 2:
            raise ValueError("Group name must have at least 2 characters")
        return trimmed

    @field_validator("learning_type_id")
    @classmethod
    def normalize_learning_type(cls, value: str | None) -> str | None:
        return _strip_optional(value)


class GroupCreate(GroupBase):
    pass


class GroupUpdate(GroupBase):
    pass


class GroupOut(GroupBase):
    id: str
    event_count: int = 0

    model_config = {"from_attributes": True}
