from pydantic import BaseModel, Field, field_validator


class DisciplineBase(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    semester: int = Field(ge=1, le=2)
    teacher_id: str = Field(min_length=1, max_length=36)
    study_year_id: str = Field(min_length=1, max_length=36)
    learning_type_id: str | None = Field(default=None, max_length=36)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        trimmed = value.strip()
        if len(trimmed) < 2:
            raise ValueError("Discipline name must have at least 2 characters")
        return trimmed

    @field_validator("learning_type_id")
    @classmethod
    def normalize_learning_type(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class DisciplineCreate(DisciplineBase):
    pass


class DisciplineUpdate(DisciplineBase):
    pass


class DisciplineOut(DisciplineBase):
    id: str
    event_count: int = 0

    model_config = {"from_attributes": True}
