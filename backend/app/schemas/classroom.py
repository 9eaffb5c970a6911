from pydantic import BaseModel, Field, field_validator


class ClassroomBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    building: str | None = Field(default=None, max_length=200)
    capacity: int = Field(default=0, ge=0, le=10000)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Classroom name cannot be empty")
        return trimmed

    @field_validator("building")
    @classmethod
    def normalize_building(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class ClassroomCreate(ClassroomBase):
    pass


class ClassroomUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    building: str | None = Field(default=None, max_length=200)
    capacity: int | None = Field(default=None, ge=0, le=10000)


class ClassroomOut(ClassroomBase):
    id: str
    event_count: int = 0

    model_config = {"from_attributes": True}
