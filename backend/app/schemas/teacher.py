from pydantic import BaseModel, EmailStr, Field, field_validator


class TeacherBase(BaseModel):
    firstname: str = Field(min_length=2, max_length=100)
    lastname: str = Field(min_length=2, max_length=100)
    email: EmailStr
    grade: str | None = Field(default=None, max_length=100)
    title: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=50)
    user_id: str | None = Field(default=None, max_length=36)

    @field_validator("firstname", "lastname")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        return value.strip()

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("grade", "title", "phone", "user_id")
    @classmethod
    def normalize_optional(cls, value: str | None) -> str | None:
        if value is None:
            return None
        trimmed = value.strip()
        return trimmed or None


class TeacherCreate(TeacherBase):
    pass


class TeacherUpdate(TeacherBase):
    pass


class TeacherOut(TeacherBase):
    id: str
    display_name: str
    event_count: int = 0
    discipline_count: int = 0

    model_config = {"from_attributes": True}
