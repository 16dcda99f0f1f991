from datetime import date

from pydantic import BaseModel, Field, field_validator

from app.models.substitution import SubstitutionType


class SubstitutionSave(BaseModel):
    id: int | None = None
    date: date
    period_number: int
    class_id: int
    substitution_type: SubstitutionType
    original_subject_id: int | None = None
    new_teacher_id: int | None = None
    new_subject_id: int | None = None
    new_room_id: int | None = None
    comment: str | None = Field(default=None, max_length=1000)

    @field_validator("original_subject_id", "new_teacher_id", "new_subject_id", "new_room_id", mode="before")
    @classmethod
    def normalize_optional_reference(cls, value):
        # Forms submit "" or 0 for "no selection".
        if value in ("", "0", 0):
            return None
        return value


class SubstitutionOut(BaseModel):
    id: int
    date: date
    day_of_week: int | None = None
    period_number: int
    class_id: int
    substitution_type: SubstitutionType
    original_subject_id: int | None = None
    new_teacher_id: int | None = None
    new_subject_id: int | None = None
    new_room_id: int | None = None
    comment: str | None = None
    class_name: str | None = None
    new_teacher_shortcut: str | None = None
    new_subject_shortcut: str | None = None
    new_room_name: str | None = None

    model_config = {"from_attributes": True}
