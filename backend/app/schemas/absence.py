from datetime import date

from pydantic import BaseModel, Field


class AbsenceSave(BaseModel):
    id: int | None = None
    teacher_id: int
    start_date: date
    end_date: date
    reason: str
    comment: str | None = Field(default=None, max_length=1000)


class AbsenceOut(BaseModel):
    id: int
    teacher_id: int
    teacher_shortcut: str | None = None
    start_date: date
    end_date: date
    reason: str
    comment: str | None = None

    model_config = {"from_attributes": True}
