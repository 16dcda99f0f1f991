from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.timetable import EntityTarget


class TemplateEntryPayload(BaseModel):
    day_of_week: int
    period_number: int
    class_id: int | None = None
    teacher_id: int | None = None
    subject_id: int | None = None
    room_id: int | None = None
    block_ref: str | None = None
    comment: str | None = None


class TemplateEntryOut(TemplateEntryPayload):
    id: int

    model_config = {"from_attributes": True}


class TemplateFromWeekRequest(EntityTarget):
    name: str = Field(max_length=200)
    description: str | None = None
    year: int
    calendar_week: int = Field(ge=1, le=53)


class TemplateSave(BaseModel):
    name: str = Field(max_length=200)
    description: str | None = None
    entries: list[TemplateEntryPayload] = Field(default_factory=list)


class TemplateApplyRequest(EntityTarget):
    year: int
    calendar_week: int = Field(ge=1, le=53)


class TemplateOut(BaseModel):
    id: int
    name: str
    description: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class TemplateDetailOut(TemplateOut):
    entries: list[TemplateEntryOut]


class ApplyOutcome(BaseModel):
    template_entry_id: int
    status: Literal["applied", "skipped"]
    entry_id: int | None = None
    reason: str | None = None


class ApplyTemplateResult(BaseModel):
    applied_count: int
    skipped_count: int
    outcomes: list[ApplyOutcome]
