from pydantic import BaseModel, Field, model_validator

from app.schemas.substitution import SubstitutionOut


class BlockSaveRequest(BaseModel):
    """A lesson spanning start_period..end_period; entry_id/block_id mark an edit."""

    entry_id: int | None = None
    block_id: str | None = None
    year: int
    calendar_week: int
    day_of_week: int
    start_period: int
    end_period: int
    class_id: int | None = None
    teacher_id: int | None = None
    subject_id: int | None = None
    room_id: int | None = None
    comment: str | None = Field(default=None, max_length=1000)


class TimetableEntryOut(BaseModel):
    id: int
    year: int
    calendar_week: int
    day_of_week: int
    period_number: int
    class_id: int
    teacher_id: int | None = None
    subject_id: int | None = None
    room_id: int | None = None
    block_id: str | None = None
    comment: str | None = None
    class_name: str | None = None
    teacher_shortcut: str | None = None
    subject_shortcut: str | None = None
    room_name: str | None = None

    model_config = {"from_attributes": True}


class BlockSaveResult(BaseModel):
    block_id: str | None
    entry_ids: list[int]
    periods: list[int]
    entries: list[TimetableEntryOut]


class DeleteResult(BaseModel):
    deleted: int


class EntityTarget(BaseModel):
    """Exactly one of class_id / teacher_id selects whose plan is affected."""

    class_id: int | None = None
    teacher_id: int | None = None

    @model_validator(mode="after")
    def validate_single_entity(self) -> "EntityTarget":
        if (self.class_id is None) == (self.teacher_id is None):
            raise ValueError("Exactly one of class_id or teacher_id is required")
        return self


class CopyWeekRequest(EntityTarget):
    source_year: int
    source_week: int = Field(ge=1, le=53)
    target_year: int
    target_week: int = Field(ge=1, le=53)


class CopyWeekResult(BaseModel):
    copied: int


class MoveRequest(EntityTarget):
    year: int
    calendar_week: int = Field(ge=1, le=53)
    source_day: int
    source_period: int
    target_day: int
    target_period: int


class MoveResult(BaseModel):
    entries: list[BlockSaveResult]
    substitutions: list[SubstitutionOut]
