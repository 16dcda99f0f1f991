from typing import Literal

from pydantic import BaseModel, Field

ConflictType = Literal[
    "TEACHER_ABSENCE",
    "TEACHER_CONFLICT",
    "ROOM_CONFLICT",
    "ABSENCE_CONFLICT",
    "SUBSTITUTION_CONFLICT",
    "STORAGE_CONFLICT",
]


class ConflictDetail(BaseModel):
    conflict_type: ConflictType
    message: str
    entry_id: int | None = None
    substitution_id: int | None = None
    teacher_id: int | None = None
    room_id: int | None = None
    class_id: int | None = None


class ConflictCheckRequest(BaseModel):
    year: int
    calendar_week: int = Field(ge=1, le=53)
    day_of_week: int
    start_period: int
    end_period: int
    teacher_id: int | None = None
    room_id: int | None = None
    class_id: int | None = None
    exclude_entry_id: int | None = None
    exclude_block_id: str | None = None


class ConflictCheckResult(BaseModel):
    conflicts: list[ConflictDetail]
