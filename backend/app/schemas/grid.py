from typing import Literal

from pydantic import BaseModel

from app.schemas.substitution import SubstitutionOut
from app.schemas.timetable import TimetableEntryOut


class GridCellOut(BaseModel):
    kind: Literal["entry", "substitution", "empty"]
    day: int
    period: int
    span: int
    entries: list[TimetableEntryOut] = []
    substitutions: list[SubstitutionOut] = []


class GridOut(BaseModel):
    year: int
    calendar_week: int
    days: int
    periods_per_day: int
    cells: list[GridCellOut]
