from datetime import date
from typing import Literal

from pydantic import BaseModel

from app.schemas.absence import AbsenceOut
from app.schemas.publish import PublishStatusOut
from app.schemas.substitution import SubstitutionOut
from app.schemas.template import TemplateOut
from app.schemas.timetable import TimetableEntryOut

Audience = Literal["planner", "student", "teacher"]


class PlanOut(BaseModel):
    year: int
    calendar_week: int
    entries: list[TimetableEntryOut]
    substitutions: list[SubstitutionOut]
    publish_status: PublishStatusOut
    absences: list[AbsenceOut] = []


class ClassOut(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}


class TeacherOut(BaseModel):
    id: int
    shortcut: str
    first_name: str | None = None
    last_name: str | None = None

    model_config = {"from_attributes": True}


class SubjectOut(BaseModel):
    id: int
    shortcut: str
    name: str

    model_config = {"from_attributes": True}


class RoomOut(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}


class ReferenceDataOut(BaseModel):
    classes: list[ClassOut]
    teachers: list[TeacherOut]
    subjects: list[SubjectOut]
    rooms: list[RoomOut]
    templates: list[TemplateOut]


class TeacherLocationOut(BaseModel):
    teacher_id: int
    date: date
    period_number: int
    status: str
    entry: TimetableEntryOut | None = None
    substitution: SubstitutionOut | None = None

