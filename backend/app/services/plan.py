import logging
from datetime import date, timedelta

from sqlalchemy import select, union
from sqlalchemy.orm import Session

from app.models.publish_status import TargetGroup
from app.models.reference import SchoolClass
from app.models.substitution import Substitution
from app.models.timetable_entry import TimetableEntry
from app.schemas.plan import (
    Audience,
    ClassOut,
    PlanOut,
    ReferenceDataOut,
    RoomOut,
    SubjectOut,
    TeacherLocationOut,
    TeacherOut,
)
from app.schemas.publish import PublishStatusOut
from app.schemas.template import TemplateOut
from app.services import reference
from app.services.absences import list_absences
from app.services.calendar import iso_position, iso_week_date
from app.services.entry_store import entity_filter, get_entries_by_ids, list_entries
from app.services.propagation import list_templates
from app.services.publish_gate import get_publish_status, is_published
from app.services.substitution_store import get_substitution, list_substitutions

logger = logging.getLogger(__name__)

FREE_PERIOD = "Freistunde"
TEACHING = "Unterricht"


def get_plan(
    db: Session,
    year: int,
    week: int,
    class_id: int | None = None,
    teacher_id: int | None = None,
    audience: Audience = "planner",
) -> PlanOut:
    """Week plan for one class or teacher.

    Student and teacher audiences see nothing until the week is published for
    them; the planner audience always sees the full plan plus absences.
    """
    entity_filter(class_id, teacher_id)
    monday = iso_week_date(year, week, 1)
    status = PublishStatusOut(**get_publish_status(db, year, week))

    if audience != "planner" and not is_published(db, TargetGroup(audience), year, week):
        logger.debug("Plan %s/W%s hidden from %s", year, week, audience)
        return PlanOut(year=year, calendar_week=week, entries=[], substitutions=[], publish_status=status)

    plan = PlanOut(
        year=year,
        calendar_week=week,
        entries=list_entries(db, year, week, class_id=class_id, teacher_id=teacher_id),
        substitutions=list_substitutions(db, year, week, class_id=class_id, teacher_id=teacher_id),
        publish_status=status,
    )
    if audience == "planner":
        plan.absences = list_absences(db, monday, monday + timedelta(days=6))
    return plan


def reference_data(db: Session) -> ReferenceDataOut:
    return ReferenceDataOut(
        classes=[ClassOut.model_validate(item) for item in reference.list_classes(db)],
        teachers=[TeacherOut.model_validate(item) for item in reference.list_teachers(db)],
        subjects=[SubjectOut.model_validate(item) for item in reference.list_subjects(db)],
        rooms=[RoomOut.model_validate(item) for item in reference.list_rooms(db)],
        templates=[TemplateOut.model_validate(item) for item in list_templates(db)],
    )


def locate_teacher(db: Session, teacher_id: int, on_date: date, period: int) -> TeacherLocationOut:
    """Where a teacher is during one period: covering, teaching, replaced or free."""
    location = TeacherLocationOut(teacher_id=teacher_id, date=on_date, period_number=period, status=FREE_PERIOD)

    covering = db.execute(
        select(Substitution.id)
        .where(
            Substitution.new_teacher_id == teacher_id,
            Substitution.date == on_date,
            Substitution.period_number == period,
        )
        .order_by(Substitution.id)
        .limit(1)
    ).scalar_one_or_none()
    if covering is not None:
        location.substitution = get_substitution(db, covering)
        location.status = location.substitution.substitution_type.value
        return location

    year, week, day = iso_position(on_date)
    entry_id = db.execute(
        select(TimetableEntry.id)
        .where(
            TimetableEntry.year == year,
            TimetableEntry.calendar_week == week,
            TimetableEntry.day_of_week == day,
            TimetableEntry.period_number == period,
            TimetableEntry.teacher_id == teacher_id,
        )
        .limit(1)
    ).scalar_one_or_none()
    if entry_id is None:
        return location

    location.entry = get_entries_by_ids(db, [entry_id])[0]
    location.status = TEACHING
    override = db.execute(
        select(Substitution.id)
        .where(
            Substitution.class_id == location.entry.class_id,
            Substitution.date == on_date,
            Substitution.period_number == period,
        )
        .order_by(Substitution.id)
        .limit(1)
    ).scalar_one_or_none()
    if override is not None:
        location.substitution = get_substitution(db, override)
        location.status = location.substitution.substitution_type.value
    return location


def classes_for_teacher(db: Session, teacher_id: int) -> list[SchoolClass]:
    class_ids = union(
        select(TimetableEntry.class_id).where(TimetableEntry.teacher_id == teacher_id),
        select(Substitution.class_id).where(Substitution.new_teacher_id == teacher_id),
    ).subquery()
    query = select(SchoolClass).where(SchoolClass.id.in_(select(class_ids.c.class_id))).order_by(SchoolClass.id)
    return list(db.execute(query).scalars())
