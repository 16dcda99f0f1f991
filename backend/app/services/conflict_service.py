import logging

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from app.models.reference import Room, SchoolClass, Teacher
from app.models.timetable_entry import TimetableEntry
from app.schemas.conflict import ConflictDetail
from app.services.absences import find_absence
from app.services.calendar import iso_week_date
from app.services.reference import teacher_shortcut

logger = logging.getLogger(__name__)


def _exclusion_clause(exclude_entry_id: int | None, exclude_block_id: str | None):
    clauses = []
    if exclude_entry_id is not None:
        clauses.append(TimetableEntry.id != exclude_entry_id)
    if exclude_block_id:
        clauses.append(or_(TimetableEntry.block_id.is_(None), TimetableEntry.block_id != exclude_block_id))
    return and_(*clauses) if clauses else None


def _first_occupant(db: Session, base_filters: list, resource_filter):
    query = (
        select(TimetableEntry, SchoolClass.name, Teacher.shortcut, Room.name)
        .outerjoin(SchoolClass, SchoolClass.id == TimetableEntry.class_id)
        .outerjoin(Teacher, Teacher.id == TimetableEntry.teacher_id)
        .outerjoin(Room, Room.id == TimetableEntry.room_id)
        .where(*base_filters, resource_filter)
        .order_by(TimetableEntry.period_number, TimetableEntry.id)
        .limit(1)
    )
    return db.execute(query).first()


def check_conflicts(
    db: Session,
    year: int,
    week: int,
    day: int,
    start_period: int,
    end_period: int,
    teacher_id: int | None = None,
    room_id: int | None = None,
    class_id: int | None = None,
    exclude_entry_id: int | None = None,
    exclude_block_id: str | None = None,
) -> list[ConflictDetail]:
    """Collect every absence, teacher and room clash for a proposed placement.

    Rows belonging to the entry or block being edited are excluded by id, so an
    unchanged edit never conflicts with itself. All rules are evaluated; the
    caller decides whether a non-empty result rejects the write.
    """
    slot_date = iso_week_date(year, week, day)
    conflicts: list[ConflictDetail] = []

    base_filters = [
        TimetableEntry.year == year,
        TimetableEntry.calendar_week == week,
        TimetableEntry.day_of_week == day,
        TimetableEntry.period_number.between(start_period, end_period),
    ]
    exclusion = _exclusion_clause(exclude_entry_id, exclude_block_id)
    if exclusion is not None:
        base_filters.append(exclusion)

    if teacher_id is not None:
        absence = find_absence(db, teacher_id, slot_date)
        if absence is not None:
            conflicts.append(
                ConflictDetail(
                    conflict_type="TEACHER_ABSENCE",
                    message=(
                        f"Teacher {teacher_shortcut(db, teacher_id)} is reported as "
                        f"'{absence.reason}' on {slot_date.isoformat()}"
                    ),
                    teacher_id=teacher_id,
                )
            )

        row = _first_occupant(db, base_filters, TimetableEntry.teacher_id == teacher_id)
        if row is not None:
            entry, occupying_class, occupying_teacher, occupying_room = row
            conflicts.append(
                ConflictDetail(
                    conflict_type="TEACHER_CONFLICT",
                    message=(
                        f"Teacher {occupying_teacher or teacher_id} is already assigned to class "
                        f"{occupying_class or entry.class_id} ({occupying_room or '-'}) in period {entry.period_number}"
                    ),
                    entry_id=entry.id,
                    teacher_id=teacher_id,
                    room_id=entry.room_id,
                    class_id=entry.class_id,
                )
            )

    if room_id is not None:
        row = _first_occupant(db, base_filters, TimetableEntry.room_id == room_id)
        if row is not None:
            entry, occupying_class, occupying_teacher, occupying_room = row
            conflicts.append(
                ConflictDetail(
                    conflict_type="ROOM_CONFLICT",
                    message=(
                        f"Room {occupying_room or room_id} is already booked by class "
                        f"{occupying_class or entry.class_id} (teacher: {occupying_teacher or '-'}) "
                        f"in period {entry.period_number}"
                    ),
                    entry_id=entry.id,
                    teacher_id=entry.teacher_id,
                    room_id=room_id,
                    class_id=entry.class_id,
                )
            )

    if conflicts:
        logger.info(
            "Found %d conflict(s) for %s/W%s day %s periods %s-%s",
            len(conflicts),
            year,
            week,
            day,
            start_period,
            end_period,
        )
    return conflicts
