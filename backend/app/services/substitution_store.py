import logging
from datetime import timedelta

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session, aliased

from app.core.config import get_settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.reference import Room, SchoolClass, Subject, Teacher
from app.models.substitution import ALL_CLASSES, Substitution
from app.models.timetable_entry import TimetableEntry
from app.schemas.conflict import ConflictDetail
from app.schemas.substitution import SubstitutionOut, SubstitutionSave
from app.services.absences import find_absence
from app.services.calendar import is_school_day, iso_position, iso_week_date
from app.services.conflict_service import check_conflicts
from app.services.entry_store import normalize_comment
from app.services.reference import teacher_shortcut

logger = logging.getLogger(__name__)

NewTeacher = aliased(Teacher)


def _substitution_query():
    return (
        select(Substitution, SchoolClass.name, NewTeacher.shortcut, Subject.shortcut, Room.name)
        .outerjoin(SchoolClass, SchoolClass.id == Substitution.class_id)
        .outerjoin(NewTeacher, NewTeacher.id == Substitution.new_teacher_id)
        .outerjoin(Subject, Subject.id == Substitution.new_subject_id)
        .outerjoin(Room, Room.id == Substitution.new_room_id)
        .order_by(Substitution.date, Substitution.period_number, Substitution.id)
    )


def _substitution_out(row) -> SubstitutionOut:
    substitution, class_name, new_teacher_shortcut, new_subject_shortcut, new_room_name = row
    out = SubstitutionOut.model_validate(substitution)
    out.class_name = class_name
    out.new_teacher_shortcut = new_teacher_shortcut
    out.new_subject_shortcut = new_subject_shortcut
    out.new_room_name = new_room_name
    return out


def get_substitution(db: Session, substitution_id: int) -> SubstitutionOut:
    row = db.execute(_substitution_query().where(Substitution.id == substitution_id)).first()
    if row is None:
        raise NotFoundError("Substitution", substitution_id)
    return _substitution_out(row)


def list_substitutions(
    db: Session,
    year: int,
    week: int,
    class_id: int | None = None,
    teacher_id: int | None = None,
) -> list[SubstitutionOut]:
    """Substitutions dated inside the ISO week for one class or one teacher.

    The class view includes school-wide events. The teacher view includes rows the
    teacher covers and rows that override one of the teacher's regular lessons.
    """
    if (class_id is None) == (teacher_id is None):
        raise ValidationError("Exactly one of class_id or teacher_id is required")

    monday = iso_week_date(year, week, 1)
    query = _substitution_query().where(Substitution.date.between(monday, monday + timedelta(days=6)))

    if class_id is not None:
        query = query.where(or_(Substitution.class_id == class_id, Substitution.class_id == ALL_CLASSES))
        return [_substitution_out(row) for row in db.execute(query).all()]

    taught_slots = {
        (entry_class, day, period)
        for entry_class, day, period in db.execute(
            select(TimetableEntry.class_id, TimetableEntry.day_of_week, TimetableEntry.period_number).where(
                TimetableEntry.year == year,
                TimetableEntry.calendar_week == week,
                TimetableEntry.teacher_id == teacher_id,
            )
        ).all()
    }
    result: list[SubstitutionOut] = []
    for row in db.execute(query).all():
        substitution = row[0]
        covers = substitution.new_teacher_id == teacher_id
        overrides = (
            substitution.class_id,
            substitution.date.isoweekday(),
            substitution.period_number,
        ) in taught_slots
        if covers or overrides:
            result.append(_substitution_out(row))
    return result


def _new_teacher_conflicts(db: Session, payload: SubstitutionSave) -> list[ConflictDetail]:
    teacher_id = payload.new_teacher_id
    conflicts: list[ConflictDetail] = []

    absence = find_absence(db, teacher_id, payload.date)
    if absence is not None:
        conflicts.append(
            ConflictDetail(
                conflict_type="ABSENCE_CONFLICT",
                message=(
                    f"Substitute teacher {teacher_shortcut(db, teacher_id)} is reported as "
                    f"'{absence.reason}' on {payload.date.isoformat()}"
                ),
                teacher_id=teacher_id,
            )
        )

    other_query = select(Substitution).where(
        Substitution.new_teacher_id == teacher_id,
        Substitution.date == payload.date,
        Substitution.period_number == payload.period_number,
        Substitution.class_id != payload.class_id,
    )
    if payload.id is not None:
        other_query = other_query.where(Substitution.id != payload.id)
    other = db.execute(other_query.limit(1)).scalar_one_or_none()
    if other is not None:
        conflicts.append(
            ConflictDetail(
                conflict_type="SUBSTITUTION_CONFLICT",
                message=(
                    f"Teacher {teacher_shortcut(db, teacher_id)} already covers another substitution "
                    f"in period {payload.period_number} on {payload.date.isoformat()}"
                ),
                substitution_id=other.id,
                teacher_id=teacher_id,
                class_id=other.class_id,
            )
        )

    if is_school_day(payload.date):
        year, week, day = iso_position(payload.date)
        regular = check_conflicts(
            db,
            year,
            week,
            day,
            payload.period_number,
            payload.period_number,
            teacher_id=teacher_id,
            class_id=payload.class_id,
        )
        # Absences are reported above; a regular lesson in the same class is the one being replaced.
        conflicts.extend(
            conflict
            for conflict in regular
            if conflict.conflict_type == "TEACHER_CONFLICT" and conflict.class_id != payload.class_id
        )
    return conflicts


def save_substitution(db: Session, payload: SubstitutionSave) -> SubstitutionOut:
    periods_per_day = get_settings().periods_per_day
    if not 1 <= payload.period_number <= periods_per_day:
        raise ValidationError(
            f"Period {payload.period_number} is outside the school day (1-{periods_per_day})",
            details={"period_number": payload.period_number},
        )
    if payload.class_id < 0:
        raise ValidationError("A class is required")

    if payload.new_teacher_id is not None:
        conflicts = _new_teacher_conflicts(db, payload)
        if conflicts:
            raise ConflictError(conflicts)

    if payload.id is not None:
        substitution = db.get(Substitution, payload.id)
        if substitution is None:
            raise NotFoundError("Substitution", payload.id)
    else:
        substitution = Substitution()
        db.add(substitution)

    substitution.date = payload.date
    substitution.period_number = payload.period_number
    substitution.class_id = payload.class_id
    substitution.substitution_type = payload.substitution_type
    substitution.original_subject_id = payload.original_subject_id
    substitution.new_teacher_id = payload.new_teacher_id
    substitution.new_subject_id = payload.new_subject_id
    substitution.new_room_id = payload.new_room_id
    substitution.comment = normalize_comment(payload.comment)
    db.flush()

    logger.info(
        "Saved substitution %s (%s) for class %s on %s period %s",
        substitution.id,
        substitution.substitution_type.value,
        substitution.class_id,
        substitution.date,
        substitution.period_number,
    )
    return get_substitution(db, substitution.id)


def delete_substitution(db: Session, substitution_id: int) -> int:
    deleted = db.execute(delete(Substitution).where(Substitution.id == substitution_id)).rowcount or 0
    logger.info("Deleted substitution %s (%d row(s))", substitution_id, deleted)
    return deleted
