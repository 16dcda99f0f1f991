import logging
from datetime import date

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.exceptions import NotFoundError, ValidationError
from app.models.reference import Teacher
from app.models.teacher_absence import TeacherAbsence
from app.schemas.absence import AbsenceOut, AbsenceSave

logger = logging.getLogger(__name__)


def _to_out(absence: TeacherAbsence, shortcut: str | None) -> AbsenceOut:
    out = AbsenceOut.model_validate(absence)
    out.teacher_shortcut = shortcut
    return out


def list_absences(db: Session, start: date, end: date) -> list[AbsenceOut]:
    """Absences overlapping [start, end]."""
    query = (
        select(TeacherAbsence, Teacher.shortcut)
        .outerjoin(Teacher, Teacher.id == TeacherAbsence.teacher_id)
        .where(TeacherAbsence.start_date <= end, TeacherAbsence.end_date >= start)
        .order_by(TeacherAbsence.start_date, Teacher.shortcut)
    )
    return [_to_out(absence, shortcut) for absence, shortcut in db.execute(query).all()]


def find_absence(db: Session, teacher_id: int, on_date: date) -> TeacherAbsence | None:
    query = (
        select(TeacherAbsence)
        .where(
            TeacherAbsence.teacher_id == teacher_id,
            TeacherAbsence.start_date <= on_date,
            TeacherAbsence.end_date >= on_date,
        )
        .order_by(TeacherAbsence.start_date)
        .limit(1)
    )
    return db.execute(query).scalar_one_or_none()


def save_absence(db: Session, payload: AbsenceSave) -> TeacherAbsence:
    allowed_reasons = get_settings().absence_reasons
    if payload.reason not in allowed_reasons:
        raise ValidationError(
            f"Invalid absence reason '{payload.reason}'",
            details={"allowed": allowed_reasons},
        )
    if payload.start_date > payload.end_date:
        raise ValidationError("Absence start date must not be after the end date")

    comment = (payload.comment or "").strip() or None
    if payload.id is not None:
        absence = db.get(TeacherAbsence, payload.id)
        if absence is None:
            raise NotFoundError("Absence", payload.id)
    else:
        absence = TeacherAbsence()
        db.add(absence)

    absence.teacher_id = payload.teacher_id
    absence.start_date = payload.start_date
    absence.end_date = payload.end_date
    absence.reason = payload.reason
    absence.comment = comment
    db.flush()
    logger.info(
        "Saved absence %s for teacher %s (%s to %s)",
        absence.id,
        absence.teacher_id,
        absence.start_date,
        absence.end_date,
    )
    return absence


def delete_absence(db: Session, absence_id: int) -> int:
    result = db.execute(delete(TeacherAbsence).where(TeacherAbsence.id == absence_id))
    return result.rowcount or 0
