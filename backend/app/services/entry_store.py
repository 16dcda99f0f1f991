import logging
import uuid
from collections.abc import Iterable

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.reference import Room, SchoolClass, Subject, Teacher
from app.models.timetable_entry import TimetableEntry
from app.schemas.conflict import ConflictDetail
from app.schemas.timetable import BlockSaveRequest, BlockSaveResult, TimetableEntryOut
from app.services.conflict_service import check_conflicts

logger = logging.getLogger(__name__)


def new_block_id(prefix: str = "block") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def normalize_comment(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def validate_slot(week: int, day: int, start_period: int, end_period: int) -> None:
    settings = get_settings()
    if start_period < 1 or end_period < 1 or start_period > end_period:
        raise ValidationError(
            "Invalid period range (start and end must be > 0 and start <= end)",
            details={"start_period": start_period, "end_period": end_period},
        )
    if end_period > settings.periods_per_day:
        raise ValidationError(
            f"Period {end_period} is outside the school day (1-{settings.periods_per_day})",
            details={"end_period": end_period},
        )
    if not 1 <= day <= settings.school_days:
        raise ValidationError(f"Invalid day of week: {day}", details={"day_of_week": day})
    if not 1 <= week <= 53:
        raise ValidationError(f"Invalid calendar week: {week}", details={"calendar_week": week})


def _entry_query():
    return (
        select(TimetableEntry, SchoolClass.name, Teacher.shortcut, Subject.shortcut, Room.name)
        .outerjoin(SchoolClass, SchoolClass.id == TimetableEntry.class_id)
        .outerjoin(Teacher, Teacher.id == TimetableEntry.teacher_id)
        .outerjoin(Subject, Subject.id == TimetableEntry.subject_id)
        .outerjoin(Room, Room.id == TimetableEntry.room_id)
        .order_by(TimetableEntry.day_of_week, TimetableEntry.period_number, TimetableEntry.id)
    )


def _entry_out(row) -> TimetableEntryOut:
    entry, class_name, teacher_shortcut, subject_shortcut, room_name = row
    out = TimetableEntryOut.model_validate(entry)
    out.class_name = class_name
    out.teacher_shortcut = teacher_shortcut
    out.subject_shortcut = subject_shortcut
    out.room_name = room_name
    return out


def entity_filter(class_id: int | None = None, teacher_id: int | None = None):
    if (class_id is None) == (teacher_id is None):
        raise ValidationError("Exactly one of class_id or teacher_id is required")
    if class_id is not None:
        return TimetableEntry.class_id == class_id
    return TimetableEntry.teacher_id == teacher_id


def list_entries(
    db: Session,
    year: int,
    week: int,
    class_id: int | None = None,
    teacher_id: int | None = None,
) -> list[TimetableEntryOut]:
    query = _entry_query().where(
        TimetableEntry.year == year,
        TimetableEntry.calendar_week == week,
        entity_filter(class_id, teacher_id),
    )
    return [_entry_out(row) for row in db.execute(query).all()]


def get_entries_by_ids(db: Session, entry_ids: Iterable[int]) -> list[TimetableEntryOut]:
    ids = list(entry_ids)
    if not ids:
        return []
    return [_entry_out(row) for row in db.execute(_entry_query().where(TimetableEntry.id.in_(ids))).all()]


def delete_week_for_entity(
    db: Session,
    year: int,
    week: int,
    class_id: int | None = None,
    teacher_id: int | None = None,
) -> int:
    result = db.execute(
        delete(TimetableEntry).where(
            TimetableEntry.year == year,
            TimetableEntry.calendar_week == week,
            entity_filter(class_id, teacher_id),
        )
    )
    return result.rowcount or 0


def persist_entries(db: Session, entries: list[TimetableEntry]) -> list[TimetableEntry]:
    """Insert rows and flush; a unique-slot violation becomes a ConflictError."""
    db.add_all(entries)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Storage constraint rejected timetable write: %s", exc.orig)
        raise ConflictError(
            [
                ConflictDetail(
                    conflict_type="STORAGE_CONFLICT",
                    message="The teacher or room was booked for this slot by a concurrent change",
                )
            ]
        ) from exc
    return entries


def save_block(db: Session, payload: BlockSaveRequest) -> BlockSaveResult:
    """Replace an entry or block with one row per period of the requested range."""
    if payload.class_id is None:
        raise ValidationError("A class is required")
    validate_slot(payload.calendar_week, payload.day_of_week, payload.start_period, payload.end_period)

    conflicts = check_conflicts(
        db,
        payload.year,
        payload.calendar_week,
        payload.day_of_week,
        payload.start_period,
        payload.end_period,
        teacher_id=payload.teacher_id,
        room_id=payload.room_id,
        class_id=payload.class_id,
        exclude_entry_id=payload.entry_id,
        exclude_block_id=payload.block_id,
    )
    if conflicts:
        raise ConflictError(conflicts)

    replaced = 0
    scope = []
    if payload.entry_id is not None:
        scope.append(TimetableEntry.id == payload.entry_id)
    if payload.block_id:
        scope.append(TimetableEntry.block_id == payload.block_id)
    if scope:
        replaced = db.execute(delete(TimetableEntry).where(or_(*scope))).rowcount or 0
        if not replaced:
            # Updates never resurrect an entry or block deleted in the meantime.
            raise NotFoundError("TimetableEntry", payload.block_id or payload.entry_id)

    block_id = new_block_id() if payload.end_period > payload.start_period else None
    comment = normalize_comment(payload.comment)
    rows = [
        TimetableEntry(
            year=payload.year,
            calendar_week=payload.calendar_week,
            day_of_week=payload.day_of_week,
            period_number=period,
            class_id=payload.class_id,
            teacher_id=payload.teacher_id,
            subject_id=payload.subject_id,
            room_id=payload.room_id,
            block_id=block_id,
            comment=comment,
        )
        for period in range(payload.start_period, payload.end_period + 1)
    ]
    persist_entries(db, rows)

    entry_ids = [row.id for row in rows]
    logger.info(
        "Saved %d period(s) for class %s on %s/W%s day %s (replaced %d)",
        len(rows),
        payload.class_id,
        payload.year,
        payload.calendar_week,
        payload.day_of_week,
        replaced,
    )
    return BlockSaveResult(
        block_id=block_id,
        entry_ids=entry_ids,
        periods=[row.period_number for row in rows],
        entries=get_entries_by_ids(db, entry_ids),
    )


def delete_entry(db: Session, entry_id: int) -> int:
    deleted = db.execute(delete(TimetableEntry).where(TimetableEntry.id == entry_id)).rowcount or 0
    logger.info("Deleted entry %s (%d row(s))", entry_id, deleted)
    return deleted


def delete_block(db: Session, block_id: str) -> int:
    deleted = db.execute(delete(TimetableEntry).where(TimetableEntry.block_id == block_id)).rowcount or 0
    logger.info("Deleted block %s (%d row(s))", block_id, deleted)
    return deleted
