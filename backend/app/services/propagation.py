import logging
import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import DuplicateNameError, NotFoundError, ValidationError
from app.models.template import TimetableTemplate, TimetableTemplateEntry
from app.models.timetable_entry import TimetableEntry
from app.schemas.template import ApplyOutcome, ApplyTemplateResult, TemplateEntryPayload
from app.services.calendar import iso_week_date
from app.services.entry_store import (
    delete_week_for_entity,
    entity_filter,
    new_block_id,
    normalize_comment,
    persist_entries,
)

logger = logging.getLogger(__name__)


class BlockIdMap:
    """Maps each distinct source block identifier to one freshly generated identifier."""

    def __init__(self, factory):
        self._factory = factory
        self._mapping: dict[str, str] = {}

    def __call__(self, source: str | None) -> str | None:
        if not source:
            return None
        if source not in self._mapping:
            self._mapping[source] = self._factory()
        return self._mapping[source]


def _template_block_ref() -> str:
    return f"tpl_blk_{uuid.uuid4().hex[:16]}"


def _source_entries(db: Session, year: int, week: int, class_id: int | None, teacher_id: int | None):
    query = (
        select(TimetableEntry)
        .where(
            TimetableEntry.year == year,
            TimetableEntry.calendar_week == week,
            entity_filter(class_id, teacher_id),
        )
        .order_by(TimetableEntry.day_of_week, TimetableEntry.period_number, TimetableEntry.id)
    )
    return list(db.execute(query).scalars())


def copy_week(
    db: Session,
    source_year: int,
    source_week: int,
    target_year: int,
    target_week: int,
    class_id: int | None = None,
    teacher_id: int | None = None,
) -> int:
    """Replace the target week of one class or teacher with a copy of the source week.

    An empty source is a no-op: the target week keeps its entries.
    """
    entity_filter(class_id, teacher_id)
    if (source_year, source_week) == (target_year, target_week):
        raise ValidationError("Source and target week must differ")
    iso_week_date(source_year, source_week, 1)
    iso_week_date(target_year, target_week, 1)

    source = _source_entries(db, source_year, source_week, class_id, teacher_id)
    if not source:
        logger.info(
            "Copy %s/W%s -> %s/W%s skipped: source week is empty",
            source_year,
            source_week,
            target_year,
            target_week,
        )
        return 0

    removed = delete_week_for_entity(db, target_year, target_week, class_id, teacher_id)
    block_ids = BlockIdMap(new_block_id)
    copies = [
        TimetableEntry(
            year=target_year,
            calendar_week=target_week,
            day_of_week=entry.day_of_week,
            period_number=entry.period_number,
            class_id=entry.class_id,
            teacher_id=entry.teacher_id,
            subject_id=entry.subject_id,
            room_id=entry.room_id,
            block_id=block_ids(entry.block_id),
            comment=entry.comment,
        )
        for entry in source
    ]
    persist_entries(db, copies)
    logger.info(
        "Copied %d entries %s/W%s -> %s/W%s (replaced %d)",
        len(copies),
        source_year,
        source_week,
        target_year,
        target_week,
        removed,
    )
    return len(copies)


def _ensure_unique_name(db: Session, name: str, exclude_id: int | None = None) -> None:
    query = select(func.count()).select_from(TimetableTemplate).where(TimetableTemplate.name == name)
    if exclude_id is not None:
        query = query.where(TimetableTemplate.id != exclude_id)
    if db.execute(query).scalar_one() > 0:
        raise DuplicateNameError(name)


def _flush_template(db: Session, name: str) -> None:
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateNameError(name) from exc


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Template name must not be empty")
    return cleaned


def create_template(
    db: Session,
    name: str,
    description: str | None,
    source_entries: list[TimetableEntry],
) -> TimetableTemplate:
    name = _clean_name(name)
    if not source_entries:
        raise ValidationError("A template needs at least one entry")
    _ensure_unique_name(db, name)

    block_refs = BlockIdMap(_template_block_ref)
    template = TimetableTemplate(name=name, description=normalize_comment(description))
    template.entries = [
        TimetableTemplateEntry(
            day_of_week=entry.day_of_week,
            period_number=entry.period_number,
            class_id=entry.class_id,
            teacher_id=entry.teacher_id,
            subject_id=entry.subject_id,
            room_id=entry.room_id,
            block_ref=block_refs(entry.block_id),
            comment=entry.comment,
        )
        for entry in source_entries
    ]
    db.add(template)
    _flush_template(db, name)
    logger.info("Created template %s '%s' with %d entries", template.id, name, len(template.entries))
    return template


def create_template_from_week(
    db: Session,
    name: str,
    description: str | None,
    year: int,
    week: int,
    class_id: int | None = None,
    teacher_id: int | None = None,
) -> TimetableTemplate:
    source = _source_entries(db, year, week, class_id, teacher_id)
    if not source:
        raise ValidationError(f"Week {year}/W{week} has no entries to build a template from")
    return create_template(db, name, description, source)


def list_templates(db: Session) -> list[TimetableTemplate]:
    return list(db.execute(select(TimetableTemplate).order_by(TimetableTemplate.name)).scalars())


def load_template_details(db: Session, template_id: int) -> TimetableTemplate:
    template = db.execute(
        select(TimetableTemplate)
        .options(selectinload(TimetableTemplate.entries))
        .where(TimetableTemplate.id == template_id)
    ).scalar_one_or_none()
    if template is None:
        raise NotFoundError("Template", template_id)
    return template


def apply_template(
    db: Session,
    template_id: int,
    target_year: int,
    target_week: int,
    class_id: int | None = None,
    teacher_id: int | None = None,
) -> ApplyTemplateResult:
    """Replace the target week of one class or teacher with the template's pattern.

    Entries that cannot be placed for a teacher target (no class) are skipped and
    reported individually instead of aborting the whole apply.
    """
    entity_filter(class_id, teacher_id)
    template = load_template_details(db, template_id)
    if not template.entries:
        return ApplyTemplateResult(applied_count=0, skipped_count=0, outcomes=[])

    delete_week_for_entity(db, target_year, target_week, class_id, teacher_id)

    block_ids = BlockIdMap(new_block_id)
    outcomes: list[ApplyOutcome] = []
    placed: list[tuple[TimetableTemplateEntry, TimetableEntry]] = []
    for item in template.entries:
        if class_id is not None:
            entry_class, entry_teacher = class_id, item.teacher_id
        else:
            entry_class, entry_teacher = item.class_id, teacher_id
            if not entry_class:
                logger.warning(
                    "Template %s entry %s skipped for teacher %s: no class assigned",
                    template_id,
                    item.id,
                    teacher_id,
                )
                outcomes.append(
                    ApplyOutcome(template_entry_id=item.id, status="skipped", reason="Template entry has no class")
                )
                continue
        placed.append(
            (
                item,
                TimetableEntry(
                    year=target_year,
                    calendar_week=target_week,
                    day_of_week=item.day_of_week,
                    period_number=item.period_number,
                    class_id=entry_class,
                    teacher_id=entry_teacher,
                    subject_id=item.subject_id,
                    room_id=item.room_id,
                    block_id=block_ids(item.block_ref),
                    comment=item.comment,
                ),
            )
        )

    persist_entries(db, [entry for _, entry in placed])
    outcomes.extend(
        ApplyOutcome(template_entry_id=item.id, status="applied", entry_id=entry.id) for item, entry in placed
    )
    outcomes.sort(key=lambda outcome: outcome.template_entry_id)

    result = ApplyTemplateResult(
        applied_count=len(placed),
        skipped_count=len(outcomes) - len(placed),
        outcomes=outcomes,
    )
    logger.info(
        "Applied template %s to %s/W%s: %d applied, %d skipped",
        template_id,
        target_year,
        target_week,
        result.applied_count,
        result.skipped_count,
    )
    return result


def save_template_details(
    db: Session,
    template_id: int | None,
    name: str,
    description: str | None,
    entries: list[TemplateEntryPayload],
) -> TimetableTemplate:
    name = _clean_name(name)
    _ensure_unique_name(db, name, exclude_id=template_id)

    if template_id is not None:
        template = db.get(TimetableTemplate, template_id)
        if template is None:
            raise NotFoundError("Template", template_id)
        db.execute(delete(TimetableTemplateEntry).where(TimetableTemplateEntry.template_id == template_id))
        db.expire(template, ["entries"])
    else:
        template = TimetableTemplate()
        db.add(template)

    template.name = name
    template.description = normalize_comment(description)
    _flush_template(db, name)

    db.add_all(
        TimetableTemplateEntry(
            template_id=template.id,
            day_of_week=item.day_of_week,
            period_number=item.period_number,
            class_id=item.class_id or None,
            teacher_id=item.teacher_id,
            subject_id=item.subject_id,
            room_id=item.room_id,
            block_ref=item.block_ref or None,
            comment=normalize_comment(item.comment),
        )
        for item in entries
    )
    db.flush()
    db.expire(template, ["entries"])
    logger.info("Saved template %s '%s' with %d entries", template.id, name, len(entries))
    return template


def delete_template(db: Session, template_id: int) -> int:
    db.execute(delete(TimetableTemplateEntry).where(TimetableTemplateEntry.template_id == template_id))
    deleted = db.execute(delete(TimetableTemplate).where(TimetableTemplate.id == template_id)).rowcount or 0
    logger.info("Deleted template %s (%d row(s))", template_id, deleted)
    return deleted
