from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import PLANNER_ROLES, get_current_user, get_db, require_roles, resolve_audience
from app.core.config import get_settings
from app.models.user import User, UserRole
from app.schemas.conflict import ConflictCheckRequest, ConflictCheckResult
from app.schemas.grid import GridCellOut, GridOut
from app.schemas.plan import ClassOut, PlanOut, ReferenceDataOut, TeacherLocationOut
from app.schemas.publish import PublishRequest, PublishStatusOut
from app.schemas.substitution import SubstitutionOut, SubstitutionSave
from app.schemas.timetable import (
    BlockSaveRequest,
    BlockSaveResult,
    CopyWeekRequest,
    CopyWeekResult,
    DeleteResult,
    MoveRequest,
    MoveResult,
)
from app.services import entry_store, propagation, publish_gate, substitution_store
from app.services.audit import log_activity, week_entity_id
from app.services.conflict_service import check_conflicts
from app.services.grid import RegularEntryCell, SubstitutionCell, build_grid
from app.services.moves import load_grid, move_cell
from app.services.plan import classes_for_teacher, get_plan, locate_teacher, reference_data

router = APIRouter()


def _grid_cell_out(cell) -> GridCellOut:
    if isinstance(cell, RegularEntryCell):
        return GridCellOut(kind=cell.kind, day=cell.day, period=cell.period, span=cell.span, entries=list(cell.entries))
    if isinstance(cell, SubstitutionCell):
        return GridCellOut(
            kind=cell.kind,
            day=cell.day,
            period=cell.period,
            span=cell.span,
            substitutions=list(cell.substitutions),
        )
    return GridCellOut(kind=cell.kind, day=cell.day, period=cell.period, span=cell.span)


@router.get("/plan", response_model=PlanOut)
def read_plan(
    year: int = Query(...),
    week: int = Query(..., ge=1, le=53),
    class_id: int | None = Query(default=None),
    teacher_id: int | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PlanOut:
    audience = resolve_audience(current_user, class_id, teacher_id)
    return get_plan(db, year, week, class_id=class_id, teacher_id=teacher_id, audience=audience)


@router.get("/grid", response_model=GridOut)
def read_grid(
    year: int = Query(...),
    week: int = Query(..., ge=1, le=53),
    class_id: int | None = Query(default=None),
    teacher_id: int | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> GridOut:
    settings = get_settings()
    audience = resolve_audience(current_user, class_id, teacher_id)
    if audience == "planner":
        grid, _, _ = load_grid(db, year, week, class_id=class_id, teacher_id=teacher_id)
    else:
        plan = get_plan(db, year, week, class_id=class_id, teacher_id=teacher_id, audience=audience)
        grid = build_grid(plan.entries, plan.substitutions, settings.periods_per_day, settings.school_days)
    return GridOut(
        year=year,
        calendar_week=week,
        days=grid.days,
        periods_per_day=grid.periods_per_day,
        cells=[_grid_cell_out(cell) for cell in grid.cells],
    )


@router.get("/reference", response_model=ReferenceDataOut)
def read_reference_data(
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> ReferenceDataOut:
    return reference_data(db)


@router.post("/conflicts/check", response_model=ConflictCheckResult)
def check_placement(
    payload: ConflictCheckRequest,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> ConflictCheckResult:
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
        exclude_entry_id=payload.exclude_entry_id,
        exclude_block_id=payload.exclude_block_id,
    )
    return ConflictCheckResult(conflicts=conflicts)


@router.post("/entries", response_model=BlockSaveResult)
def save_entry(
    payload: BlockSaveRequest,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> BlockSaveResult:
    result = entry_store.save_block(db, payload)
    log_activity(
        db,
        user=current_user,
        action="timetable.entry.save",
        entity_type="timetable_entry",
        entity_id=result.block_id or str(result.entry_ids[0]),
        details={
            "year": payload.year,
            "calendar_week": payload.calendar_week,
            "day_of_week": payload.day_of_week,
            "periods": result.periods,
            "class_id": payload.class_id,
            "replaced_entry_id": payload.entry_id,
            "replaced_block_id": payload.block_id,
        },
    )
    db.commit()
    return result


@router.delete("/entries/{entry_id}", response_model=DeleteResult)
def delete_entry(
    entry_id: int,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> DeleteResult:
    deleted = entry_store.delete_entry(db, entry_id)
    if deleted:
        log_activity(
            db,
            user=current_user,
            action="timetable.entry.delete",
            entity_type="timetable_entry",
            entity_id=str(entry_id),
        )
    db.commit()
    return DeleteResult(deleted=deleted)


@router.delete("/blocks/{block_id}", response_model=DeleteResult)
def delete_block(
    block_id: str,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> DeleteResult:
    deleted = entry_store.delete_block(db, block_id)
    if deleted:
        log_activity(
            db,
            user=current_user,
            action="timetable.block.delete",
            entity_type="timetable_block",
            entity_id=block_id,
            details={"deleted": deleted},
        )
    db.commit()
    return DeleteResult(deleted=deleted)


@router.post("/substitutions", response_model=SubstitutionOut)
def save_substitution(
    payload: SubstitutionSave,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> SubstitutionOut:
    result = substitution_store.save_substitution(db, payload)
    log_activity(
        db,
        user=current_user,
        action="timetable.substitution.save",
        entity_type="substitution",
        entity_id=str(result.id),
        details={
            "date": result.date.isoformat(),
            "period_number": result.period_number,
            "class_id": result.class_id,
            "substitution_type": result.substitution_type.value,
        },
    )
    db.commit()
    return result


@router.delete("/substitutions/{substitution_id}", response_model=DeleteResult)
def delete_substitution(
    substitution_id: int,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> DeleteResult:
    deleted = substitution_store.delete_substitution(db, substitution_id)
    if deleted:
        log_activity(
            db,
            user=current_user,
            action="timetable.substitution.delete",
            entity_type="substitution",
            entity_id=str(substitution_id),
        )
    db.commit()
    return DeleteResult(deleted=deleted)


@router.post("/move", response_model=MoveResult)
def move_grid_cell(
    payload: MoveRequest,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> MoveResult:
    result = move_cell(db, payload)
    log_activity(
        db,
        user=current_user,
        action="timetable.move",
        entity_type="timetable_week",
        entity_id=week_entity_id(payload.year, payload.calendar_week),
        details=payload.model_dump(),
    )
    db.commit()
    return result


@router.post("/copy-week", response_model=CopyWeekResult)
def copy_week(
    payload: CopyWeekRequest,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> CopyWeekResult:
    copied = propagation.copy_week(
        db,
        payload.source_year,
        payload.source_week,
        payload.target_year,
        payload.target_week,
        class_id=payload.class_id,
        teacher_id=payload.teacher_id,
    )
    if copied:
        log_activity(
            db,
            user=current_user,
            action="timetable.copy_week",
            entity_type="timetable_week",
            entity_id=week_entity_id(payload.target_year, payload.target_week),
            details={**payload.model_dump(), "copied": copied},
        )
    db.commit()
    return CopyWeekResult(copied=copied)


@router.get("/publish", response_model=PublishStatusOut)
def read_publish_status(
    year: int = Query(...),
    week: int = Query(..., ge=1, le=53),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PublishStatusOut:
    return PublishStatusOut(**publish_gate.get_publish_status(db, year, week))


@router.post("/publish", response_model=PublishStatusOut)
def publish_week(
    payload: PublishRequest,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> PublishStatusOut:
    publish_gate.publish(db, payload.target_group, payload.year, payload.calendar_week, current_user.id)
    log_activity(
        db,
        user=current_user,
        action="timetable.publish",
        entity_type="timetable_week",
        entity_id=week_entity_id(payload.year, payload.calendar_week),
        details={"target_group": payload.target_group.value},
    )
    db.commit()
    return PublishStatusOut(**publish_gate.get_publish_status(db, payload.year, payload.calendar_week))


@router.post("/unpublish", response_model=PublishStatusOut)
def unpublish_week(
    payload: PublishRequest,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> PublishStatusOut:
    if publish_gate.unpublish(db, payload.target_group, payload.year, payload.calendar_week):
        log_activity(
            db,
            user=current_user,
            action="timetable.unpublish",
            entity_type="timetable_week",
            entity_id=week_entity_id(payload.year, payload.calendar_week),
            details={"target_group": payload.target_group.value},
        )
    db.commit()
    return PublishStatusOut(**publish_gate.get_publish_status(db, payload.year, payload.calendar_week))


@router.get("/teachers/{teacher_id}/location", response_model=TeacherLocationOut)
def read_teacher_location(
    teacher_id: int,
    on_date: date = Query(..., alias="date"),
    period: int = Query(..., ge=1),
    current_user: User = Depends(require_roles(*PLANNER_ROLES, UserRole.teacher)),
    db: Session = Depends(get_db),
) -> TeacherLocationOut:
    return locate_teacher(db, teacher_id, on_date, period)


@router.get("/teachers/{teacher_id}/classes", response_model=list[ClassOut])
def read_teacher_classes(
    teacher_id: int,
    current_user: User = Depends(require_roles(*PLANNER_ROLES, UserRole.teacher)),
    db: Session = Depends(get_db),
) -> list[ClassOut]:
    return classes_for_teacher(db, teacher_id)
