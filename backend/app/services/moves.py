import logging

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.schemas.timetable import MoveRequest, MoveResult
from app.services.calendar import iso_week_date
from app.services.entry_store import list_entries, save_block
from app.services.grid import MovePlan, build_grid, plan_move, resolve_drag_source
from app.services.substitution_store import list_substitutions, save_substitution

logger = logging.getLogger(__name__)


def load_grid(db: Session, year: int, week: int, class_id: int | None = None, teacher_id: int | None = None):
    settings = get_settings()
    entries = list_entries(db, year, week, class_id=class_id, teacher_id=teacher_id)
    substitutions = list_substitutions(db, year, week, class_id=class_id, teacher_id=teacher_id)
    grid = build_grid(entries, substitutions, settings.periods_per_day, settings.school_days)
    return grid, entries, substitutions


def execute_move(db: Session, plan: MovePlan) -> MoveResult:
    """Run every save of a move inside the caller's transaction; the first failure propagates."""
    saved_entries = [save_block(db, request) for request in plan.entry_saves]
    saved_substitutions = [save_substitution(db, request) for request in plan.substitution_saves]
    return MoveResult(entries=saved_entries, substitutions=saved_substitutions)


def move_cell(db: Session, request: MoveRequest) -> MoveResult:
    grid, entries, substitutions = load_grid(
        db,
        request.year,
        request.calendar_week,
        class_id=request.class_id,
        teacher_id=request.teacher_id,
    )
    source = resolve_drag_source(grid, entries, substitutions, request.source_day, request.source_period)
    plan = plan_move(
        source,
        entries,
        request.target_day,
        request.target_period,
        request.year,
        request.calendar_week,
        iso_week_date(request.year, request.calendar_week, request.target_day),
        grid.periods_per_day,
    )
    logger.info(
        "Moving %s from day %s period %s to day %s period %s (%d entry save(s), %d substitution save(s))",
        source.kind,
        source.day,
        source.origin_period,
        request.target_day,
        request.target_period,
        len(plan.entry_saves),
        len(plan.substitution_saves),
    )
    return execute_move(db, plan)
