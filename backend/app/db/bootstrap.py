from __future__ import annotations

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

import app.models  # noqa: F401
from app.db.base import Base
from app.db.session import engine as default_engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "role", "teacher_id", "class_id"},
    "timetable_entries": {
        "id",
        "year",
        "calendar_week",
        "day_of_week",
        "period_number",
        "class_id",
        "teacher_id",
        "room_id",
        "block_id",
    },
    "substitutions": {"id", "date", "period_number", "class_id", "substitution_type", "new_teacher_id"},
    "timetable_publish_status": {"id", "year", "calendar_week", "target_group"},
    "timetable_templates": {"id", "name"},
    "timetable_template_entries": {"id", "template_id", "block_ref"},
    "teacher_absences": {"id", "teacher_id", "start_date", "end_date", "reason"},
}


def _ensure_user_link_columns(engine: Engine) -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "users" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("users")}
        if "teacher_id" not in column_names:
            connection.execute(text("ALTER TABLE users ADD COLUMN teacher_id INTEGER"))
        if "class_id" not in column_names:
            connection.execute(text("ALTER TABLE users ADD COLUMN class_id INTEGER"))


def _assert_required_columns(engine: Engine) -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def ensure_runtime_schema_compatibility(engine: Engine | None = None) -> None:
    bind = engine or default_engine
    try:
        Base.metadata.create_all(bind=bind)
        _ensure_user_link_columns(bind)
        _assert_required_columns(bind)
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
