from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection

from app.core.config import get_settings
from app.db.bootstrap import REQUIRED_COLUMNS
from app.db.session import engine

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _schema_gaps(connection: Connection) -> tuple[list[str], dict[str, list[str]]]:
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables = sorted(name for name in REQUIRED_COLUMNS if name not in table_names)
    missing_columns: dict[str, list[str]] = {}
    for table_name, columns in REQUIRED_COLUMNS.items():
        if table_name in missing_tables:
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        gap = sorted(columns - existing)
        if gap:
            missing_columns[table_name] = gap
    return missing_tables, missing_columns


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": _now()}


@router.get("/health/ready")
def health_ready() -> JSONResponse:
    settings = get_settings()
    database = {"ok": True, "schema_ok": False, "missing_tables": [], "missing_columns": {}, "error": None}

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            missing_tables, missing_columns = _schema_gaps(connection)
        database.update(
            missing_tables=missing_tables,
            missing_columns=missing_columns,
            schema_ok=not missing_tables and not missing_columns,
        )
    except Exception as exc:  # pragma: no cover - environment dependent
        database.update(ok=False, error=str(exc))

    ready = database["ok"] and database["schema_ok"]
    payload = {
        "status": "ok" if ready else "degraded",
        "timestamp": _now(),
        "database": database,
        "school_week": {
            "school_days": settings.school_days,
            "periods_per_day": settings.periods_per_day,
            "timezone": settings.timezone,
        },
    }
    return JSONResponse(status_code=200 if ready else 503, content=payload)
