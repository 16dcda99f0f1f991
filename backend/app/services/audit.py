from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.activity_log import ActivityLog
from app.models.user import User

logger = logging.getLogger(__name__)


def week_entity_id(year: int, week: int) -> str:
    return f"{year}-W{week:02d}"


def log_activity(
    db: Session,
    *,
    user: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict | None = None,
) -> None:
    """Stage an audit row in the caller's transaction; it is written on commit."""
    record = ActivityLog(
        user_id=user.id if user is not None else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    db.add(record)
    logger.debug("Activity %s on %s %s by %s", action, entity_type, entity_id, record.user_id)


def list_activity(
    db: Session,
    *,
    entity_type: str | None = None,
    entity_id: str | None = None,
    action_prefix: str | None = None,
    limit: int = 500,
) -> list[ActivityLog]:
    query = select(ActivityLog)
    if entity_type:
        query = query.where(ActivityLog.entity_type == entity_type)
    if entity_id:
        query = query.where(ActivityLog.entity_id == entity_id)
    if action_prefix:
        query = query.where(ActivityLog.action.startswith(action_prefix))
    query = query.order_by(ActivityLog.created_at.desc(), ActivityLog.id).limit(limit)
    return list(db.execute(query).scalars())
