from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import PLANNER_ROLES, get_db, require_roles
from app.models.user import User
from app.schemas.activity import ActivityLogOut
from app.services.audit import list_activity

router = APIRouter()


@router.get("/activity/logs", response_model=list[ActivityLogOut])
def list_activity_logs(
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    action: str | None = Query(default=None, description="Action prefix, e.g. 'timetable.substitution'"),
    limit: int = Query(default=200, ge=1, le=500),
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> list[ActivityLogOut]:
    return list_activity(db, entity_type=entity_type, entity_id=entity_id, action_prefix=action, limit=limit)
