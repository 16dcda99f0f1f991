from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import PLANNER_ROLES, get_db, require_roles
from app.core.exceptions import ValidationError
from app.models.user import User
from app.schemas.absence import AbsenceOut, AbsenceSave
from app.schemas.timetable import DeleteResult
from app.services import absences as absence_service
from app.services.audit import log_activity

router = APIRouter()


@router.get("/absences", response_model=list[AbsenceOut])
def list_absences(
    start: date = Query(...),
    end: date = Query(...),
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> list[AbsenceOut]:
    if start > end:
        raise ValidationError("start must not be after end")
    return absence_service.list_absences(db, start, end)


@router.post("/absences", response_model=AbsenceOut)
def save_absence(
    payload: AbsenceSave,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> AbsenceOut:
    absence = absence_service.save_absence(db, payload)
    log_activity(
        db,
        user=current_user,
        action="absence.save",
        entity_type="teacher_absence",
        entity_id=str(absence.id),
        details={
            "teacher_id": absence.teacher_id,
            "start_date": absence.start_date.isoformat(),
            "end_date": absence.end_date.isoformat(),
            "reason": absence.reason,
        },
    )
    db.commit()
    return AbsenceOut.model_validate(absence)


@router.delete("/absences/{absence_id}", response_model=DeleteResult)
def delete_absence(
    absence_id: int,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> DeleteResult:
    deleted = absence_service.delete_absence(db, absence_id)
    if deleted:
        log_activity(
            db,
            user=current_user,
            action="absence.delete",
            entity_type="teacher_absence",
            entity_id=str(absence_id),
        )
    db.commit()
    return DeleteResult(deleted=deleted)
