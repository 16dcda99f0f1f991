from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import PLANNER_ROLES, get_db, require_roles
from app.models.user import User
from app.schemas.template import (
    ApplyTemplateResult,
    TemplateApplyRequest,
    TemplateDetailOut,
    TemplateFromWeekRequest,
    TemplateOut,
    TemplateSave,
)
from app.schemas.timetable import DeleteResult
from app.services import propagation
from app.services.audit import log_activity

router = APIRouter()


@router.get("", response_model=list[TemplateOut])
def list_templates(
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> list[TemplateOut]:
    return propagation.list_templates(db)


@router.post("", response_model=TemplateDetailOut, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: TemplateSave,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> TemplateDetailOut:
    template = propagation.save_template_details(db, None, payload.name, payload.description, payload.entries)
    log_activity(
        db,
        user=current_user,
        action="template.create",
        entity_type="timetable_template",
        entity_id=str(template.id),
        details={"name": template.name, "entries": len(payload.entries)},
    )
    db.commit()
    return propagation.load_template_details(db, template.id)


@router.post("/from-week", response_model=TemplateDetailOut, status_code=status.HTTP_201_CREATED)
def create_template_from_week(
    payload: TemplateFromWeekRequest,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> TemplateDetailOut:
    template = propagation.create_template_from_week(
        db,
        payload.name,
        payload.description,
        payload.year,
        payload.calendar_week,
        class_id=payload.class_id,
        teacher_id=payload.teacher_id,
    )
    log_activity(
        db,
        user=current_user,
        action="template.create_from_week",
        entity_type="timetable_template",
        entity_id=str(template.id),
        details={
            "name": template.name,
            "year": payload.year,
            "calendar_week": payload.calendar_week,
            "class_id": payload.class_id,
            "teacher_id": payload.teacher_id,
        },
    )
    db.commit()
    return propagation.load_template_details(db, template.id)


@router.get("/{template_id}", response_model=TemplateDetailOut)
def read_template(
    template_id: int,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> TemplateDetailOut:
    return propagation.load_template_details(db, template_id)


@router.put("/{template_id}", response_model=TemplateDetailOut)
def update_template(
    template_id: int,
    payload: TemplateSave,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> TemplateDetailOut:
    template = propagation.save_template_details(db, template_id, payload.name, payload.description, payload.entries)
    log_activity(
        db,
        user=current_user,
        action="template.update",
        entity_type="timetable_template",
        entity_id=str(template.id),
        details={"name": template.name, "entries": len(payload.entries)},
    )
    db.commit()
    return propagation.load_template_details(db, template.id)


@router.delete("/{template_id}", response_model=DeleteResult)
def delete_template(
    template_id: int,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> DeleteResult:
    deleted = propagation.delete_template(db, template_id)
    if deleted:
        log_activity(
            db,
            user=current_user,
            action="template.delete",
            entity_type="timetable_template",
            entity_id=str(template_id),
        )
    db.commit()
    return DeleteResult(deleted=deleted)


@router.post("/{template_id}/apply", response_model=ApplyTemplateResult)
def apply_template(
    template_id: int,
    payload: TemplateApplyRequest,
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
    db: Session = Depends(get_db),
) -> ApplyTemplateResult:
    result = propagation.apply_template(
        db,
        template_id,
        payload.year,
        payload.calendar_week,
        class_id=payload.class_id,
        teacher_id=payload.teacher_id,
    )
    log_activity(
        db,
        user=current_user,
        action="template.apply",
        entity_type="timetable_template",
        entity_id=str(template_id),
        details={
            **payload.model_dump(),
            "applied": result.applied_count,
            "skipped": result.skipped_count,
        },
    )
    db.commit()
    return result
