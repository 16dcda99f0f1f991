import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.models.publish_status import PublishStatus, TargetGroup

logger = logging.getLogger(__name__)


def _status_row(db: Session, target_group: TargetGroup, year: int, week: int) -> PublishStatus | None:
    return db.execute(
        select(PublishStatus).where(
            PublishStatus.year == year,
            PublishStatus.calendar_week == week,
            PublishStatus.target_group == target_group,
        )
    ).scalar_one_or_none()


def is_published(db: Session, target_group: TargetGroup, year: int, week: int) -> bool:
    return _status_row(db, TargetGroup(target_group), year, week) is not None


def publish(db: Session, target_group: TargetGroup, year: int, week: int, user_id: str | None = None) -> PublishStatus:
    target_group = TargetGroup(target_group)
    status = _status_row(db, target_group, year, week)
    if status is None:
        status = PublishStatus(year=year, calendar_week=week, target_group=target_group)
        db.add(status)
    status.published_at = datetime.now(timezone.utc)
    status.publisher_user_id = user_id
    db.flush()
    logger.info("Published %s/W%s for %s", year, week, target_group.value)
    return status


def unpublish(db: Session, target_group: TargetGroup, year: int, week: int) -> int:
    target_group = TargetGroup(target_group)
    removed = db.execute(
        delete(PublishStatus).where(
            PublishStatus.year == year,
            PublishStatus.calendar_week == week,
            PublishStatus.target_group == target_group,
        )
    ).rowcount or 0
    logger.info("Unpublished %s/W%s for %s", year, week, target_group.value)
    return removed


def get_publish_status(db: Session, year: int, week: int) -> dict[str, bool]:
    published = set(
        db.execute(
            select(PublishStatus.target_group).where(
                PublishStatus.year == year,
                PublishStatus.calendar_week == week,
            )
        ).scalars()
    )
    return {group.value: group in published for group in TargetGroup}
