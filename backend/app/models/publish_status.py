from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class TargetGroup(str, Enum):
    student = "student"
    teacher = "teacher"


class PublishStatus(Base):
    """Presence of a row means the week is visible to the target group."""

    __tablename__ = "timetable_publish_status"
    __table_args__ = (
        UniqueConstraint("year", "calendar_week", "target_group", name="uq_publish_status_week_group"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    calendar_week: Mapped[int] = mapped_column(Integer, nullable=False)
    target_group: Mapped[TargetGroup] = mapped_column(SAEnum(TargetGroup, name="publish_target_group"), nullable=False)
    publisher_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    published_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
