from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class TimetableEntry(Base):
    """One period of regular instruction. Multi-period lessons share a block_id."""

    __tablename__ = "timetable_entries"
    __table_args__ = (
        UniqueConstraint(
            "teacher_id",
            "year",
            "calendar_week",
            "day_of_week",
            "period_number",
            name="uq_timetable_entries_teacher_slot",
        ),
        UniqueConstraint(
            "room_id",
            "year",
            "calendar_week",
            "day_of_week",
            "period_number",
            name="uq_timetable_entries_room_slot",
        ),
        Index("ix_timetable_entries_week", "year", "calendar_week", "day_of_week"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    calendar_week: Mapped[int] = mapped_column(Integer, nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    period_number: Mapped[int] = mapped_column(Integer, nullable=False)
    class_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    teacher_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    subject_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    room_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    block_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
