from datetime import date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, Enum as SAEnum, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base

# class_id used by school-wide special events.
ALL_CLASSES = 0


class SubstitutionType(str, Enum):
    replacement = "Vertretung"
    room_change = "Raumänderung"
    cancelled = "Entfall"
    special_event = "Sonderevent"


class Substitution(Base):
    __tablename__ = "substitutions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    period_number: Mapped[int] = mapped_column(Integer, nullable=False)
    class_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    substitution_type: Mapped[SubstitutionType] = mapped_column(
        SAEnum(SubstitutionType, name="substitution_type", values_callable=lambda items: [i.value for i in items]),
        nullable=False,
    )
    original_subject_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    new_teacher_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    new_subject_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    new_room_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    @property
    def day_of_week(self) -> int | None:
        weekday = self.date.isoweekday()
        return weekday if weekday <= 5 else None
