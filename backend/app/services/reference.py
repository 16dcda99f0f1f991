from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.reference import Room, SchoolClass, Subject, Teacher


def teacher_shortcut(db: Session, teacher_id: int | None) -> str:
    if teacher_id is None:
        return "?"
    shortcut = db.execute(select(Teacher.shortcut).where(Teacher.id == teacher_id)).scalar_one_or_none()
    return shortcut or str(teacher_id)


def list_classes(db: Session) -> list[SchoolClass]:
    return list(db.execute(select(SchoolClass).order_by(SchoolClass.name)).scalars())


def list_teachers(db: Session) -> list[Teacher]:
    return list(db.execute(select(Teacher).order_by(Teacher.shortcut)).scalars())


def list_subjects(db: Session) -> list[Subject]:
    return list(db.execute(select(Subject).order_by(Subject.name)).scalars())


def list_rooms(db: Session) -> list[Room]:
    return list(db.execute(select(Room).order_by(Room.name)).scalars())
