import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_db  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models.reference import Room, SchoolClass, Subject, Teacher  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402

# Seeded reference ids used throughout the tests.
CLASS_5A, CLASS_5B, CLASS_6A = 1, 2, 3
TEACHER_MUE, TEACHER_SCH, TEACHER_BEC = 1, 2, 3
SUBJECT_MA, SUBJECT_DE, SUBJECT_EN = 1, 2, 3
ROOM_101, ROOM_102, ROOM_AULA = 1, 2, 3


def seed_reference_data(db) -> None:
    db.add_all(
        [
            SchoolClass(id=CLASS_5A, name="5a"),
            SchoolClass(id=CLASS_5B, name="5b"),
            SchoolClass(id=CLASS_6A, name="6a"),
            Teacher(id=TEACHER_MUE, shortcut="MUE", first_name="Anna", last_name="Müller"),
            Teacher(id=TEACHER_SCH, shortcut="SCH", first_name="Jonas", last_name="Schmidt"),
            Teacher(id=TEACHER_BEC, shortcut="BEC", first_name="Lea", last_name="Becker"),
            Subject(id=SUBJECT_MA, shortcut="MA", name="Mathematik"),
            Subject(id=SUBJECT_DE, shortcut="DE", name="Deutsch"),
            Subject(id=SUBJECT_EN, shortcut="EN", name="Englisch"),
            Room(id=ROOM_101, name="101"),
            Room(id=ROOM_102, name="102"),
            Room(id=ROOM_AULA, name="Aula"),
        ]
    )


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    with TestingSessionLocal() as db:
        seed_reference_data(db)
        db.commit()

    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def make_headers(session_factory):
    """Create a user with the given role and return bearer headers for it."""
    counter = {"value": 0}

    def _make(role: UserRole, *, teacher_id: int | None = None, class_id: int | None = None) -> dict[str, str]:
        counter["value"] += 1
        with session_factory() as db:
            user = User(
                name=f"{role.value} {counter['value']}",
                email=f"{role.value}{counter['value']}@example.com",
                role=role,
                teacher_id=teacher_id,
                class_id=class_id,
            )
            db.add(user)
            db.commit()
            user_id = user.id
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _make


@pytest.fixture()
def planner_headers(make_headers):
    return make_headers(UserRole.planner)
