import pytest
from sqlalchemy import select

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.timetable_entry import TimetableEntry
from app.schemas.timetable import BlockSaveRequest
from app.services import entry_store
from app.services.entry_store import delete_block, delete_entry, list_entries, save_block
from conftest import CLASS_5A, CLASS_5B, ROOM_101, ROOM_102, SUBJECT_DE, SUBJECT_MA, TEACHER_MUE, TEACHER_SCH

YEAR, WEEK = 2025, 10


def block_request(**overrides) -> BlockSaveRequest:
    values = {
        "year": YEAR,
        "calendar_week": WEEK,
        "day_of_week": 1,
        "start_period": 2,
        "end_period": 4,
        "class_id": CLASS_5A,
        "teacher_id": TEACHER_MUE,
        "subject_id": SUBJECT_MA,
        "room_id": ROOM_101,
    }
    values.update(overrides)
    return BlockSaveRequest(**values)


def test_save_block_creates_one_row_per_period(db_session):
    result = save_block(db_session, block_request())

    entries = list_entries(db_session, YEAR, WEEK, class_id=CLASS_5A)
    assert len(entries) == 3
    assert {entry.block_id for entry in entries} == {result.block_id}
    assert result.block_id.startswith("block_")
    assert [entry.period_number for entry in entries] == [2, 3, 4]
    assert result.periods == [2, 3, 4]
    for entry in entries:
        assert entry.teacher_id == TEACHER_MUE
        assert entry.room_id == ROOM_101
        assert entry.subject_id == SUBJECT_MA
        assert entry.class_id == CLASS_5A
    assert entries[0].class_name == "5a"
    assert entries[0].teacher_shortcut == "MUE"
    assert entries[0].subject_shortcut == "MA"


def test_single_period_has_no_block_id(db_session):
    result = save_block(db_session, block_request(start_period=1, end_period=1, comment="  "))

    assert result.block_id is None
    assert len(result.entry_ids) == 1
    assert result.entries[0].comment is None


def test_comment_is_trimmed(db_session):
    result = save_block(db_session, block_request(start_period=1, end_period=1, comment="  Klassenarbeit "))
    assert result.entries[0].comment == "Klassenarbeit"


@pytest.mark.parametrize(
    "overrides",
    [
        {"start_period": 3, "end_period": 2},
        {"start_period": 0, "end_period": 2},
        {"end_period": 11},
        {"class_id": None},
        {"day_of_week": 6},
        {"calendar_week": 54},
    ],
)
def test_invalid_block_is_rejected(db_session, overrides):
    with pytest.raises(ValidationError):
        save_block(db_session, block_request(**overrides))
    assert db_session.execute(select(TimetableEntry)).first() is None


def test_editing_in_place_never_conflicts_with_itself(db_session):
    first = save_block(db_session, block_request())

    again = save_block(db_session, block_request(block_id=first.block_id, comment="moved nowhere"))

    entries = list_entries(db_session, YEAR, WEEK, class_id=CLASS_5A)
    assert len(entries) == 3
    assert {entry.block_id for entry in entries} == {again.block_id}
    assert again.block_id != first.block_id


def test_single_entry_edit_excludes_own_id(db_session):
    first = save_block(db_session, block_request(start_period=1, end_period=1))

    result = save_block(db_session, block_request(entry_id=first.entry_ids[0], start_period=1, end_period=1, room_id=ROOM_102))

    entries = list_entries(db_session, YEAR, WEEK, class_id=CLASS_5A)
    assert [entry.id for entry in entries] == result.entry_ids
    assert entries[0].room_id == ROOM_102


def test_overlapping_teacher_booking_is_rejected_without_writes(db_session):
    save_block(db_session, block_request())

    with pytest.raises(ConflictError) as exc_info:
        save_block(db_session, block_request(class_id=CLASS_5B, room_id=ROOM_102, start_period=4, end_period=5))

    assert [item.conflict_type for item in exc_info.value.conflicts] == ["TEACHER_CONFLICT"]
    assert exc_info.value.status_code == 409
    assert list_entries(db_session, YEAR, WEEK, class_id=CLASS_5B) == []


def test_two_entries_with_identical_values_but_new_id_conflict(db_session):
    save_block(db_session, block_request(start_period=1, end_period=1))

    with pytest.raises(ConflictError) as exc_info:
        save_block(db_session, block_request(start_period=1, end_period=1))
    assert {item.conflict_type for item in exc_info.value.conflicts} == {"TEACHER_CONFLICT", "ROOM_CONFLICT"}


def test_editing_a_vanished_entry_is_not_found(db_session):
    with pytest.raises(NotFoundError):
        save_block(db_session, block_request(entry_id=9999, start_period=1, end_period=1))
    assert db_session.execute(select(TimetableEntry)).first() is None


def test_editing_a_deleted_block_is_not_found(db_session):
    first = save_block(db_session, block_request())
    delete_block(db_session, first.block_id)

    with pytest.raises(NotFoundError):
        save_block(db_session, block_request(block_id=first.block_id, start_period=5, end_period=6))
    assert list_entries(db_session, YEAR, WEEK, class_id=CLASS_5A) == []


def test_growing_a_block_into_free_periods(db_session):
    first = save_block(db_session, block_request(start_period=2, end_period=3))

    grown = save_block(db_session, block_request(block_id=first.block_id, start_period=2, end_period=5))

    assert grown.periods == [2, 3, 4, 5]
    assert len(list_entries(db_session, YEAR, WEEK, class_id=CLASS_5A)) == 4


def test_delete_block_removes_only_that_block(db_session):
    keep = save_block(db_session, block_request(day_of_week=2))
    remove = save_block(db_session, block_request(day_of_week=1))

    assert delete_block(db_session, remove.block_id) == 3

    remaining = list_entries(db_session, YEAR, WEEK, class_id=CLASS_5A)
    assert len(remaining) == 3
    assert {entry.block_id for entry in remaining} == {keep.block_id}


def test_deletes_are_idempotent(db_session):
    result = save_block(db_session, block_request(start_period=1, end_period=1))

    assert delete_entry(db_session, result.entry_ids[0]) == 1
    assert delete_entry(db_session, result.entry_ids[0]) == 0
    assert delete_block(db_session, "block_missing") == 0


def test_storage_constraint_catches_racing_writer(db_session, monkeypatch):
    db_session.add(
        TimetableEntry(
            year=YEAR,
            calendar_week=WEEK,
            day_of_week=1,
            period_number=3,
            class_id=CLASS_5B,
            teacher_id=TEACHER_MUE,
            room_id=ROOM_102,
        )
    )
    db_session.commit()
    # The pre-check ran before the competing row was committed.
    monkeypatch.setattr(entry_store, "check_conflicts", lambda *args, **kwargs: [])

    with pytest.raises(ConflictError) as exc_info:
        save_block(db_session, block_request())

    assert [item.conflict_type for item in exc_info.value.conflicts] == ["STORAGE_CONFLICT"]
    assert list_entries(db_session, YEAR, WEEK, class_id=CLASS_5A) == []
    assert len(list_entries(db_session, YEAR, WEEK, class_id=CLASS_5B)) == 1


def test_list_entries_requires_exactly_one_entity(db_session):
    with pytest.raises(ValidationError):
        list_entries(db_session, YEAR, WEEK)
    with pytest.raises(ValidationError):
        list_entries(db_session, YEAR, WEEK, class_id=CLASS_5A, teacher_id=TEACHER_MUE)


def test_entry_endpoints(client, planner_headers):
    payload = {
        "year": YEAR,
        "calendar_week": WEEK,
        "day_of_week": 3,
        "start_period": 1,
        "end_period": 2,
        "class_id": CLASS_5A,
        "teacher_id": TEACHER_SCH,
        "subject_id": SUBJECT_DE,
        "room_id": ROOM_101,
    }
    created = client.post("/api/timetable/entries", json=payload, headers=planner_headers)
    assert created.status_code == 200
    body = created.json()
    assert len(body["entry_ids"]) == 2
    assert body["periods"] == [1, 2]

    clash = client.post(
        "/api/timetable/entries",
        json={**payload, "class_id": CLASS_5B, "room_id": ROOM_102},
        headers=planner_headers,
    )
    assert clash.status_code == 409
    assert clash.json()["details"]["conflicts"][0]["conflict_type"] == "TEACHER_CONFLICT"
    assert "SCH" in clash.json()["message"]

    invalid = client.post(
        "/api/timetable/entries",
        json={**payload, "start_period": 3, "end_period": 1},
        headers=planner_headers,
    )
    assert invalid.status_code == 400

    deleted = client.delete(f"/api/timetable/blocks/{body['block_id']}", headers=planner_headers)
    assert deleted.status_code == 200
    assert deleted.json() == {"deleted": 2}

    again = client.delete(f"/api/timetable/entries/{body['entry_ids'][0]}", headers=planner_headers)
    assert again.status_code == 200
    assert again.json() == {"deleted": 0}

    logs = client.get("/api/activity/logs", headers=planner_headers)
    assert logs.status_code == 200
    actions = [item["action"] for item in logs.json()]
    assert "timetable.entry.save" in actions
    assert "timetable.block.delete" in actions


def test_entry_writes_require_planner_role(client, make_headers):
    from app.models.user import UserRole

    teacher_headers = make_headers(UserRole.teacher, teacher_id=TEACHER_MUE)
    response = client.post(
        "/api/timetable/entries",
        json={
            "year": YEAR,
            "calendar_week": WEEK,
            "day_of_week": 1,
            "start_period": 1,
            "end_period": 1,
            "class_id": CLASS_5A,
        },
        headers=teacher_headers,
    )
    assert response.status_code == 403

    anonymous = client.delete("/api/timetable/entries/1")
    assert anonymous.status_code in {401, 403}
