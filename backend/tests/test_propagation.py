import pytest
from sqlalchemy import func, select

from app.core.exceptions import DuplicateNameError, NotFoundError, ValidationError
from app.models.template import TimetableTemplateEntry
from app.schemas.template import TemplateEntryPayload
from app.schemas.timetable import BlockSaveRequest
from app.services.entry_store import list_entries, save_block
from app.services.propagation import (
    apply_template,
    copy_week,
    create_template_from_week,
    delete_template,
    list_templates,
    load_template_details,
    save_template_details,
)
from conftest import (
    CLASS_5A,
    CLASS_5B,
    ROOM_101,
    ROOM_102,
    SUBJECT_DE,
    SUBJECT_MA,
    TEACHER_MUE,
    TEACHER_SCH,
)

YEAR, WEEK = 2025, 10


def lesson(db, *, day=1, start=1, end=1, class_id=CLASS_5A, teacher_id=TEACHER_MUE, room_id=ROOM_101, subject_id=SUBJECT_MA, week=WEEK):
    return save_block(
        db,
        BlockSaveRequest(
            year=YEAR,
            calendar_week=week,
            day_of_week=day,
            start_period=start,
            end_period=end,
            class_id=class_id,
            teacher_id=teacher_id,
            subject_id=subject_id,
            room_id=room_id,
        ),
    )


def fill_source_week(db):
    double = lesson(db, day=1, start=1, end=2)
    single = lesson(db, day=3, start=4, end=4, subject_id=SUBJECT_DE, room_id=ROOM_102)
    return double, single


def test_copy_week_remaps_blocks(db_session):
    double, _ = fill_source_week(db_session)

    copied = copy_week(db_session, YEAR, WEEK, YEAR, WEEK + 1, class_id=CLASS_5A)

    assert copied == 3
    target = list_entries(db_session, YEAR, WEEK + 1, class_id=CLASS_5A)
    assert [(entry.day_of_week, entry.period_number) for entry in target] == [(1, 1), (1, 2), (3, 4)]
    new_blocks = {entry.block_id for entry in target if entry.day_of_week == 1}
    assert len(new_blocks) == 1
    assert new_blocks != {double.block_id}
    assert target[2].block_id is None
    assert len(list_entries(db_session, YEAR, WEEK, class_id=CLASS_5A)) == 3


def test_copy_week_replaces_target_week(db_session):
    fill_source_week(db_session)
    lesson(db_session, day=5, start=6, end=6, week=WEEK + 1)

    copy_week(db_session, YEAR, WEEK, YEAR, WEEK + 1, class_id=CLASS_5A)

    target = list_entries(db_session, YEAR, WEEK + 1, class_id=CLASS_5A)
    assert (5, 6) not in {(entry.day_of_week, entry.period_number) for entry in target}


def test_copy_of_empty_week_leaves_target_untouched(db_session):
    lesson(db_session, day=2, start=3, end=3, week=WEEK + 1)

    assert copy_week(db_session, YEAR, WEEK, YEAR, WEEK + 1, class_id=CLASS_5A) == 0
    assert len(list_entries(db_session, YEAR, WEEK + 1, class_id=CLASS_5A)) == 1


def test_copy_week_requires_distinct_weeks_and_one_entity(db_session):
    with pytest.raises(ValidationError):
        copy_week(db_session, YEAR, WEEK, YEAR, WEEK, class_id=CLASS_5A)
    with pytest.raises(ValidationError):
        copy_week(db_session, YEAR, WEEK, YEAR, WEEK + 1)
    with pytest.raises(ValidationError):
        copy_week(db_session, YEAR, WEEK, YEAR, WEEK + 1, class_id=CLASS_5A, teacher_id=TEACHER_MUE)


def test_copy_week_rejects_week_missing_from_target_year(db_session):
    fill_source_week(db_session)

    with pytest.raises(ValidationError):
        copy_week(db_session, YEAR, WEEK, 2025, 53, class_id=CLASS_5A)

    assert len(list_entries(db_session, YEAR, WEEK, class_id=CLASS_5A)) == 3
    assert list_entries(db_session, 2025, 53, class_id=CLASS_5A) == []


def test_copy_week_for_teacher_only_touches_that_teacher(db_session):
    lesson(db_session, day=1, start=1, end=1)
    lesson(db_session, day=1, start=2, end=2, class_id=CLASS_5B, teacher_id=TEACHER_SCH, room_id=ROOM_102)

    assert copy_week(db_session, YEAR, WEEK, YEAR, WEEK + 1, teacher_id=TEACHER_MUE) == 1
    assert list_entries(db_session, YEAR, WEEK + 1, class_id=CLASS_5B) == []


def test_template_from_week_uses_template_block_refs(db_session):
    fill_source_week(db_session)

    template = create_template_from_week(db_session, " Grundplan 5a ", "Halbjahr 1", YEAR, WEEK, class_id=CLASS_5A)

    assert template.name == "Grundplan 5a"
    details = load_template_details(db_session, template.id)
    assert len(details.entries) == 3
    refs = {entry.block_ref for entry in details.entries if entry.day_of_week == 1}
    assert len(refs) == 1
    assert refs.pop().startswith("tpl_blk_")
    assert [item.name for item in list_templates(db_session)] == ["Grundplan 5a"]


def test_template_from_empty_week_is_invalid(db_session):
    with pytest.raises(ValidationError):
        create_template_from_week(db_session, "Leer", None, YEAR, WEEK, class_id=CLASS_5A)


def test_template_names_are_unique(db_session):
    fill_source_week(db_session)
    create_template_from_week(db_session, "Grundplan", None, YEAR, WEEK, class_id=CLASS_5A)

    with pytest.raises(DuplicateNameError):
        create_template_from_week(db_session, "Grundplan", None, YEAR, WEEK, class_id=CLASS_5A)


def test_applying_template_twice_gives_the_same_week(db_session):
    fill_source_week(db_session)
    template = create_template_from_week(db_session, "Grundplan", None, YEAR, WEEK, class_id=CLASS_5A)

    first = apply_template(db_session, template.id, YEAR, WEEK + 2, class_id=CLASS_5A)
    after_first = list_entries(db_session, YEAR, WEEK + 2, class_id=CLASS_5A)
    second = apply_template(db_session, template.id, YEAR, WEEK + 2, class_id=CLASS_5A)
    after_second = list_entries(db_session, YEAR, WEEK + 2, class_id=CLASS_5A)

    assert first.applied_count == second.applied_count == 3
    assert first.skipped_count == 0

    def shape(entries):
        return sorted((e.day_of_week, e.period_number, e.teacher_id, e.subject_id, e.room_id) for e in entries)

    assert shape(after_first) == shape(after_second)
    assert len({entry.block_id for entry in after_second if entry.day_of_week == 1}) == 1


def test_apply_to_other_class_rewrites_class(db_session):
    fill_source_week(db_session)
    template = create_template_from_week(db_session, "Grundplan", None, YEAR, WEEK, class_id=CLASS_5A)

    apply_template(db_session, template.id, YEAR, WEEK + 1, class_id=CLASS_5B)

    target = list_entries(db_session, YEAR, WEEK + 1, class_id=CLASS_5B)
    assert {entry.class_id for entry in target} == {CLASS_5B}


def test_teacher_apply_skips_entries_without_class(db_session):
    template = save_template_details(
        db_session,
        None,
        "Lehrerplan",
        None,
        [
            TemplateEntryPayload(day_of_week=1, period_number=1, class_id=CLASS_5A, subject_id=SUBJECT_MA),
            TemplateEntryPayload(day_of_week=2, period_number=2, subject_id=SUBJECT_DE),
        ],
    )
    template_entries = load_template_details(db_session, template.id).entries

    result = apply_template(db_session, template.id, YEAR, WEEK, teacher_id=TEACHER_SCH)

    assert result.applied_count == 1
    assert result.skipped_count == 1
    skipped = [outcome for outcome in result.outcomes if outcome.status == "skipped"]
    assert skipped[0].template_entry_id == template_entries[1].id
    assert skipped[0].entry_id is None
    placed = list_entries(db_session, YEAR, WEEK, teacher_id=TEACHER_SCH)
    assert [(entry.class_id, entry.teacher_id) for entry in placed] == [(CLASS_5A, TEACHER_SCH)]


def test_save_template_details_replaces_entries(db_session):
    template = save_template_details(
        db_session,
        None,
        "Entwurf",
        "  ",
        [TemplateEntryPayload(day_of_week=1, period_number=1, class_id=CLASS_5A, block_ref="")],
    )
    assert template.description is None

    updated = save_template_details(
        db_session,
        template.id,
        "Entwurf 2",
        "Neu",
        [
            TemplateEntryPayload(day_of_week=2, period_number=3, class_id=CLASS_5A, block_ref="tpl_blk_a"),
            TemplateEntryPayload(day_of_week=2, period_number=4, class_id=CLASS_5A, block_ref="tpl_blk_a"),
        ],
    )

    details = load_template_details(db_session, updated.id)
    assert details.name == "Entwurf 2"
    assert [(entry.day_of_week, entry.period_number) for entry in details.entries] == [(2, 3), (2, 4)]


def test_save_template_details_for_unknown_id(db_session):
    with pytest.raises(NotFoundError):
        save_template_details(db_session, 999, "Fehlt", None, [])


def test_delete_template_removes_entries(db_session):
    fill_source_week(db_session)
    template = create_template_from_week(db_session, "Grundplan", None, YEAR, WEEK, class_id=CLASS_5A)

    assert delete_template(db_session, template.id) == 1
    remaining = db_session.execute(select(func.count()).select_from(TimetableTemplateEntry)).scalar_one()
    assert remaining == 0
    with pytest.raises(NotFoundError):
        load_template_details(db_session, template.id)
    assert delete_template(db_session, template.id) == 0


def _post_lesson(client, headers, **overrides):
    body = {
        "year": YEAR,
        "calendar_week": WEEK,
        "day_of_week": 1,
        "start_period": 1,
        "end_period": 2,
        "class_id": CLASS_5A,
        "teacher_id": TEACHER_MUE,
        "subject_id": SUBJECT_MA,
        "room_id": ROOM_101,
    }
    body.update(overrides)
    response = client.post("/api/timetable/entries", json=body, headers=headers)
    assert response.status_code == 200
    return response.json()


def test_copy_week_endpoint(client, planner_headers):
    _post_lesson(client, planner_headers)

    response = client.post(
        "/api/timetable/copy-week",
        json={
            "source_year": YEAR,
            "source_week": WEEK,
            "target_year": YEAR,
            "target_week": WEEK + 1,
            "class_id": CLASS_5A,
        },
        headers=planner_headers,
    )
    assert response.status_code == 200
    assert response.json() == {"copied": 2}

    missing_entity = client.post(
        "/api/timetable/copy-week",
        json={"source_year": YEAR, "source_week": WEEK, "target_year": YEAR, "target_week": WEEK + 1},
        headers=planner_headers,
    )
    assert missing_entity.status_code == 422


def test_template_endpoints(client, planner_headers):
    _post_lesson(client, planner_headers)

    created = client.post(
        "/api/timetable/templates/from-week",
        json={"name": "Grundplan", "year": YEAR, "calendar_week": WEEK, "class_id": CLASS_5A},
        headers=planner_headers,
    )
    assert created.status_code == 201
    template = created.json()
    assert len(template["entries"]) == 2

    duplicate = client.post(
        "/api/timetable/templates",
        json={"name": "Grundplan", "entries": []},
        headers=planner_headers,
    )
    assert duplicate.status_code == 409

    listing = client.get("/api/timetable/templates", headers=planner_headers)
    assert [item["name"] for item in listing.json()] == ["Grundplan"]

    applied = client.post(
        f"/api/timetable/templates/{template['id']}/apply",
        json={"year": YEAR, "calendar_week": WEEK + 3, "class_id": CLASS_5B},
        headers=planner_headers,
    )
    assert applied.status_code == 200
    assert applied.json()["applied_count"] == 2

    renamed = client.put(
        f"/api/timetable/templates/{template['id']}",
        json={"name": "Grundplan neu", "entries": [{"day_of_week": 4, "period_number": 5, "class_id": CLASS_5A}]},
        headers=planner_headers,
    )
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Grundplan neu"
    assert len(renamed.json()["entries"]) == 1

    deleted = client.delete(f"/api/timetable/templates/{template['id']}", headers=planner_headers)
    assert deleted.json() == {"deleted": 1}
    assert client.get(f"/api/timetable/templates/{template['id']}", headers=planner_headers).status_code == 404
