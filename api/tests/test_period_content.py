import pytest
from sqlalchemy.exc import IntegrityError

from prepdesk.core.errors import Conflict, ItemNotFound, PeriodOutOfRange, TrackTypeMismatch
from prepdesk.models import ContentItem, PeriodSlot
from prepdesk.repositories import PeriodSlotRepository
from prepdesk.services.period_content import PeriodContentService

from conftest import make_items, resolve

WEEK5 = "/api/content/weeks/wassce/Biology/Biology Weekly/StudyPlan/5"


@pytest.fixture
def service(db):
    return PeriodContentService(db)


def active_items(db, period_number=None):
    query = db.query(ContentItem).filter(ContentItem.is_active.is_(True))
    if period_number is not None:
        query = query.filter(ContentItem.period_number == period_number)
    return query.order_by(ContentItem.order_index).all()


def test_biology_weekly_scenario(db, service, weekly):
    items = make_items("intro", "cells", "quiz")

    first = service.upload_period_content(weekly, "weeks", 5, items)
    assert first.success
    assert [c["order_index"] for c in first.created] == [5000, 5001, 5002]
    original_ids = {item.id for item in active_items(db, 5)}
    assert len(original_ids) == 3

    with pytest.raises(Conflict) as excinfo:
        service.upload_period_content(weekly, "weeks", 5, items)
    assert excinfo.value.count == 3
    assert {i["name"] for i in excinfo.value.existing_items} == {"week5_intro", "week5_cells", "week5_quiz"}
    assert {item.id for item in active_items(db, 5)} == original_ids

    forced = service.upload_period_content(weekly, "weeks", 5, items, force=True)
    assert forced.success
    assert forced.replaced == 3
    current = active_items(db, 5)
    assert [item.order_index for item in current] == [5000, 5001, 5002]
    assert not original_ids & {item.id for item in current}
    assert db.query(ContentItem).count() == 6


def test_enriched_fields(db, service, weekly):
    service.upload_period_content(weekly, "weeks", "5", [
        {"name": "intro", "display_name": "Introduction", "metadata": {"week": 99, "level": "basic"}},
        {"name": "cells"},
    ])
    intro, cells = active_items(db, 5)
    assert intro.name == "week5_intro"
    assert intro.display_name == "Week 5 - Introduction"
    assert intro.description == "Week 5 content"
    assert intro.item_metadata == {"week": 5, "weekLabel": "Week 5", "level": "basic", "timeBasedContent": True}
    assert intro.track_name == "Biology Weekly"
    assert intro.exam_name == "WASSCE"
    assert intro.period_key == "week:5"
    assert cells.display_name == "Week 5 - cells"


def test_force_upload_is_idempotent(db, service, weekly):
    items = make_items("a", "b")
    service.upload_period_content(weekly, "weeks", 2, items, force=True)
    assert len(active_items(db, 2)) == 2
    service.upload_period_content(weekly, "weeks", 2, items, force=True)
    assert len(active_items(db, 2)) == 2


def test_periods_do_not_interleave(db, service, weekly):
    service.upload_period_content(weekly, "weeks", 2, make_items(*[f"item{i}" for i in range(12)]))
    service.upload_period_content(weekly, "weeks", 1, make_items("late"))
    ordered = [item.period_number for item in active_items(db)]
    assert ordered == sorted(ordered)


def test_period_must_fit_the_track(service, weekly):
    with pytest.raises(PeriodOutOfRange):
        service.upload_period_content(weekly, "weeks", 13, make_items("x"))
    with pytest.raises(TrackTypeMismatch):
        service.upload_period_content(weekly, "days", 1, make_items("x"))


def test_duplicate_names_in_one_batch_are_isolated(db, service, weekly):
    result = service.upload_period_content(weekly, "weeks", 3, make_items("same", "same", "other"))
    assert result.success
    assert len(result.created) == 2
    assert len(result.duplicates) == 1
    assert result.duplicates[0]["index"] == 1


def test_content_topics_are_optional_but_validated(db, service, weekly):
    result = service.upload_period_content(weekly, "weeks", 4, [
        {"name": "dna", "topic": "genetics"},
        {"name": "misc"},
    ])
    assert result.success
    dna = [i for i in active_items(db, 4) if i.name == "week4_dna"][0]
    assert dna.topic_id is not None


def test_check_period_exists(service, weekly):
    assert not service.check_period_exists(weekly, "weeks", 6).exists
    service.upload_period_content(weekly, "weeks", 6, make_items("x"))
    existing = service.check_period_exists(weekly, "weeks", 6)
    assert existing.exists and existing.count == 1


def test_semester_dual_key_match(db, service, semester_plan):
    service.upload_period_content(semester_plan, "semester", "First Semester", make_items("intro"))
    stored = active_items(db)[0]
    assert stored.item_metadata["semesterName"] == "First Semester"
    assert stored.name == "semester1_intro"
    assert stored.order_index == 100000

    assert service.check_period_exists(semester_plan, "semester", "First Semester").count == 1
    assert service.check_period_exists(semester_plan, "semester", "1").count == 1
    assert not service.check_period_exists(semester_plan, "semester", "Second Semester").exists

    with pytest.raises(Conflict):
        service.upload_period_content(semester_plan, "semester", "1", make_items("other"))
    result = service.upload_period_content(semester_plan, "semester", "Second Semester", make_items("intro"))
    assert result.success


def test_numeric_semester_force_releases_labelled_content(db, service, semester_plan):
    service.upload_period_content(semester_plan, "semester", "First Semester", make_items("intro"))
    service.upload_period_content(semester_plan, "semester", "1", make_items("fresh"), force=True)
    assert [item.name for item in active_items(db)] == ["semester1_fresh"]


def test_listed_semesters_keep_separate_order_spaces(db, service, semester_plan):
    first, second = service.list_periods(semester_plan)
    assert (first["number"], first["name_prefix"]) == (1, "semester1_")
    assert (second["number"], second["name_prefix"]) == (2, "semester2_")

    service.upload_period_content(semester_plan, "semester", first["label"], make_items("a", "b"))
    service.upload_period_content(semester_plan, "semester", second["label"], make_items("a", "b"))
    assert [item.order_index for item in active_items(db)] == [100000, 100001, 200000, 200001]
    assert [p["item_count"] for p in service.list_periods(semester_plan)] == [2, 2]

    assert service.delete_period(semester_plan, "semester", "1")["deleted_count"] == 2
    assert [item.name for item in active_items(db)] == ["semester2_a", "semester2_b"]
    assert [p["item_count"] for p in service.list_periods(semester_plan)] == [0, 2]


def test_replace_period(db, service, weekly):
    with pytest.raises(ItemNotFound):
        service.replace_period(weekly, "weeks", 8, make_items("x"))

    service.upload_period_content(weekly, "weeks", 8, make_items("a", "b"))
    result = service.replace_period(weekly, "weeks", 8, make_items("c"))
    assert result.success
    assert [item.name for item in active_items(db, 8)] == ["week8_c"]


def test_update_period_items_in_place(db, service, weekly):
    service.upload_period_content(weekly, "weeks", 9, make_items("a", "b"))
    result = service.replace_period(weekly, "weeks", 9, [
        {"name": "a", "display_name": "Alpha", "order_index": 7, "metadata": {"reviewed": True}},
        {"name": "zzz", "display_name": "Missing"},
    ], replace_all=False)
    assert len(result.updated) == 1
    assert len(result.errors) == 1
    alpha = [i for i in active_items(db, 9) if i.name == "week9_a"][0]
    assert alpha.display_name == "Week 9 - Alpha"
    assert alpha.order_index == 9007
    assert alpha.item_metadata["reviewed"] is True
    assert alpha.item_metadata["week"] == 9


def test_delete_period_is_soft(db, service, weekly):
    service.upload_period_content(weekly, "weeks", 10, make_items("a", "b"))
    assert service.delete_period(weekly, "weeks", 10)["deleted_count"] == 2
    assert active_items(db, 10) == []
    assert db.query(ContentItem).filter(ContentItem.period_number == 10).count() == 2
    with pytest.raises(ItemNotFound):
        service.delete_period(weekly, "weeks", 10)


def test_upload_after_items_deleted_one_by_one(db, service, weekly):
    service.upload_period_content(weekly, "weeks", 11, make_items("a"))
    service.delete_item(active_items(db, 11)[0].id)
    result = service.upload_period_content(weekly, "weeks", 11, make_items("b"))
    assert result.success
    slots = db.query(PeriodSlot).filter(PeriodSlot.period_key == "week:11", PeriodSlot.is_active.is_(True))
    assert slots.count() == 1


def test_storage_rejects_second_active_claim(db, weekly):
    slots = PeriodSlotRepository(db)
    slots.add("content", weekly, "week:12")
    with pytest.raises(IntegrityError):
        with db.begin_nested():
            slots.add("content", weekly, "week:12")


def test_stale_empty_check_loses_to_committed_writer(client, session_factory):
    session = session_factory()
    weekly = resolve(session, "Biology Weekly")
    writer = PeriodContentService(session)
    spec = writer.period_for(weekly, "weeks", 5)
    existing = writer.check_period_exists(weekly, "weeks", 5)
    assert not existing.exists
    records = writer.enricher.enrich(weekly, spec, make_items("mine"), "content")
    session.commit()

    # Another request fills the period between the check and the write
    assert client.post(WEEK5, json={"content": make_items("intro", "cells", "quiz")}).status_code == 201

    with pytest.raises(Conflict) as excinfo:
        writer._write(weekly, spec, existing, records)
    assert excinfo.value.count == 3
    assert len(writer.items.find_period_items(weekly, spec)) == 3
    session.close()


def test_stale_force_does_not_orphan_newer_content(client, session_factory):
    assert client.post(WEEK5, json={"content": make_items("old")}).status_code == 201
    session = session_factory()
    weekly = resolve(session, "Biology Weekly")
    writer = PeriodContentService(session)
    spec = writer.period_for(weekly, "weeks", 5)
    existing = writer.check_period_exists(weekly, "weeks", 5)
    assert existing.count == 1
    records = writer.enricher.enrich(weekly, spec, make_items("mine"), "content")
    session.commit()

    response = client.post(WEEK5, json={"content": make_items("new", "newer"), "force": True})
    assert response.status_code == 201

    with pytest.raises(Conflict):
        writer._write(weekly, spec, existing, records)
    names = [item.name for item in writer.items.find_period_items(weekly, spec)]
    assert names == ["week5_new", "week5_newer"]
    session.close()


def test_update_and_delete_single_item(db, service, weekly):
    service.upload_period_content(weekly, "weeks", 1, make_items("a"))
    item = active_items(db, 1)[0]
    updated = service.update_item(item.id, {"description": "Revised", "file_path": "/files/a.pdf"})
    assert updated.description == "Week 1: Revised"
    assert updated.file_path == "/files/a.pdf"
    service.delete_item(item.id)
    with pytest.raises(ItemNotFound):
        service.update_item(item.id, {"description": "again"})


def test_list_periods(service, weekly, past_questions):
    service.upload_period_content(weekly, "weeks", 2, make_items("a", "b"))
    periods = service.list_periods(weekly)
    assert len(periods) == 12
    assert periods[1]["label"] == "Week 2"
    assert periods[1]["item_count"] == 2
    assert periods[0]["item_count"] == 0
    assert periods[0]["access_mode"] == "direct"

    years = service.list_periods(past_questions, current_year=2026)
    assert years[0]["number"] == 2026
    assert years[-1]["number"] == 2006


def test_empty_upload_is_rejected(service, weekly):
    with pytest.raises(ValueError):
        service.upload_period_content(weekly, "weeks", 1, [])
