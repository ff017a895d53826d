import pytest

from prepdesk.core.errors import (
    Conflict, ItemNotFound, TopicValidationFailed, TrackTypeMismatch,
)
from prepdesk.models import QuestionItem, Topic
from prepdesk.services.questions import QuestionService
from prepdesk.services.topic_assignments import TopicAssignmentAggregator

from conftest import make_questions, resolve


@pytest.fixture
def questions(db):
    return QuestionService(db)


@pytest.fixture
def aggregator(db):
    return TopicAssignmentAggregator(db)


def topic_id(db, name):
    return db.query(Topic).filter(Topic.name == name).one().id


def test_year_upload_stores_direct_questions(db, questions, past_questions):
    result = questions.upload_year_questions(past_questions, "2020", make_questions("Genetics", 2))
    assert result.success
    assert [c["order_index"] for c in result.created] == [2020000000, 2020000001]
    stored = db.query(QuestionItem).order_by(QuestionItem.order_index).all()
    assert stored[0].name == "year2020_q1"
    assert stored[0].year == "2020"
    assert stored[0].topic_name == "Genetics"
    assert stored[0].item_metadata["year"] == 2020
    assert stored[0].incorrect_answers == ["B", "C", "D"]


def test_one_bad_topic_rejects_the_whole_batch(db, questions, past_questions):
    batch = make_questions("Genetics", 2) + make_questions("Astrology", 1, prefix="x")
    with pytest.raises(TopicValidationFailed) as excinfo:
        questions.upload_year_questions(past_questions, "2021", batch)
    assert excinfo.value.report["summary"]["valid"] == 2
    assert db.query(QuestionItem).count() == 0


def test_year_conflict_and_force(db, questions, past_questions):
    questions.upload_year_questions(past_questions, 2020, make_questions("Ecology", 3))
    with pytest.raises(Conflict) as excinfo:
        questions.upload_year_questions(past_questions, 2020, make_questions("Ecology", 1))
    assert excinfo.value.count == 3

    questions.upload_year_questions(past_questions, 2020, make_questions("Ecology", 1), force=True)
    assert questions.check_year_exists(past_questions, 2020).count == 1


def test_failed_replacement_keeps_old_questions(db, questions, past_questions):
    questions.upload_year_questions(past_questions, 2019, make_questions("Ecology", 2))
    broken = make_questions("Ecology", 1)
    broken[0]["question"] = ""
    result = questions.upload_year_questions(past_questions, 2019, broken, force=True)
    assert not result.success
    assert len(result.errors) == 1
    assert questions.check_year_exists(past_questions, 2019).count == 2


def test_direct_question_operations_need_a_years_track(questions, weekly):
    with pytest.raises(TrackTypeMismatch):
        questions.upload_year_questions(weekly, 2020, make_questions("Genetics", 1))


def test_delete_year(questions, past_questions):
    questions.upload_year_questions(past_questions, 2018, make_questions("Nutrition", 2))
    assert questions.delete_year(past_questions, 2018)["deleted_count"] == 2
    assert not questions.check_year_exists(past_questions, 2018).exists


def test_update_question_validates_new_topic(db, questions, past_questions):
    questions.upload_year_questions(past_questions, 2017, make_questions("Genetics", 1))
    stored = db.query(QuestionItem).one()

    with pytest.raises(TopicValidationFailed):
        questions.update_question(stored.id, {"topic": "Astrology"})

    updated = questions.update_question(stored.id, {"topic": "evolution", "explanation": "Because."})
    assert updated.topic_id == topic_id(db, "Evolution")
    assert updated.topic_name == "Evolution"
    assert updated.explanation == "Because."

    with pytest.raises(ItemNotFound):
        questions.update_question(999, {"explanation": "x"})


def test_force_replaced_year_drops_out_of_aggregation(db, questions, aggregator, weekly, past_questions):
    genetics = topic_id(db, "Genetics")
    result = aggregator.assign(weekly, "weeks", 3, [
        {"topic_name": "Genetics"},
        {"topic_name": "genetics"},
        {"topic_id": topic_id(db, "Ecology")},
    ])
    assert result["skipped_duplicates"] == ["Genetics"]

    questions.upload_year_questions(past_questions, 2020, make_questions("Genetics", 2))
    questions.upload_year_questions(past_questions, 2021, make_questions("Genetics", 3))
    questions.upload_year_questions(past_questions, 2021, make_questions("Ecology", 1, prefix="e"), force=True)

    assigned = aggregator.get_assignments(weekly, "weeks", 3)
    assert [a["topic"]["name"] for a in assigned] == ["Genetics", "Ecology"]

    aggregated = aggregator.get_questions_for_topic(weekly.exam_id, weekly.subject_id, genetics)
    assert aggregated["total_questions"] == 2
    assert aggregated["years"] == [{"year": "2020", "count": 2}]


def test_aggregation_is_the_union_of_years(db, questions, aggregator, weekly, past_questions):
    genetics = topic_id(db, "Genetics")
    aggregator.assign(weekly, "weeks", 3, [{"topic_name": "Genetics"}])
    questions.upload_year_questions(past_questions, 2020, make_questions("Genetics", 2))
    questions.upload_year_questions(past_questions, 2021, make_questions("Genetics", 3))

    aggregated = aggregator.get_questions_for_topic(weekly.exam_id, weekly.subject_id, genetics)
    assert aggregated["total_questions"] == 5
    assert aggregated["years"] == [{"year": "2021", "count": 3}, {"year": "2020", "count": 2}]
    assert [a["topic"]["id"] for a in aggregator.get_assignments(weekly, "weeks", 3)] == [genetics]

    via_period = aggregator.get_period_topic_questions(weekly, "weeks", 3, "genetics")
    assert via_period["total_questions"] == 5
    assert via_period["period"]["label"] == "Week 3"
    with pytest.raises(ItemNotFound):
        aggregator.get_period_topic_questions(weekly, "weeks", 3, "Ecology")


def test_assignment_conflict_replace_and_remove(db, aggregator, weekly):
    aggregator.assign(weekly, "weeks", 4, [{"topic_name": "Genetics"}])
    with pytest.raises(Conflict):
        aggregator.assign(weekly, "weeks", 4, [{"topic_name": "Ecology"}])

    result = aggregator.assign(weekly, "weeks", 4, [
        {"topic_name": "Ecology", "order_index": 2},
        {"topic_name": "Nutrition", "order_index": 1},
    ], force=True)
    assert result["replaced_count"] == 1
    assert [a["topic"]["name"] for a in result["assigned"]] == ["Nutrition", "Ecology"]

    replaced = aggregator.replace_assignments(weekly, "weeks", 4, [{"topic_name": "Evolution"}])
    assert [a["topic"]["name"] for a in replaced["assigned"]] == ["Evolution"]

    assert aggregator.remove_assignments(weekly, "weeks", 4)["deleted_count"] == 1
    assert aggregator.get_assignments(weekly, "weeks", 4) == []
    with pytest.raises(ItemNotFound):
        aggregator.replace_assignments(weekly, "weeks", 4, [{"topic_name": "Evolution"}])


def test_assignment_topics_must_belong_to_exam_and_subject(db, aggregator, weekly):
    chemistry_topic = topic_id(db, "Atomic Structure")
    with pytest.raises(TopicValidationFailed):
        aggregator.assign(weekly, "weeks", 5, [{"topic_name": "Genetics"}, {"topic_id": chemistry_topic}])
    assert aggregator.get_assignments(weekly, "weeks", 5) == []


def test_assignments_only_on_indirect_tracks(db, aggregator, past_questions):
    with pytest.raises(TrackTypeMismatch):
        aggregator.assign(past_questions, "years", 2020, [{"topic_name": "Genetics"}])
    monthly = resolve(db, "Monthly Review")
    with pytest.raises(TrackTypeMismatch):
        aggregator.assign(monthly, "months", 1, [{"topic_name": "Genetics"}])


def test_semester_assignments_are_keyed_by_label(db, aggregator, semester_plan):
    aggregator.assign(semester_plan, "semester", "First Semester", [{"topic_name": "Genetics"}])
    aggregator.assign(semester_plan, "semester", "Second Semester", [{"topic_name": "Ecology"}])
    first = aggregator.get_assignments(semester_plan, "semester", "First Semester")
    assert [a["topic"]["name"] for a in first] == ["Genetics"]
