import pytest

from prepdesk.core.errors import ContextNotFound
from prepdesk.repositories import HierarchyRepository
from prepdesk.services.context_resolver import ContextResolver, is_past_questions


@pytest.fixture
def resolver(db):
    return ContextResolver(HierarchyRepository(db))


def test_exact_track_match_with_case_insensitive_exam_and_sub_category(resolver):
    result = resolver.resolve("wassce", "Biology", "Biology Weekly", "studyplan")
    assert result.success
    assert result.context.strategy == "exact"
    assert result.context.track.track_type == "weeks"
    assert result.context.exam.name == "WASSCE"
    assert result.context.denormalized_names() == {
        "exam_name": "WASSCE",
        "subject_name": "Biology",
        "track_name": "Biology Weekly",
        "sub_category_name": "studyplan",
    }


def test_unknown_track_falls_back_to_expected_track_type(resolver):
    result = resolver.resolve("wassce", "Biology", "BadTrackName", "PastQuestions", "years")
    assert result.success
    assert result.context.strategy == "track_type"
    assert result.context.track.name == "WASSCE Past Questions"


def test_past_questions_sub_category_falls_back_to_years_track(resolver):
    result = resolver.resolve("WASSCE", "Biology", "Anything", "pastquestions")
    assert result.success
    assert result.context.strategy == "past_questions"


def test_expected_type_is_scoped_to_sub_category(resolver):
    result = resolver.resolve("WASSCE", "Biology", "Nope", "StudyPlan", "years")
    assert not result.success
    assert result.level == "track"
    names = {t["name"] for t in result.available_tracks}
    assert names == {"Biology Weekly", "Daily Drill", "Semester Plan", "Monthly Review"}
    assert {t["track_type"] for t in result.available_tracks} == {"weeks", "days", "semester", "months"}


@pytest.mark.parametrize("names, level", [
    (("JAMB", "Biology", "Biology Weekly", "StudyPlan"), "exam"),
    (("WASSCE", "biology", "Biology Weekly", "StudyPlan"), "subject"),
    (("WASSCE", "Physics", "Biology Weekly", "StudyPlan"), "subject"),
    (("WASSCE", "Biology", "Biology Weekly", "Revision"), "sub_category"),
])
def test_reports_the_level_that_failed(resolver, names, level):
    result = resolver.resolve(*names)
    assert not result.success
    assert result.level == level
    assert result.available_tracks == []


def test_unwrap_raises_context_not_found_with_candidates(resolver):
    result = resolver.resolve("WASSCE", "Biology", "Nope", "StudyPlan")
    with pytest.raises(ContextNotFound) as excinfo:
        result.unwrap()
    body = excinfo.value.to_dict()
    assert body["level"] == "track"
    assert len(body["available_tracks"]) == 4


def test_inactive_track_is_ignored(db, resolver):
    track = resolver.resolve("WASSCE", "Biology", "Daily Drill", "StudyPlan").context.track
    track.is_active = False
    db.commit()
    assert not resolver.resolve("WASSCE", "Biology", "Daily Drill", "StudyPlan").success


def test_resolve_scope(resolver):
    scope = resolver.resolve_scope("wassce", "Biology")
    assert scope.subject.name == "Biology"
    with pytest.raises(ContextNotFound):
        resolver.resolve_scope("wassce", "Geography")


def test_is_past_questions():
    assert is_past_questions("pastquestions")
    assert is_past_questions("Past-Questions")
    assert is_past_questions("past_questions")
    assert not is_past_questions("studyplan")


def test_unknown_expected_track_type_is_a_failed_result(resolver):
    result = resolver.resolve("wassce", "Biology", "BadTrackName", "PastQuestions", "fortnights")
    assert not result.success
    assert result.level == "track_type"
    assert "fortnights" in result.message
    with pytest.raises(ContextNotFound):
        result.unwrap()
