import pytest

from prepdesk.core.errors import PeriodCapacityExceeded, PeriodOutOfRange, TrackTypeMismatch
from prepdesk.core.periods import (
    AccessMode, ORDER_MULTIPLIERS, TrackType, encode, ensure_period_fits, enumerate_periods,
    parse_leading_int, question_access_mode,
)


@pytest.mark.parametrize("period_type, identifier, key, label, prefix, multiplier", [
    ("weeks", "3", "week", "Week 3", "week3_", 1000),
    ("days", "7", "day", "Day 7", "day7_", 100),
    ("months", "2", "month", "February", "month2_", 10000),
    ("semester", "First Semester", "semester", "First Semester", "semester1_", 100000),
    ("years", "2021", "year", "2021", "year2021_", 1000000),
])
def test_codec_table(period_type, identifier, key, label, prefix, multiplier):
    spec = encode(period_type, identifier)
    assert spec.metadata_key == key
    assert spec.label == label
    assert spec.name_prefix == prefix
    assert spec.order_multiplier == multiplier
    assert spec.display_prefix == f"{label} - "


def test_multipliers_are_pairwise_distinct():
    values = list(ORDER_MULTIPLIERS.values())
    assert len(values) == len(set(values)) == len(TrackType)


def test_week_order_index_and_capacity():
    spec = encode("weeks", 5)
    assert [spec.order_index(i) for i in range(3)] == [5000, 5001, 5002]
    assert spec.order_index(99) == 5099
    with pytest.raises(PeriodCapacityExceeded):
        spec.order_index(100)


def test_month_fallback_label():
    assert encode("months", 13).label == "Month 13"
    assert encode("months", 12).label == "December"


def test_semester_numeric_part():
    assert encode("semester", "First Semester").number == 1
    assert encode("semester", "2nd Semester").number == 2
    assert encode("semester", "Semester 5").number == 5
    assert encode("semester", "Midyear").number == 1
    spec = encode("semester", "Second Semester")
    assert spec.number == 2
    assert spec.name_prefix == "semester2_"
    assert spec.metadata == {
        "semester": 2,
        "semesterName": "Second Semester",
        "originalSemesterNumber": "Second Semester",
    }
    assert spec.key == "semester:Second Semester"
    assert not spec.is_numeric_query
    assert encode("semester", "1").is_numeric_query


def test_years_metadata():
    spec = encode("years", "2020")
    assert spec.number == 2020
    assert spec.metadata["year"] == 2020
    assert spec.key == "year:2020"
    assert spec.order_index(4) == 2020 * 1000000 + 4


@pytest.mark.parametrize("period_type, identifier", [
    ("weeks", "abc"),
    ("weeks", "0"),
    ("days", "-2"),
    ("years", "1800"),
    ("years", "next"),
    ("semester", "  "),
    ("fortnights", "1"),
])
def test_invalid_identifiers(period_type, identifier):
    with pytest.raises(PeriodOutOfRange):
        encode(period_type, identifier)


def test_parse_leading_int():
    assert parse_leading_int("12abc") == 12
    assert parse_leading_int(" 7") == 7
    assert parse_leading_int("First") is None
    assert parse_leading_int(None) is None
    assert parse_leading_int(True) is None


def test_track_type_parse_accepts_url_spellings():
    assert TrackType.parse("semesters") is TrackType.SEMESTER
    assert TrackType.parse("Week") is TrackType.WEEKS
    assert TrackType.parse("years") is TrackType.YEARS
    with pytest.raises(ValueError):
        TrackType.parse("fortnight")


def test_ensure_period_fits():
    ensure_period_fits(encode("weeks", 12), "weeks", 12, "Biology Weekly")
    with pytest.raises(PeriodOutOfRange):
        ensure_period_fits(encode("weeks", 13), "weeks", 12, "Biology Weekly")
    with pytest.raises(TrackTypeMismatch):
        ensure_period_fits(encode("days", 3), "weeks", 12, "Biology Weekly")
    # years tracks have no upper bound from duration
    ensure_period_fits(encode("years", 2021), "years", 5, "Past Questions")


def test_enumerate_periods():
    months = enumerate_periods("months", 3, 2026, 20)
    assert [p.label for p in months] == ["January", "February", "March"]
    years = enumerate_periods("years", None, 2026, 2)
    assert [p.number for p in years] == [2026, 2025, 2024]
    semesters = enumerate_periods("semester", 2, 2026, 20)
    assert [p.label for p in semesters] == ["First Semester", "Second Semester"]
    assert [p.number for p in semesters] == [1, 2]
    assert [p.order_index(0) for p in semesters] == [100000, 200000]
    assert [p.number for p in enumerate_periods("semester", 5, 2026, 20)] == [1, 2, 3, 4, 5]
    assert enumerate_periods("semester", 5, 2026, 20)[-1].label == "Semester 5"


def test_question_access_mode():
    assert question_access_mode("years") is AccessMode.DIRECT
    for track_type in ("weeks", "days", "semester"):
        assert question_access_mode(track_type) is AccessMode.INDIRECT
    with pytest.raises(TrackTypeMismatch):
        question_access_mode("months", "Monthly Review")
