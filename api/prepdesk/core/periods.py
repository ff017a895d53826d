"""Period codec.

Maps a track's period type plus a period identifier to the metadata fields,
name/display prefixes and ordering multiplier used when storing items.

    weeks     week                      "Week n"        week{n}_       1,000
    days      day                       "Day n"         day{n}_          100
    months    month                     month name      month{n}_     10,000
    semester  semester + semesterName   raw label       semester{n}_ 100,000
    years     year                      "2021"          year{n}_   1,000,000

Items of one period sort as ``number * multiplier + item_index``; item_index
must stay below the period type's capacity so periods never interleave.
"""
import calendar
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from ..config.settings import MIN_YEAR, MAX_YEAR
from .errors import PeriodCapacityExceeded, PeriodOutOfRange, TrackTypeMismatch


class TrackType(str, Enum):
    WEEKS = "weeks"
    DAYS = "days"
    MONTHS = "months"
    SEMESTER = "semester"
    YEARS = "years"

    @property
    def unit(self) -> str:
        """Singular name, also the metadata key: week, day, month, semester, year."""
        return self.value[:-1] if self.value.endswith("s") else self.value

    @classmethod
    def parse(cls, value: Union[str, "TrackType"]) -> "TrackType":
        if isinstance(value, TrackType):
            return value
        key = str(value).strip().lower()
        for track_type in cls:
            if key in (track_type.value, track_type.unit, f"{track_type.unit}s"):
                return track_type
        raise ValueError(f"Unknown period type: {value}")


class AccessMode(str, Enum):
    DIRECT = "direct"
    INDIRECT = "indirect"


ORDER_MULTIPLIERS: Dict[TrackType, int] = {
    TrackType.DAYS: 100,
    TrackType.WEEKS: 1000,
    TrackType.MONTHS: 10000,
    TrackType.SEMESTER: 100000,
    TrackType.YEARS: 1000000,
}

# Largest item index + 1 a single period can hold: the next-smaller multiplier
ITEM_CAPACITY: Dict[TrackType, int] = {
    TrackType.DAYS: 100,
    TrackType.WEEKS: 100,
    TrackType.MONTHS: 1000,
    TrackType.SEMESTER: 10000,
    TrackType.YEARS: 100000,
}

# Fields every stored item's metadata must carry for its period type
REQUIRED_PERIOD_FIELDS: Dict[TrackType, tuple] = {
    TrackType.WEEKS: ("week",),
    TrackType.DAYS: ("day",),
    TrackType.MONTHS: ("month",),
    TrackType.SEMESTER: ("semester", "semesterName"),
    TrackType.YEARS: ("year",),
}

SEMESTER_NAMES = ["First Semester", "Second Semester", "Third Semester", "Fourth Semester"]

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_TRAILING_INT = re.compile(r"(\d+)\s*$")


def parse_leading_int(value: Any) -> Optional[int]:
    """Integer prefix of ``value`` ("2nd Semester" -> 2), or None when there is none."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if value is None:
        return None
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


@dataclass(frozen=True)
class PeriodSpec:
    period_type: TrackType
    number: int
    label: str
    raw: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def metadata_key(self) -> str:
        return self.period_type.unit

    @property
    def name_prefix(self) -> str:
        return f"{self.period_type.unit}{self.number}_"

    @property
    def display_prefix(self) -> str:
        return f"{self.label} - "

    @property
    def order_multiplier(self) -> int:
        return ORDER_MULTIPLIERS[self.period_type]

    @property
    def capacity(self) -> int:
        return ITEM_CAPACITY[self.period_type]

    @property
    def key(self) -> str:
        # Labelled semesters are keyed by their label; every other period by number
        if self.period_type is TrackType.SEMESTER:
            return f"semester:{self.label}"
        return f"{self.metadata_key}:{self.number}"

    @property
    def is_numeric_query(self) -> bool:
        return parse_leading_int(self.raw) is not None

    def order_index(self, item_index: int) -> int:
        if item_index < 0 or item_index >= self.capacity:
            raise PeriodCapacityExceeded(
                f"Item index {item_index} does not fit in {self.label}; "
                f"a {self.period_type.unit} holds at most {self.capacity} items"
            )
        return self.number * self.order_multiplier + item_index


def _positive_number(raw: str, unit: str) -> int:
    number = parse_leading_int(raw)
    if number is None or number < 1:
        raise PeriodOutOfRange(f"Invalid {unit} number: {raw}")
    return number


def _encode_weeks(raw: str) -> PeriodSpec:
    n = _positive_number(raw, "week")
    label = f"Week {n}"
    return PeriodSpec(TrackType.WEEKS, n, label, raw, {"week": n, "weekLabel": label})


def _encode_days(raw: str) -> PeriodSpec:
    n = _positive_number(raw, "day")
    label = f"Day {n}"
    return PeriodSpec(TrackType.DAYS, n, label, raw, {"day": n, "dayLabel": label})


def _encode_months(raw: str) -> PeriodSpec:
    n = _positive_number(raw, "month")
    label = calendar.month_name[n] if n <= 12 else f"Month {n}"
    return PeriodSpec(TrackType.MONTHS, n, label, raw, {"month": n, "monthLabel": label})


def _semester_number(label: str) -> int:
    """"2nd Semester" -> 2, "Second Semester" -> 2, "Semester 5" -> 5; otherwise 1."""
    number = parse_leading_int(label)
    if number is not None:
        return number
    lowered = label.lower()
    for index, name in enumerate(SEMESTER_NAMES):
        if lowered == name.lower():
            return index + 1
    match = _TRAILING_INT.search(label)
    return int(match.group(1)) if match else 1


def _encode_semester(raw: str) -> PeriodSpec:
    label = str(raw).strip()
    if not label:
        raise PeriodOutOfRange("Semester label is required")
    n = _semester_number(label)
    if n < 1:
        raise PeriodOutOfRange(f"Invalid semester number: {raw}")
    return PeriodSpec(TrackType.SEMESTER, n, label, raw, {
        "semester": n,
        "semesterName": label,
        "originalSemesterNumber": label,
    })


def _encode_years(raw: str) -> PeriodSpec:
    year = parse_leading_int(raw)
    if year is None or year < MIN_YEAR or year > MAX_YEAR:
        raise PeriodOutOfRange(f"Invalid year: {raw}. Must be between {MIN_YEAR} and {MAX_YEAR}")
    label = str(year)
    return PeriodSpec(TrackType.YEARS, year, label, raw, {"year": year, "yearLabel": label})


_ENCODERS: Dict[TrackType, Callable[[str], PeriodSpec]] = {
    TrackType.WEEKS: _encode_weeks,
    TrackType.DAYS: _encode_days,
    TrackType.MONTHS: _encode_months,
    TrackType.SEMESTER: _encode_semester,
    TrackType.YEARS: _encode_years,
}

_missing = set(TrackType) - set(_ENCODERS)
if _missing:
    raise RuntimeError(f"No period encoder for: {sorted(t.value for t in _missing)}")


def encode(period_type: Union[str, TrackType], identifier: Any) -> PeriodSpec:
    """Encode a period identifier for the given period type."""
    try:
        track_type = TrackType.parse(period_type)
    except ValueError as e:
        raise PeriodOutOfRange(str(e))
    return _ENCODERS[track_type](str(identifier))


def ensure_period_fits(spec: PeriodSpec, track_type: str, duration: Optional[int], track_name: str) -> None:
    """Reject periods that don't belong to the track's vocabulary or exceed its duration."""
    if spec.period_type is not TrackType.parse(track_type):
        raise TrackTypeMismatch(track_name, TrackType.parse(track_type).value, spec.period_type.value)
    if spec.period_type is TrackType.YEARS or not duration:
        return
    if spec.number > duration:
        raise PeriodOutOfRange(
            f"{spec.label} exceeds the duration of track '{track_name}' ({duration} {spec.period_type.value})"
        )


def question_access_mode(track_type: Union[str, TrackType], track_name: str = "") -> AccessMode:
    """Questions are stored per year on years tracks and assigned by topic elsewhere."""
    track_type = TrackType.parse(track_type)
    if track_type is TrackType.YEARS:
        return AccessMode.DIRECT
    if track_type is TrackType.MONTHS:
        raise TrackTypeMismatch(track_name, track_type.value, "weeks, days, semester or years")
    return AccessMode.INDIRECT


def enumerate_periods(track_type: Union[str, TrackType], duration: Optional[int],
                      current_year: int, year_window: int) -> List[PeriodSpec]:
    track_type = TrackType.parse(track_type)
    if track_type is TrackType.YEARS:
        return [encode(track_type, year) for year in range(current_year, current_year - year_window - 1, -1)]
    if track_type is TrackType.SEMESTER:
        count = duration or len(SEMESTER_NAMES)
        labels = [SEMESTER_NAMES[i] if i < len(SEMESTER_NAMES) else f"Semester {i + 1}" for i in range(count)]
        return [encode(track_type, label) for label in labels]
    return [encode(track_type, n) for n in range(1, (duration or 0) + 1)]
