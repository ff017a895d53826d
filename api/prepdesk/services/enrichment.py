"""Turn caller items into fully qualified records for one period.

Names get the period prefix (``week5_intro``), display names the period label
(``Week 5 - Intro``), metadata the period fields plus ``timeBasedContent``,
and order indexes the period's multiplier.
"""
import logging
from typing import Any, Dict, List, Optional

from ..core.periods import REQUIRED_PERIOD_FIELDS, PeriodSpec, TrackType, encode

logger = logging.getLogger(__name__)

CONTENT_FIELDS = ("file_path", "file_type", "file_size", "duration", "topic_id")
QUESTION_FIELDS = (
    "question", "question_diagram", "correct_answer", "incorrect_answers",
    "explanation", "difficulty", "topic_id", "topic_name",
)


def merge_period_metadata(spec: PeriodSpec, *sources: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge metadata sources left to right; the period's own fields always win."""
    merged: Dict[str, Any] = {}
    for source in sources:
        if source:
            merged.update(source)
    merged.update(spec.metadata)
    merged["timeBasedContent"] = True
    check_period_metadata(spec.period_type, merged)
    return merged


def check_period_metadata(period_type: TrackType, metadata: Dict[str, Any]) -> None:
    missing = [f for f in REQUIRED_PERIOD_FIELDS[period_type] if metadata.get(f) in (None, "")]
    if missing:
        raise ValueError(f"{period_type.value} metadata is missing {', '.join(missing)}")


def period_columns(spec: PeriodSpec) -> Dict[str, Any]:
    return {
        "period_type": spec.period_type.value,
        "period_key": spec.key,
        "period_number": spec.number,
        "period_label": spec.label,
    }


def prefixed_name(spec: PeriodSpec, name: str) -> str:
    name = str(name).strip()
    return name if name.startswith(spec.name_prefix) else f"{spec.name_prefix}{name}"


def describe(spec: PeriodSpec, description: Optional[str]) -> str:
    return f"{spec.label}: {description}" if description else f"{spec.label} content"


class EnrichmentEngine:
    def enrich(self, context, spec: PeriodSpec, items: List[Dict[str, Any]],
               item_kind: str = "content") -> List[Dict[str, Any]]:
        extra_fields = QUESTION_FIELDS if item_kind == "question" else CONTENT_FIELDS
        records = []
        for index, item in enumerate(items):
            base_name = item.get("name") or (f"q{index + 1}" if item_kind == "question" else f"item{index + 1}")
            display = item.get("display_name") or (
                item.get("name") or (f"Question {index + 1}" if item_kind == "question" else f"Item {index + 1}")
            )
            record = {
                "exam_id": context.exam_id,
                "subject_id": context.subject_id,
                "track_id": context.track_id,
                "sub_category_id": context.sub_category_id,
                **context.denormalized_names(),
                **period_columns(spec),
                "name": prefixed_name(spec, base_name),
                "display_name": f"{spec.display_prefix}{display}",
                "description": describe(spec, item.get("description")),
                "order_index": spec.order_index(item.get("order_index") or index),
                "item_metadata": merge_period_metadata(spec, item.get("metadata")),
                "is_active": True,
            }
            for key in extra_fields:
                if key in item:
                    record[key] = item[key]
            if item_kind == "question":
                record["year"] = str(spec.number) if spec.period_type is TrackType.YEARS else item.get("year")
                record.setdefault("incorrect_answers", [])
            records.append(record)

        logger.debug(f"Enriched {len(records)} {item_kind} record(s) for {spec.label}")
        return records


def spec_of(item) -> PeriodSpec:
    """Re-encode the period a stored item was written under."""
    period_type = TrackType.parse(item.period_type)
    identifier = item.period_label if period_type is TrackType.SEMESTER else item.period_number
    return encode(period_type, identifier)
