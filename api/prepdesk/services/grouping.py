import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.periods import AccessMode, TrackType, question_access_mode
from ..models import ITEM_MODELS, QuestionItem
from ..repositories import PeriodItemRepository, TopicAssignmentRepository, TopicRepository

logger = logging.getLogger(__name__)

GROUP_CHOICES = ("auto", "topic", "week", "day", "month", "semester", "year")


def effective_grouping(track_type: TrackType, group_by: Optional[str]) -> str:
    """Period groupings that don't match the track fall back to topic."""
    if not group_by or group_by == "auto":
        return track_type.unit
    if group_by == "topic":
        return "topic"
    if group_by not in GROUP_CHOICES:
        raise ValueError(f"Invalid group_by '{group_by}'. Use one of: {', '.join(GROUP_CHOICES)}")
    return group_by if TrackType.parse(group_by) is track_type else "topic"


def _period_sort_key(track_type: TrackType):
    if track_type is TrackType.YEARS:
        return lambda group: -group["number"]
    if track_type is TrackType.SEMESTER:
        return lambda group: (group["number"], group["label"])
    return lambda group: group["number"]


class GroupingView:
    def __init__(self, db: Session):
        self.db = db
        self.topics = TopicRepository(db)
        self.assignments = TopicAssignmentRepository(db)

    def group_content(self, context, group_by: Optional[str] = "auto", item_kind: str = "content") -> Dict[str, Any]:
        track_type = context.track_type
        grouping = effective_grouping(track_type, group_by)
        items = PeriodItemRepository(self.db, ITEM_MODELS[item_kind]).list_active(context)

        if grouping == "topic":
            groups = self._by_topic(context, items)
        else:
            groups = self._by_period(track_type, items)

        logger.debug(f"Grouped {len(items)} {item_kind} item(s) of {context.track.name} by {grouping}")
        return {
            "group_by": grouping,
            "track_type": track_type.value,
            "total_items": len(items),
            "groups": groups,
        }

    def group_questions(self, context, group_by: Optional[str] = "auto") -> Dict[str, Any]:
        track = context.track
        if question_access_mode(track.track_type, track.name) is AccessMode.DIRECT:
            result = self.group_content(context, group_by, item_kind="question")
            result["access_mode"] = AccessMode.DIRECT.value
            return result

        grouping = effective_grouping(context.track_type, group_by)
        rows = self.assignments.list_for_track(context)
        questions = PeriodItemRepository(self.db, QuestionItem)
        counts: Dict[int, int] = {}

        def question_count(topic_id: int) -> int:
            if topic_id not in counts:
                counts[topic_id] = len(questions.for_topic(context.exam_id, context.subject_id, topic_id))
            return counts[topic_id]

        groups: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        for assignment, topic in rows:
            if grouping == "topic":
                key, label, number = f"topic:{topic.id}", topic.display_name, topic.order_index
            else:
                key, label, number = (f"{assignment.time_period}:{assignment.period_value}",
                                      assignment.period_value, assignment.period_number)
            group = groups.setdefault(key, {"key": key, "label": label, "number": number, "topics": [],
                                            "periods": [], "question_count": 0})
            if grouping == "topic":
                group["periods"].append({"time_period": assignment.time_period,
                                         "period_value": assignment.period_value})
                group["question_count"] = question_count(topic.id)
            else:
                group["topics"].append({"id": topic.id, "display_name": topic.display_name,
                                        "order_index": assignment.order_index,
                                        "question_count": question_count(topic.id)})
                group["question_count"] += question_count(topic.id)

        ordered = list(groups.values())
        if grouping == "topic":
            ordered.sort(key=lambda g: (g["number"], g["label"]))
            for group in ordered:
                group.pop("topics")
        else:
            ordered.sort(key=_period_sort_key(context.track_type))
            for group in ordered:
                group.pop("periods")
        return {
            "group_by": grouping,
            "track_type": context.track_type.value,
            "access_mode": AccessMode.INDIRECT.value,
            "groups": ordered,
        }

    def _by_topic(self, context, items: List[Any]) -> List[Dict[str, Any]]:
        topics = {t.id: t for t in self.topics.list_topics(context.exam_id, context.subject_id)}
        groups: Dict[Optional[int], Dict[str, Any]] = {}
        for item in items:
            topic = topics.get(item.topic_id)
            key = topic.id if topic else None
            if key not in groups:
                groups[key] = {
                    "key": f"topic:{topic.id}" if topic else "unassigned",
                    "label": topic.display_name if topic else "Unassigned",
                    "order": (0, topic.order_index, topic.name) if topic else (1, 0, ""),
                    "items": [],
                }
            groups[key]["items"].append(item.to_dict())

        ordered = sorted(groups.values(), key=lambda g: g["order"])
        for group in ordered:
            group.pop("order")
            group["count"] = len(group["items"])
        return ordered

    def _by_period(self, track_type: TrackType, items: List[Any]) -> List[Dict[str, Any]]:
        groups: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        for item in items:
            group = groups.setdefault(item.period_key, {
                "key": item.period_key,
                "label": item.period_label,
                "number": item.period_number,
                "items": [],
            })
            group["items"].append(item.to_dict())

        ordered = sorted(groups.values(), key=_period_sort_key(track_type))
        for group in ordered:
            group["count"] = len(group["items"])
        return ordered
