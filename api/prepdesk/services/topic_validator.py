import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.errors import TopicValidationFailed
from ..models import Topic
from ..repositories import TopicRepository

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5


def normalize_topic(label: Any) -> str:
    return str(label or "").strip().lower()


@dataclass
class ValidationReport:
    valid_items: List[Dict[str, Any]] = field(default_factory=list)
    invalid_items: List[Dict[str, Any]] = field(default_factory=list)
    unique_topics: int = 0
    invalid_topics: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.invalid_items

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid_items": self.valid_items,
            "invalid_items": self.invalid_items,
            "summary": {
                "total": len(self.valid_items) + len(self.invalid_items),
                "valid": len(self.valid_items),
                "invalid": len(self.invalid_items),
                "unique_topics": self.unique_topics,
                "invalid_topics": self.invalid_topics,
            },
        }


class TopicVocabulary:
    """Case-insensitive, whitespace-trimmed index over one exam-subject's approved topics."""

    def __init__(self, topics: List[Topic]):
        self.topics = topics
        self._index: Dict[str, Topic] = {}
        for topic in topics:
            self._index.setdefault(normalize_topic(topic.name), topic)
            self._index.setdefault(normalize_topic(topic.display_name), topic)

    def lookup(self, label: Any) -> Optional[Topic]:
        return self._index.get(normalize_topic(label))

    def suggestions(self) -> List[str]:
        return [t.display_name for t in self.topics[:MAX_SUGGESTIONS]]


class TopicValidator:
    def __init__(self, topics: TopicRepository):
        self.topics = topics

    def vocabulary(self, exam_id: int, subject_id: int) -> TopicVocabulary:
        return TopicVocabulary(self.topics.list_topics(exam_id, subject_id))

    def validate(self, exam_id: int, subject_id: int, items: List[Dict[str, Any]],
                 require_topic: bool = True) -> ValidationReport:
        """Check every item's ``topic`` label against the approved vocabulary.

        Valid items come back with ``topic_id`` and ``topic_name`` filled in.
        With ``require_topic=False`` items without a label pass untouched.
        """
        vocabulary = self.vocabulary(exam_id, subject_id)
        report = ValidationReport()
        seen_topics = set()
        invalid_topics = []

        for index, item in enumerate(items):
            label = str(item.get("topic") or "").strip()
            if not label:
                if require_topic:
                    report.invalid_items.append({"index": index, "item": item, "error": "Topic required"})
                else:
                    report.valid_items.append({"index": index, **item})
                continue

            seen_topics.add(normalize_topic(label))
            topic = vocabulary.lookup(label)
            if topic:
                report.valid_items.append({
                    "index": index, **item,
                    "topic_id": topic.id,
                    "topic_name": topic.display_name,
                })
                continue

            if label not in invalid_topics:
                invalid_topics.append(label)
            report.invalid_items.append({
                "index": index,
                "item": item,
                "error": f'Topic "{label}" is not in the approved list for this exam and subject',
                "available_topics": vocabulary.suggestions(),
            })

        report.unique_topics = len(seen_topics)
        report.invalid_topics = invalid_topics
        if not report.is_valid:
            logger.warning(f"Topic validation rejected {len(report.invalid_items)} of {len(items)} item(s) "
                           f"for exam {exam_id}, subject {subject_id}")
        return report

    def require_valid(self, exam_id: int, subject_id: int, items: List[Dict[str, Any]],
                      require_topic: bool = True) -> List[Dict[str, Any]]:
        """All-or-nothing form used by upload paths: any rejected item rejects the batch."""
        report = self.validate(exam_id, subject_id, items, require_topic=require_topic)
        if not report.is_valid:
            raise TopicValidationFailed(report.to_dict())
        return [{k: v for k, v in item.items() if k != "index"} for item in report.valid_items]
