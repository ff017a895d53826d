"""Indirect access for weeks, days and semester question tracks.

A period on these tracks stores no questions. It holds an ordered list of
topics, and its questions are every active question tagged with those topics,
whatever year they were uploaded under.
"""
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import Conflict, ItemNotFound, TopicValidationFailed, TrackTypeMismatch
from ..core.periods import AccessMode, PeriodSpec, TrackType, question_access_mode
from ..models import QuestionItem, Topic
from ..repositories import PeriodItemRepository, TopicAssignmentRepository, TopicRepository
from .period_content import PeriodContentService
from .topic_validator import TopicVocabulary, ValidationReport

logger = logging.getLogger(__name__)


def topic_to_dict(topic: Topic) -> Dict[str, Any]:
    return {"id": topic.id, "name": topic.name, "display_name": topic.display_name}


def assignment_value(spec: PeriodSpec) -> str:
    return spec.label if spec.period_type is TrackType.SEMESTER else str(spec.number)


class TopicAssignmentAggregator:
    def __init__(self, db: Session, topics: Optional[TopicRepository] = None,
                 assignments: Optional[TopicAssignmentRepository] = None,
                 questions: Optional[PeriodItemRepository] = None):
        self.db = db
        self.topics = topics or TopicRepository(db)
        self.assignments = assignments or TopicAssignmentRepository(db)
        self.questions = questions or PeriodItemRepository(db, QuestionItem)
        self._periods = PeriodContentService(db, item_kind="question")

    def period_for(self, context, period_type, period_value) -> PeriodSpec:
        spec = self._periods.period_for(context, period_type, period_value)
        track = context.track
        if question_access_mode(track.track_type, track.name) is not AccessMode.INDIRECT:
            raise TrackTypeMismatch(track.name, track.track_type, "weeks, days or semester")
        return spec

    def _resolve_topics(self, context, topics: List[Dict[str, Any]]) -> Tuple[List[Tuple[Topic, int]], List[str]]:
        """Map topic references (id or name) to Topics of the context's exam and subject."""
        vocabulary = TopicVocabulary(self.topics.list_topics(context.exam_id, context.subject_id))
        report = ValidationReport()
        resolved: "OrderedDict[int, Tuple[Topic, int]]" = OrderedDict()
        skipped = []

        for index, ref in enumerate(topics):
            topic = None
            if ref.get("topic_id") is not None:
                topic = self.topics.get_topic(ref["topic_id"])
                if topic and (topic.exam_id != context.exam_id or topic.subject_id != context.subject_id):
                    topic = None
                label = str(ref["topic_id"])
            else:
                label = str(ref.get("topic_name") or ref.get("topic") or "").strip()
                topic = vocabulary.lookup(label) if label else None

            if not topic:
                report.invalid_items.append({
                    "index": index,
                    "item": ref,
                    "error": f'Topic "{label}" does not belong to this exam and subject' if label else "Topic required",
                    "available_topics": vocabulary.suggestions(),
                })
                if label and label not in report.invalid_topics:
                    report.invalid_topics.append(label)
                continue

            if topic.id in resolved:
                skipped.append(topic.display_name)
                continue
            order = ref.get("order_index")
            resolved[topic.id] = (topic, order if order is not None else index)
            report.valid_items.append({"index": index, "topic_id": topic.id})

        report.unique_topics = len(resolved) + len(report.invalid_topics)
        if not report.is_valid:
            raise TopicValidationFailed(report.to_dict())
        return list(resolved.values()), skipped

    def assign(self, context, period_type, period_value, topics: List[Dict[str, Any]],
               force: bool = False) -> Dict[str, Any]:
        """Replace the period's topic list (last write wins)."""
        spec = self.period_for(context, period_type, period_value)
        time_period = spec.period_type.unit
        value = assignment_value(spec)

        existing = self.assignments.list_for_period(context, time_period, value)
        if existing and not force:
            logger.warning(f"Topics already assigned to {spec.label} of {context.track.name}")
            raise Conflict(
                f"Topics already assigned to {spec.label}",
                len(existing),
                [{"topic": topic_to_dict(topic), "order_index": a.order_index} for a, topic in existing],
            )

        resolved, skipped = self._resolve_topics(context, topics)
        try:
            replaced = self.assignments.deactivate_for_period(context, time_period, value)
            for topic, order_index in resolved:
                self.assignments.add(context, time_period, value, spec.number, topic.id, order_index)
            self.db.flush()
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict(f"Topics for {spec.label} were changed by another request", len(existing), [])
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Assigned {len(resolved)} topic(s) to {spec.label} of {context.track.name} "
                    f"(replaced {replaced})")
        return {
            "success": True,
            "message": f"{len(resolved)} topic(s) assigned to {spec.label}",
            "period": {"type": time_period, "value": value, "label": spec.label},
            "assigned": self.get_assignments(context, period_type, period_value),
            "replaced_count": replaced,
            "skipped_duplicates": skipped,
        }

    def replace_assignments(self, context, period_type, period_value,
                            topics: List[Dict[str, Any]]) -> Dict[str, Any]:
        spec = self.period_for(context, period_type, period_value)
        if not self.assignments.list_for_period(context, spec.period_type.unit, assignment_value(spec)):
            raise ItemNotFound(f"No topics assigned to {spec.label}")
        return self.assign(context, period_type, period_value, topics, force=True)

    def remove_assignments(self, context, period_type, period_value) -> Dict[str, Any]:
        spec = self.period_for(context, period_type, period_value)
        try:
            removed = self.assignments.deactivate_for_period(context, spec.period_type.unit, assignment_value(spec))
            if not removed:
                raise ItemNotFound(f"No topics assigned to {spec.label}")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Removed {removed} topic assignment(s) from {spec.label} of {context.track.name}")
        return {"deleted_count": removed, "period": spec.label}

    def get_assignments(self, context, period_type, period_value) -> List[Dict[str, Any]]:
        spec = self.period_for(context, period_type, period_value)
        rows = self.assignments.list_for_period(context, spec.period_type.unit, assignment_value(spec))
        return [{"topic": topic_to_dict(topic), "order_index": a.order_index} for a, topic in rows]

    def get_questions_for_topic(self, exam_id: int, subject_id: int, topic_id: int) -> Dict[str, Any]:
        """Every active question tagged with the topic, newest year first."""
        topic = self.topics.get_topic(topic_id)
        if not topic or topic.exam_id != exam_id or topic.subject_id != subject_id:
            raise ItemNotFound(f"Topic {topic_id} not found for this exam and subject")

        questions = self.questions.for_topic(exam_id, subject_id, topic_id)
        years: "OrderedDict[str, int]" = OrderedDict()
        for question in questions:
            year = question.year or question.period_label
            years[year] = years.get(year, 0) + 1

        return {
            "topic": topic_to_dict(topic),
            "total_questions": len(questions),
            "years": [{"year": year, "count": count} for year, count in years.items()],
            "questions": [question.to_dict() for question in questions],
        }

    def get_period_topic_questions(self, context, period_type, period_value, topic_label: str) -> Dict[str, Any]:
        """Questions for one topic, reached through a period that has it assigned."""
        spec = self.period_for(context, period_type, period_value)
        wanted = topic_label.strip().lower()
        rows = self.assignments.list_for_period(context, spec.period_type.unit, assignment_value(spec))
        for assignment, topic in rows:
            if wanted in (topic.name.strip().lower(), topic.display_name.strip().lower()):
                result = self.get_questions_for_topic(context.exam_id, context.subject_id, topic.id)
                result["period"] = {"label": spec.label, "order_index": assignment.order_index}
                return result
        raise ItemNotFound(f'Topic "{topic_label}" is not assigned to {spec.label}')
