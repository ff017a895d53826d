"""Resolve human-readable hierarchy names to canonical entities.

Resolution order is exam -> subject -> sub-category -> track. The track is
found by exact name first, then by the expected track type, then (for past
question sub-categories) by the first years track. A miss at any level is a
normal outcome reported through ``ContextResult``; only database errors
propagate.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..core.errors import ContextNotFound
from ..core.periods import TrackType
from ..models import Exam, Subject, SubCategory, Track
from ..repositories import HierarchyRepository

logger = logging.getLogger(__name__)


@dataclass
class ResolvedContext:
    exam: Exam
    subject: Subject
    sub_category: SubCategory
    track: Track
    strategy: str = "exact"

    @property
    def exam_id(self) -> int:
        return self.exam.id

    @property
    def subject_id(self) -> int:
        return self.subject.id

    @property
    def sub_category_id(self) -> int:
        return self.sub_category.id

    @property
    def track_id(self) -> int:
        return self.track.id

    @property
    def track_type(self) -> TrackType:
        return TrackType.parse(self.track.track_type)

    def denormalized_names(self) -> Dict[str, str]:
        return {
            "exam_name": self.exam.name,
            "subject_name": self.subject.name,
            "track_name": self.track.name,
            "sub_category_name": self.sub_category.name,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exam": {"id": self.exam.id, "name": self.exam.name, "display_name": self.exam.display_name},
            "subject": {"id": self.subject.id, "name": self.subject.name, "display_name": self.subject.display_name},
            "sub_category": {"id": self.sub_category.id, "name": self.sub_category.name,
                             "display_name": self.sub_category.display_name},
            "track": {"id": self.track.id, "name": self.track.name, "display_name": self.track.display_name,
                      "track_type": self.track.track_type, "duration": self.track.duration},
            "resolved_by": self.strategy,
        }


@dataclass
class ExamScope:
    exam: Exam
    subject: Subject

    @property
    def exam_id(self) -> int:
        return self.exam.id

    @property
    def subject_id(self) -> int:
        return self.subject.id


@dataclass
class ContextResult:
    success: bool
    context: Optional[ResolvedContext] = None
    level: Optional[str] = None
    message: Optional[str] = None
    available_tracks: List[Dict[str, Any]] = field(default_factory=list)

    def unwrap(self) -> ResolvedContext:
        if not self.success:
            raise ContextNotFound(self.level, self.message,
                                  self.available_tracks if self.level == "track" else None)
        return self.context


def is_past_questions(sub_category_name: str) -> bool:
    compact = re.sub(r"[\s_\-]", "", sub_category_name.lower())
    return "past" in compact and "question" in compact


class ContextResolver:
    def __init__(self, hierarchy: HierarchyRepository):
        self.hierarchy = hierarchy

    def _resolve_scope(self, exam_name: str, subject_name: str):
        exam = self.hierarchy.find_exam(exam_name)
        if not exam:
            return None, ContextResult(False, level="exam", message=f"Exam '{exam_name}' not found")
        subject = self.hierarchy.find_subject(exam.id, subject_name)
        if not subject:
            return None, ContextResult(
                False, level="subject", message=f"Subject '{subject_name}' not found for exam '{exam.name}'"
            )
        return ExamScope(exam, subject), None

    def resolve_scope(self, exam_name: str, subject_name: str) -> ExamScope:
        """Exam + subject only, for operations that are not tied to a track."""
        scope, failure = self._resolve_scope(exam_name, subject_name)
        if failure:
            raise ContextNotFound(failure.level, failure.message)
        return scope

    def resolve(self, exam_name: str, subject_name: str, track_name: str, sub_category_name: str,
                expected_track_type: Optional[Union[str, TrackType]] = None) -> ContextResult:
        if expected_track_type:
            try:
                expected_track_type = TrackType.parse(expected_track_type)
            except ValueError as e:
                return ContextResult(False, level="track_type", message=str(e))

        scope, failure = self._resolve_scope(exam_name, subject_name)
        if failure:
            logger.info(f"Context resolution stopped at {failure.level}: {failure.message}")
            return failure

        sub_category = self.hierarchy.find_sub_category(scope.exam_id, sub_category_name)
        if not sub_category:
            return ContextResult(
                False, level="sub_category",
                message=f"Sub-category '{sub_category_name}' not found for exam '{scope.exam.name}'",
            )

        track, strategy = self._resolve_track(scope.exam_id, sub_category, track_name, expected_track_type)
        if not track:
            candidates = [
                {"name": t.name, "display_name": t.display_name, "track_type": t.track_type}
                for t in self.hierarchy.list_tracks(scope.exam_id, sub_category.id)
            ]
            logger.warning(f"Track '{track_name}' not found in {sub_category.name}; "
                           f"{len(candidates)} active track(s) available")
            return ContextResult(
                False, level="track",
                message=f"Track '{track_name}' not found in sub-category '{sub_category.name}'",
                available_tracks=candidates,
            )

        if strategy != "exact":
            logger.info(f"Track '{track_name}' resolved to '{track.name}' via {strategy}")
        return ContextResult(True, ResolvedContext(scope.exam, scope.subject, sub_category, track, strategy))

    def _resolve_track(self, exam_id: int, sub_category: SubCategory, track_name: str,
                       expected_track_type: Optional[TrackType]):
        track = self.hierarchy.find_track_by_name(exam_id, sub_category.id, track_name)
        if track:
            return track, "exact"

        if expected_track_type:
            track = self.hierarchy.find_track_by_type(exam_id, sub_category.id, expected_track_type.value)
            if track:
                return track, "track_type"

        if is_past_questions(sub_category.name):
            track = self.hierarchy.find_track_by_type(exam_id, sub_category.id, TrackType.YEARS.value)
            if track:
                return track, "past_questions"

        return None, None
