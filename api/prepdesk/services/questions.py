import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from ..core.errors import TrackTypeMismatch
from ..core.periods import AccessMode, TrackType, question_access_mode
from ..repositories import TopicRepository
from .bulk_upsert import BulkResult
from .duplicate_guard import ExistingPeriod
from .period_content import PeriodContentService
from .topic_validator import TopicValidator, ValidationReport

logger = logging.getLogger(__name__)


class QuestionService:
    """Direct-access questions: stored per year on years tracks."""

    def __init__(self, db: Session):
        self.db = db
        self.validator = TopicValidator(TopicRepository(db))
        self.periods = PeriodContentService(db, item_kind="question", validator=self.validator)

    def _require_direct(self, context) -> None:
        track = context.track
        if question_access_mode(track.track_type, track.name) is not AccessMode.DIRECT:
            raise TrackTypeMismatch(track.name, track.track_type, TrackType.YEARS.value)

    def validate_topics(self, exam_id: int, subject_id: int, items: List[Dict[str, Any]]) -> ValidationReport:
        return self.validator.validate(exam_id, subject_id, items)

    def check_year_exists(self, context, year) -> ExistingPeriod:
        self._require_direct(context)
        return self.periods.check_period_exists(context, TrackType.YEARS, year)

    def get_year_questions(self, context, year) -> Dict[str, Any]:
        self._require_direct(context)
        return self.periods.get_period_items(context, TrackType.YEARS, year)

    def upload_year_questions(self, context, year, questions: List[Dict[str, Any]],
                              force: bool = False) -> BulkResult:
        """Whole batch is topic-validated before anything is written."""
        self._require_direct(context)
        return self.periods.upload_period_content(context, TrackType.YEARS, year, questions, force=force)

    def delete_year(self, context, year) -> Dict[str, Any]:
        self._require_direct(context)
        return self.periods.delete_period(context, TrackType.YEARS, year)

    def update_question(self, question_id: int, changes: Dict[str, Any]):
        question = self.periods.items.get_active(question_id)
        if question and changes.get("topic"):
            # A single known item may change topic as long as the new label is approved
            valid = self.validator.require_valid(question.exam_id, question.subject_id,
                                                 [{"topic": changes["topic"]}])
            changes = {**changes, "topic_id": valid[0]["topic_id"], "topic_name": valid[0]["topic_name"]}
        return self.periods.update_item(question_id, changes)

    def delete_question(self, question_id: int) -> Dict[str, Any]:
        return self.periods.delete_item(question_id)
