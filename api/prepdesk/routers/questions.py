from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
import logging

from ..config.database import get_db
from ..core.errors import ItemNotFound
from ..core.periods import TrackType
from ..services.grouping import GroupingView
from ..services.period_content import PeriodContentService
from ..services.questions import QuestionService
from ..services.topic_assignments import TopicAssignmentAggregator
from ..services.topic_validator import TopicValidator, TopicVocabulary
from ..repositories import TopicRepository
from .common import PASSTHROUGH_ERRORS, parse_period_type, resolve_context, resolve_scope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/questions", tags=["questions"])

CONTEXT_PATH = "/{exam_name}/{subject_name}/{track_name}/{sub_category_name}"
YEAR_PATH = "/years" + CONTEXT_PATH + "/{year}"
TOPICS_PATH = "/{period_type}" + CONTEXT_PATH + "/{period}/topics"


class QuestionIn(BaseModel):
    topic: str
    question: str
    correct_answer: str
    incorrect_answers: List[str] = Field(default_factory=list)
    question_diagram: Optional[str] = None
    explanation: Optional[str] = None
    difficulty: Optional[str] = None
    name: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None
    order_index: Optional[int] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class QuestionUpdate(BaseModel):
    topic: Optional[str] = None
    question: Optional[str] = None
    correct_answer: Optional[str] = None
    incorrect_answers: Optional[List[str]] = None
    question_diagram: Optional[str] = None
    explanation: Optional[str] = None
    difficulty: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None
    order_index: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None


class QuestionUploadRequest(BaseModel):
    questions: List[QuestionIn] = Field(..., min_length=1)
    force: bool = False


class TopicLabel(BaseModel):
    topic: Optional[str] = None


class ValidateTopicsRequest(BaseModel):
    questions: List[TopicLabel] = Field(..., min_length=1)


class TopicRef(BaseModel):
    topic_id: Optional[int] = None
    topic_name: Optional[str] = None
    order_index: Optional[int] = None


class TopicAssignmentRequest(BaseModel):
    topics: List[TopicRef] = Field(..., min_length=1)
    force: bool = False


def _server_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error while trying to {action}: {str(e)}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {str(e)}"
    )


@router.post("/validate-topics/{exam_name}/{subject_name}")
async def validate_topics(
    exam_name: str,
    subject_name: str,
    request: ValidateTopicsRequest,
    db: Session = Depends(get_db)
):
    """Check topic labels against the approved list without writing anything"""
    try:
        scope = resolve_scope(db, exam_name, subject_name)
        report = TopicValidator(TopicRepository(db)).validate(
            scope.exam_id, scope.subject_id, [q.model_dump() for q in request.questions]
        )
        return {"success": report.is_valid, **report.to_dict()}
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        raise _server_error("validate topics", e)


@router.get("/topics/{exam_name}/{subject_name}/{topic_name}/questions")
async def get_questions_for_topic(
    exam_name: str,
    subject_name: str,
    topic_name: str,
    db: Session = Depends(get_db)
):
    """All active questions of a topic across every year"""
    try:
        scope = resolve_scope(db, exam_name, subject_name)
        vocabulary = TopicVocabulary(TopicRepository(db).list_topics(scope.exam_id, scope.subject_id))
        topic = vocabulary.lookup(topic_name)
        if not topic:
            raise ItemNotFound(f'Topic "{topic_name}" not found', {"available_topics": vocabulary.suggestions()})
        result = TopicAssignmentAggregator(db).get_questions_for_topic(scope.exam_id, scope.subject_id, topic.id)
        return {"success": True, **result}
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        raise _server_error("fetch topic questions", e)


@router.get("/periods" + CONTEXT_PATH)
async def list_question_periods(
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    db: Session = Depends(get_db)
):
    try:
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name)
        periods = PeriodContentService(db, item_kind="question").list_periods(context)
        return {"success": True, "context": context.to_dict(), "periods": periods}
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        raise _server_error("list periods", e)


@router.get("/groups" + CONTEXT_PATH)
async def group_questions(
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    group_by: str = Query("auto", description="topic, week, day, semester, year or auto"),
    db: Session = Depends(get_db)
):
    try:
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name)
        return {"success": True, **GroupingView(db).group_questions(context, group_by)}
    except PASSTHROUGH_ERRORS:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        raise _server_error("group questions", e)


@router.get(YEAR_PATH)
async def get_year_questions(
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    year: str,
    db: Session = Depends(get_db)
):
    try:
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name, TrackType.YEARS)
        result = QuestionService(db).get_year_questions(context, year)
        return {"success": True, "exists": result["count"] > 0, "context": context.to_dict(), **result}
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        raise _server_error("fetch questions", e)


@router.post(YEAR_PATH, status_code=status.HTTP_201_CREATED)
async def upload_year_questions(
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    year: str,
    request: QuestionUploadRequest,
    db: Session = Depends(get_db)
):
    """Upload a year's questions; every topic must be approved or nothing is written"""
    try:
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name, TrackType.YEARS)
        result = QuestionService(db).upload_year_questions(
            context, year, [q.model_dump(exclude_none=True) for q in request.questions], force=request.force
        )
        return {"context": context.to_dict(), **result.to_dict()}
    except PASSTHROUGH_ERRORS:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        raise _server_error("upload questions", e)


@router.delete(YEAR_PATH)
async def delete_year_questions(
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    year: str,
    confirm: bool = Query(False, description="Must be true to delete"),
    db: Session = Depends(get_db)
):
    if not confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Deletion requires confirm=true"
        )
    try:
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name, TrackType.YEARS)
        result = QuestionService(db).delete_year(context, year)
        return {"success": True, "message": f"Deleted {result['deleted_count']} question(s)", **result}
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        raise _server_error("delete questions", e)


@router.get(TOPICS_PATH)
async def get_period_topics(
    period_type: str,
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    period: str,
    db: Session = Depends(get_db)
):
    """Ordered topics assigned to one period"""
    try:
        track_type = parse_period_type(period_type)
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name, track_type)
        topics = TopicAssignmentAggregator(db).get_assignments(context, track_type, period)
        return {"success": True, "context": context.to_dict(), "count": len(topics), "topics": topics}
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        raise _server_error("fetch topic assignments", e)


@router.post(TOPICS_PATH, status_code=status.HTTP_201_CREATED)
async def assign_period_topics(
    period_type: str,
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    period: str,
    request: TopicAssignmentRequest,
    db: Session = Depends(get_db)
):
    """Assign an ordered topic list to a period; an existing list is only replaced with force=true"""
    try:
        track_type = parse_period_type(period_type)
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name, track_type)
        return TopicAssignmentAggregator(db).assign(
            context, track_type, period, [t.model_dump() for t in request.topics], force=request.force
        )
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        raise _server_error("assign topics", e)


@router.put(TOPICS_PATH)
async def replace_period_topics(
    period_type: str,
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    period: str,
    request: TopicAssignmentRequest,
    db: Session = Depends(get_db)
):
    try:
        track_type = parse_period_type(period_type)
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name, track_type)
        return TopicAssignmentAggregator(db).replace_assignments(
            context, track_type, period, [t.model_dump() for t in request.topics]
        )
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        raise _server_error("replace topic assignments", e)


@router.delete(TOPICS_PATH)
async def remove_period_topics(
    period_type: str,
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    period: str,
    db: Session = Depends(get_db)
):
    try:
        track_type = parse_period_type(period_type)
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name, track_type)
        return {"success": True, **TopicAssignmentAggregator(db).remove_assignments(context, track_type, period)}
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        raise _server_error("remove topic assignments", e)


@router.get(TOPICS_PATH + "/{topic_name}/questions")
async def get_period_topic_questions(
    period_type: str,
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    period: str,
    topic_name: str,
    db: Session = Depends(get_db)
):
    """Questions of a topic assigned to this period, gathered from every year"""
    try:
        track_type = parse_period_type(period_type)
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name, track_type)
        result = TopicAssignmentAggregator(db).get_period_topic_questions(context, track_type, period, topic_name)
        return {"success": True, **result}
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        raise _server_error("fetch period topic questions", e)


@router.put("/{question_id}")
async def update_question(question_id: int, request: QuestionUpdate, db: Session = Depends(get_db)):
    """Update one question; a new topic label is validated before it is applied"""
    try:
        question = QuestionService(db).update_question(question_id, request.model_dump(exclude_none=True))
        return {"success": True, "question": question.to_dict()}
    except PASSTHROUGH_ERRORS:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        raise _server_error(f"update question {question_id}", e)


@router.delete("/{question_id}")
async def delete_question(question_id: int, db: Session = Depends(get_db)):
    try:
        return {"success": True, **QuestionService(db).delete_question(question_id)}
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        raise _server_error(f"delete question {question_id}", e)
