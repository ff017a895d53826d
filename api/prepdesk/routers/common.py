from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.errors import PipelineError
from ..core.periods import TrackType
from ..repositories import HierarchyRepository
from ..services.context_resolver import ContextResolver, ExamScope, ResolvedContext

# Errors that already carry their own response; handlers re-raise these untouched
PASSTHROUGH_ERRORS = (HTTPException, PipelineError, SQLAlchemyError)


def parse_period_type(period_type: str) -> TrackType:
    try:
        return TrackType.parse(period_type)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def resolve_context(db: Session, exam_name: str, subject_name: str, track_name: str,
                    sub_category_name: str, expected_track_type: TrackType = None) -> ResolvedContext:
    resolver = ContextResolver(HierarchyRepository(db))
    expected = expected_track_type.value if expected_track_type else None
    return resolver.resolve(exam_name, subject_name, track_name, sub_category_name, expected).unwrap()


def resolve_scope(db: Session, exam_name: str, subject_name: str) -> ExamScope:
    return ContextResolver(HierarchyRepository(db)).resolve_scope(exam_name, subject_name)
