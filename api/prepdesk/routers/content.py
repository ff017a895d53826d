from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
import logging

from ..config.database import get_db
from ..services.grouping import GroupingView
from ..services.period_content import PeriodContentService
from .common import PASSTHROUGH_ERRORS, parse_period_type, resolve_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/content", tags=["content"])

PERIOD_PATH = "/{period_type}/{exam_name}/{subject_name}/{track_name}/{sub_category_name}/{period}"
CONTEXT_PATH = "/{exam_name}/{subject_name}/{track_name}/{sub_category_name}"


class ContentItemIn(BaseModel):
    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    file_path: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    duration: Optional[int] = None
    order_index: Optional[int] = None
    topic: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ContentItemUpdate(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None
    file_path: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    duration: Optional[int] = None
    order_index: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None


class ContentUploadRequest(BaseModel):
    content: List[ContentItemIn] = Field(..., min_length=1)
    force: bool = False


class ContentReplaceRequest(BaseModel):
    content: List[ContentItemUpdate] = Field(..., min_length=1)
    replace_all: bool = True


def _items(models: List[BaseModel]) -> List[Dict[str, Any]]:
    return [m.model_dump(exclude_none=True) for m in models]


@router.get("/periods" + CONTEXT_PATH)
async def list_periods(
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    db: Session = Depends(get_db)
):
    """List the periods of a track with their active item counts"""
    try:
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name)
        return {
            "success": True,
            "context": context.to_dict(),
            "periods": PeriodContentService(db).list_periods(context),
        }
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Error listing periods: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list periods: {str(e)}"
        )


@router.get("/groups" + CONTEXT_PATH)
async def group_content(
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    group_by: str = Query("auto", description="topic, week, day, month, semester, year or auto"),
    db: Session = Depends(get_db)
):
    """Group a track's active content by period or by topic"""
    try:
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name)
        return {"success": True, **GroupingView(db).group_content(context, group_by)}
    except PASSTHROUGH_ERRORS:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error grouping content: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to group content: {str(e)}"
        )


@router.get(PERIOD_PATH)
async def get_period_content(
    period_type: str,
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    period: str,
    db: Session = Depends(get_db)
):
    """Active content of one period"""
    try:
        track_type = parse_period_type(period_type)
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name, track_type)
        result = PeriodContentService(db).get_period_items(context, track_type, period)
        return {"success": True, "exists": result["count"] > 0, "context": context.to_dict(), **result}
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Error fetching period content: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch content: {str(e)}"
        )


@router.post(PERIOD_PATH, status_code=status.HTTP_201_CREATED)
async def upload_period_content(
    period_type: str,
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    period: str,
    request: ContentUploadRequest,
    db: Session = Depends(get_db)
):
    """Upload content for one period; existing content is only replaced with force=true"""
    try:
        track_type = parse_period_type(period_type)
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name, track_type)
        result = PeriodContentService(db).upload_period_content(
            context, track_type, period, _items(request.content), force=request.force
        )
        return {"context": context.to_dict(), **result.to_dict()}
    except PASSTHROUGH_ERRORS:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error uploading content: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to upload content: {str(e)}"
        )


@router.put(PERIOD_PATH)
async def replace_period_content(
    period_type: str,
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    period: str,
    request: ContentReplaceRequest,
    db: Session = Depends(get_db)
):
    """Replace a period's content, or update its items in place with replace_all=false"""
    try:
        track_type = parse_period_type(period_type)
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name, track_type)
        result = PeriodContentService(db).replace_period(
            context, track_type, period, _items(request.content), replace_all=request.replace_all
        )
        return {"context": context.to_dict(), **result.to_dict()}
    except PASSTHROUGH_ERRORS:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error replacing content: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to replace content: {str(e)}"
        )


@router.delete(PERIOD_PATH)
async def delete_period_content(
    period_type: str,
    exam_name: str,
    subject_name: str,
    track_name: str,
    sub_category_name: str,
    period: str,
    confirm: bool = Query(False, description="Must be true to delete"),
    db: Session = Depends(get_db)
):
    """Soft-delete every active item of one period"""
    if not confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Deletion requires confirm=true"
        )
    try:
        track_type = parse_period_type(period_type)
        context = resolve_context(db, exam_name, subject_name, track_name, sub_category_name, track_type)
        result = PeriodContentService(db).delete_period(context, track_type, period)
        return {"success": True, "message": f"Deleted {result['deleted_count']} item(s)", **result}
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Error deleting content: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete content: {str(e)}"
        )


@router.put("/items/{item_id}")
async def update_content_item(item_id: int, request: ContentItemUpdate, db: Session = Depends(get_db)):
    try:
        item = PeriodContentService(db).update_item(item_id, request.model_dump(exclude_none=True))
        return {"success": True, "item": item.to_dict()}
    except PASSTHROUGH_ERRORS:
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating content item {item_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update content item: {str(e)}"
        )


@router.delete("/items/{item_id}")
async def delete_content_item(item_id: int, db: Session = Depends(get_db)):
    try:
        return {"success": True, **PeriodContentService(db).delete_item(item_id)}
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Error deleting content item {item_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete content item: {str(e)}"
        )
