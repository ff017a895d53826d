from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import Exam, Subject, SubCategory, Track


class HierarchyRepository:
    """Read-only lookups over exams, subjects, sub-categories and tracks."""

    def __init__(self, db: Session):
        self.db = db

    def find_exam(self, name: str) -> Optional[Exam]:
        return self.db.query(Exam).filter(
            func.upper(Exam.name) == name.strip().upper(),
            Exam.is_active.is_(True),
        ).first()

    def find_subject(self, exam_id: int, name: str) -> Optional[Subject]:
        return self.db.query(Subject).filter(
            Subject.exam_id == exam_id,
            Subject.name == name,
            Subject.is_active.is_(True),
        ).first()

    def find_sub_category(self, exam_id: int, name: str) -> Optional[SubCategory]:
        return self.db.query(SubCategory).filter(
            SubCategory.exam_id == exam_id,
            func.lower(SubCategory.name) == name.strip().lower(),
            SubCategory.is_active.is_(True),
        ).first()

    def find_track_by_name(self, exam_id: int, sub_category_id: int, name: str) -> Optional[Track]:
        return self.db.query(Track).filter(
            Track.exam_id == exam_id,
            Track.sub_category_id == sub_category_id,
            Track.name == name,
            Track.is_active.is_(True),
        ).first()

    def find_track_by_type(self, exam_id: int, sub_category_id: int, track_type: str) -> Optional[Track]:
        return self.db.query(Track).filter(
            Track.exam_id == exam_id,
            Track.sub_category_id == sub_category_id,
            Track.track_type == track_type,
            Track.is_active.is_(True),
        ).order_by(Track.id).first()

    def list_tracks(self, exam_id: int, sub_category_id: int) -> List[Track]:
        return self.db.query(Track).filter(
            Track.exam_id == exam_id,
            Track.sub_category_id == sub_category_id,
            Track.is_active.is_(True),
        ).order_by(Track.id).all()
