from typing import List, Optional

from sqlalchemy.orm import Session

from ..models import Topic


class TopicRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_topics(self, exam_id: int, subject_id: int) -> List[Topic]:
        """Approved vocabulary for one exam-subject pair"""
        return self.db.query(Topic).filter(
            Topic.exam_id == exam_id,
            Topic.subject_id == subject_id,
            Topic.is_active.is_(True),
        ).order_by(Topic.order_index, Topic.name).all()

    def get_topic(self, topic_id: int) -> Optional[Topic]:
        return self.db.query(Topic).filter(Topic.id == topic_id, Topic.is_active.is_(True)).first()
