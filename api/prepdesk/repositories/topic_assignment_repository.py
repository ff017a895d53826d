from datetime import datetime
from typing import List

from sqlalchemy.orm import Session

from ..models import Topic, TopicAssignment


class TopicAssignmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def _for_period(self, context, time_period: str, period_value: str):
        return self.db.query(TopicAssignment).filter(
            TopicAssignment.exam_id == context.exam_id,
            TopicAssignment.subject_id == context.subject_id,
            TopicAssignment.track_id == context.track_id,
            TopicAssignment.sub_category_id == context.sub_category_id,
            TopicAssignment.time_period == time_period,
            TopicAssignment.period_value == period_value,
            TopicAssignment.is_active.is_(True),
        )

    def list_for_period(self, context, time_period: str, period_value: str) -> List[tuple]:
        """Active (assignment, topic) pairs of one period in assignment order"""
        return self._for_period(context, time_period, period_value).join(
            Topic, Topic.id == TopicAssignment.topic_id
        ).with_entities(TopicAssignment, Topic).order_by(
            TopicAssignment.order_index, TopicAssignment.id
        ).all()

    def list_for_track(self, context) -> List[tuple]:
        return self.db.query(TopicAssignment, Topic).join(
            Topic, Topic.id == TopicAssignment.topic_id
        ).filter(
            TopicAssignment.exam_id == context.exam_id,
            TopicAssignment.subject_id == context.subject_id,
            TopicAssignment.track_id == context.track_id,
            TopicAssignment.sub_category_id == context.sub_category_id,
            TopicAssignment.is_active.is_(True),
        ).order_by(
            TopicAssignment.period_number, TopicAssignment.period_value, TopicAssignment.order_index
        ).all()

    def deactivate_for_period(self, context, time_period: str, period_value: str) -> int:
        count = 0
        now = datetime.now()
        for assignment in self._for_period(context, time_period, period_value).all():
            assignment.is_active = False
            assignment.updated_at = now
            count += 1
        self.db.flush()
        return count

    def add(self, context, time_period: str, period_value: str, period_number: int,
            topic_id: int, order_index: int) -> TopicAssignment:
        assignment = TopicAssignment(
            exam_id=context.exam_id,
            subject_id=context.subject_id,
            track_id=context.track_id,
            sub_category_id=context.sub_category_id,
            time_period=time_period,
            period_value=period_value,
            period_number=period_number,
            topic_id=topic_id,
            order_index=order_index,
            is_active=True,
        )
        self.db.add(assignment)
        return assignment
