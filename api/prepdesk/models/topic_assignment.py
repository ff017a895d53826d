from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.sql import func

from ..config.database import Base
from .period_items import ACTIVE_ONLY


class TopicAssignment(Base):
    __tablename__ = "topic_assignments"
    __table_args__ = (
        Index("ix_topic_assignments_period", "track_id", "sub_category_id", "time_period", "period_value"),
        Index("uq_topic_assignments_active", "track_id", "sub_category_id", "time_period",
              "period_value", "topic_id", unique=True, **ACTIVE_ONLY),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    exam_id = Column(Integer, ForeignKey("exams.id"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False, index=True)
    track_id = Column(Integer, ForeignKey("tracks.id"), nullable=False)
    sub_category_id = Column(Integer, ForeignKey("sub_categories.id"), nullable=False)
    time_period = Column(String(20), nullable=False)  # week, day or semester
    period_value = Column(String(255), nullable=False)  # number, or the semester label
    period_number = Column(Integer, nullable=False)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False, index=True)
    order_index = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
