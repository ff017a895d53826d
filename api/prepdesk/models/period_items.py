from sqlalchemy import (
    BigInteger, Boolean, Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text, text,
)
from sqlalchemy.orm import declared_attr
from sqlalchemy.sql import func

from ..config.database import Base

ACTIVE_ONLY = {"postgresql_where": text("is_active"), "sqlite_where": text("is_active = 1")}


class PeriodItemMixin:
    """Columns shared by everything stored under a track period."""

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    @declared_attr
    def exam_id(cls):
        return Column(Integer, ForeignKey("exams.id"), nullable=False, index=True)

    @declared_attr
    def subject_id(cls):
        return Column(Integer, ForeignKey("subjects.id"), nullable=False, index=True)

    @declared_attr
    def track_id(cls):
        return Column(Integer, ForeignKey("tracks.id"), nullable=False, index=True)

    @declared_attr
    def sub_category_id(cls):
        return Column(Integer, ForeignKey("sub_categories.id"), nullable=False, index=True)

    # Denormalized copies of the hierarchy names, written from the resolved context
    exam_name = Column(String(100), nullable=False)
    subject_name = Column(String(255), nullable=False)
    track_name = Column(String(255), nullable=False)
    sub_category_name = Column(String(255), nullable=False)

    name = Column(String(255), nullable=False)
    display_name = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    order_index = Column(BigInteger, nullable=False, default=0)

    period_type = Column(String(20), nullable=False)
    period_key = Column(String(255), nullable=False)
    period_number = Column(Integer, nullable=False)
    period_label = Column(String(255), nullable=False)

    item_metadata = Column("metadata", JSON, nullable=True)  # "metadata" is reserved on declarative models
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def summary(self):
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "order_index": self.order_index,
            "topic_id": self.topic_id,
            "period_type": self.period_type,
            "period_number": self.period_number,
            "period_label": self.period_label,
            "exam_name": self.exam_name,
            "subject_name": self.subject_name,
            "track_name": self.track_name,
            "sub_category_name": self.sub_category_name,
            "metadata": self.item_metadata or {},
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ContentItem(PeriodItemMixin, Base):
    __tablename__ = "content_items"
    __table_args__ = (
        Index("ix_content_items_period", "track_id", "sub_category_id", "period_type", "period_number"),
        Index("uq_content_items_active_name", "track_id", "sub_category_id", "period_key", "name",
              unique=True, **ACTIVE_ONLY),
    )

    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=True, index=True)
    file_path = Column(String(1000), nullable=True)
    file_type = Column(String(50), nullable=True)
    file_size = Column(BigInteger, nullable=True)
    duration = Column(Integer, nullable=True)

    def to_dict(self):
        data = super().to_dict()
        data.update({
            "file_path": self.file_path,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "duration": self.duration,
        })
        return data


class QuestionItem(PeriodItemMixin, Base):
    __tablename__ = "question_items"
    __table_args__ = (
        Index("ix_question_items_period", "track_id", "sub_category_id", "period_type", "period_number"),
        Index("uq_question_items_active_name", "track_id", "sub_category_id", "period_key", "name",
              unique=True, **ACTIVE_ONLY),
    )

    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False, index=True)
    topic_name = Column(String(255), nullable=True)
    year = Column(String(10), nullable=True, index=True)
    question = Column(Text, nullable=False)
    question_diagram = Column(String(1000), nullable=True)
    correct_answer = Column(Text, nullable=False)
    incorrect_answers = Column(JSON, nullable=False, default=list)
    explanation = Column(Text, nullable=True)
    difficulty = Column(String(20), nullable=True)

    def to_dict(self):
        data = super().to_dict()
        data.update({
            "topic_name": self.topic_name,
            "year": self.year,
            "question": self.question,
            "question_diagram": self.question_diagram,
            "correct_answer": self.correct_answer,
            "incorrect_answers": self.incorrect_answers or [],
            "explanation": self.explanation,
            "difficulty": self.difficulty,
        })
        return data


class PeriodSlot(Base):
    """Claim on one (context, period) for one item kind; at most one active claim per key."""

    __tablename__ = "period_slots"
    __table_args__ = (
        Index("uq_period_slots_active", "item_kind", "exam_id", "subject_id", "track_id",
              "sub_category_id", "period_key", unique=True, **ACTIVE_ONLY),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    item_kind = Column(String(20), nullable=False)  # content or question
    exam_id = Column(Integer, ForeignKey("exams.id"), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    track_id = Column(Integer, ForeignKey("tracks.id"), nullable=False)
    sub_category_id = Column(Integer, ForeignKey("sub_categories.id"), nullable=False)
    period_key = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    released_at = Column(DateTime(timezone=True), nullable=True)
