from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Type, Union

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from ..core.periods import PeriodSpec, TrackType
from ..models import ITEM_MODELS, ContentItem, PeriodSlot, QuestionItem

ItemModel = Union[Type[ContentItem], Type[QuestionItem]]


class PeriodItemRepository:
    """Queries over the active items of one item table (content or questions)."""

    def __init__(self, db: Session, model: ItemModel):
        self.db = db
        self.model = model

    def _scoped(self, context):
        model = self.model
        return self.db.query(model).filter(
            model.exam_id == context.exam_id,
            model.subject_id == context.subject_id,
            model.track_id == context.track_id,
            model.sub_category_id == context.sub_category_id,
            model.is_active.is_(True),
        )

    def period_filter(self, spec: PeriodSpec):
        model = self.model
        same_type = model.period_type == spec.period_type.value
        if spec.period_type is TrackType.SEMESTER:
            # A label query matches labels only; a numeric query also matches the label verbatim
            if spec.is_numeric_query:
                return and_(same_type, or_(model.period_label == spec.label,
                                           model.period_number == spec.number))
            return and_(same_type, model.period_label == spec.label)
        return and_(same_type, model.period_number == spec.number)

    def find_period_items(self, context, spec: PeriodSpec) -> List[Any]:
        return self._scoped(context).filter(self.period_filter(spec)).order_by(
            self.model.order_index, self.model.id
        ).all()

    def find_in_period(self, context, spec: PeriodSpec, item_id: Optional[int] = None,
                       name: Optional[str] = None):
        query = self._scoped(context).filter(self.period_filter(spec))
        if item_id is not None:
            return query.filter(self.model.id == item_id).first()
        if name is not None:
            return query.filter(self.model.name == name).first()
        return None

    def list_active(self, context) -> List[Any]:
        return self._scoped(context).order_by(self.model.order_index, self.model.id).all()

    def count_by_period(self, context) -> Dict[str, int]:
        model = self.model
        rows = self.db.query(model.period_key, func.count(model.id)).filter(
            model.exam_id == context.exam_id,
            model.subject_id == context.subject_id,
            model.track_id == context.track_id,
            model.sub_category_id == context.sub_category_id,
            model.is_active.is_(True),
        ).group_by(model.period_key).all()
        return {key: count for key, count in rows}

    def count_by_number(self, context) -> Dict[int, int]:
        model = self.model
        rows = self._scoped(context).with_entities(model.period_number, func.count(model.id)).group_by(
            model.period_number
        ).all()
        return {number: count for number, count in rows}

    def soft_delete(self, items: Iterable[Any]) -> int:
        count = 0
        now = datetime.now()
        for item in items:
            item.is_active = False
            item.updated_at = now
            count += 1
        self.db.flush()
        return count

    def get_active(self, item_id: int):
        return self.db.query(self.model).filter(
            self.model.id == item_id, self.model.is_active.is_(True)
        ).first()

    def for_topic(self, exam_id: int, subject_id: int, topic_id: int) -> List[Any]:
        """Every active item tagged with the topic, whichever track or period it was stored under."""
        model = self.model
        return self.db.query(model).filter(
            model.exam_id == exam_id,
            model.subject_id == subject_id,
            model.topic_id == topic_id,
            model.is_active.is_(True),
        ).order_by(model.period_number.desc(), model.order_index, model.id).all()


class PeriodSlotRepository:
    """Active claims on (context, period) keys, backed by a partial unique index."""

    def __init__(self, db: Session):
        self.db = db

    def release(self, item_kind: str, context, period_keys: Iterable[str]) -> int:
        """Drop the claims on ``period_keys`` that no active item still holds."""
        keys = list(set(period_keys))
        if not keys:
            return 0
        model = ITEM_MODELS[item_kind]
        still_held = select(model.id).where(
            model.exam_id == PeriodSlot.exam_id,
            model.subject_id == PeriodSlot.subject_id,
            model.track_id == PeriodSlot.track_id,
            model.sub_category_id == PeriodSlot.sub_category_id,
            model.period_key == PeriodSlot.period_key,
            model.is_active.is_(True),
        ).correlate(PeriodSlot).exists()
        released = self.db.query(PeriodSlot).filter(
            PeriodSlot.item_kind == item_kind,
            PeriodSlot.exam_id == context.exam_id,
            PeriodSlot.subject_id == context.subject_id,
            PeriodSlot.track_id == context.track_id,
            PeriodSlot.sub_category_id == context.sub_category_id,
            PeriodSlot.period_key.in_(keys),
            PeriodSlot.is_active.is_(True),
            ~still_held,
        ).update({"is_active": False, "released_at": datetime.now()}, synchronize_session=False)
        self.db.flush()
        return released

    def add(self, item_kind: str, context, period_key: str) -> PeriodSlot:
        slot = PeriodSlot(
            item_kind=item_kind,
            exam_id=context.exam_id,
            subject_id=context.subject_id,
            track_id=context.track_id,
            sub_category_id=context.sub_category_id,
            period_key=period_key,
            is_active=True,
        )
        self.db.add(slot)
        self.db.flush()
        return slot
