import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..config.settings import YEAR_WINDOW
from ..core.errors import ItemNotFound
from ..core.periods import (
    AccessMode, PeriodSpec, TrackType, encode, ensure_period_fits, enumerate_periods, question_access_mode,
)
from ..models import ITEM_MODELS
from ..repositories import PeriodItemRepository, PeriodSlotRepository, TopicRepository
from .bulk_upsert import BulkResult, BulkUpsertEngine
from .duplicate_guard import DuplicateGuard, ExistingPeriod
from .enrichment import EnrichmentEngine, describe, merge_period_metadata, prefixed_name, spec_of
from .topic_validator import TopicValidator

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "content": ("file_path", "file_type", "file_size", "duration"),
    "question": ("question", "question_diagram", "correct_answer", "incorrect_answers",
                 "explanation", "difficulty"),
}


class PeriodContentService:
    """Period-keyed reads and writes for one item kind ("content" or "question")."""

    def __init__(self, db: Session, item_kind: str = "content",
                 validator: Optional[TopicValidator] = None):
        self.db = db
        self.item_kind = item_kind
        self.model = ITEM_MODELS[item_kind]
        self.items = PeriodItemRepository(db, self.model)
        self.guard = DuplicateGuard(item_kind, self.items, PeriodSlotRepository(db))
        self.enricher = EnrichmentEngine()
        self.upserter = BulkUpsertEngine(db)
        self.validator = validator or TopicValidator(TopicRepository(db))

    def period_for(self, context, period_type, period_value) -> PeriodSpec:
        spec = encode(period_type, period_value)
        ensure_period_fits(spec, context.track.track_type, context.track.duration, context.track.name)
        return spec

    def check_period_exists(self, context, period_type, period_value) -> ExistingPeriod:
        return self.guard.check(context, self.period_for(context, period_type, period_value))

    def get_period_items(self, context, period_type, period_value) -> Dict[str, Any]:
        spec = self.period_for(context, period_type, period_value)
        items = self.items.find_period_items(context, spec)
        return {
            "period": {"type": spec.period_type.value, "number": spec.number, "label": spec.label},
            "count": len(items),
            "items": [item.to_dict() for item in items],
        }

    def upload_period_content(self, context, period_type, period_value, items: List[Dict[str, Any]],
                              force: bool = False) -> BulkResult:
        """Write a period's items; existing content needs ``force`` and is replaced in the same transaction."""
        if not items:
            raise ValueError("At least one item is required")
        spec = self.period_for(context, period_type, period_value)
        existing = self.guard.check(context, spec)
        if existing.exists and not force:
            raise self.guard.conflict(spec, existing)

        items = self.validator.require_valid(
            context.exam_id, context.subject_id, items, require_topic=self.item_kind == "question"
        )
        records = self.enricher.enrich(context, spec, items, self.item_kind)
        return self._write(context, spec, existing, records)

    def _write(self, context, spec: PeriodSpec, existing: ExistingPeriod,
               records: List[Dict[str, Any]]) -> BulkResult:
        try:
            replaced = self.guard.release(context, spec, existing) if existing.exists else 0
            self.guard.claim(context, spec, existing)
            result = self.upserter.upsert(self.model, records)
            result.replaced = replaced
            if not result.success:
                # Nothing usable was written: keep whatever was there before
                self.db.rollback()
                result.replaced = 0
                logger.warning(f"No {self.item_kind} created for {spec.label}; changes rolled back")
                return result
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"{spec.label} ({context.track.name}): {result.message}")
        return result

    def replace_period(self, context, period_type, period_value, items: List[Dict[str, Any]],
                       replace_all: bool = True) -> BulkResult:
        spec = self.period_for(context, period_type, period_value)
        existing = self.guard.check(context, spec)
        if not existing.exists:
            raise ItemNotFound(f"No {self.item_kind} found for {spec.label}")
        if not replace_all:
            return self.update_period_items(context, period_type, period_value, items)
        return self.upload_period_content(context, period_type, period_value, items, force=True)

    def update_period_items(self, context, period_type, period_value,
                            items: List[Dict[str, Any]]) -> BulkResult:
        """Update items in place, matched by id or by (prefixed) name."""
        spec = self.period_for(context, period_type, period_value)
        result = BulkResult(expected=len(items))
        try:
            for index, changes in enumerate(items):
                item = None
                if changes.get("id") is not None:
                    item = self.items.find_in_period(context, spec, item_id=changes["id"])
                elif changes.get("name"):
                    item = self.items.find_in_period(context, spec, name=prefixed_name(spec, changes["name"]))
                if not item:
                    result.errors.append({
                        "index": index,
                        "name": changes.get("name"),
                        "error": f"Item not found in {spec.label}",
                    })
                    continue
                self._apply_changes(item, spec, changes, index)
                result.updated.append({"index": index, "id": item.id, "name": item.name,
                                       "order_index": item.order_index})
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"{spec.label} ({context.track.name}): {result.message}")
        return result

    def _apply_changes(self, item, spec: PeriodSpec, changes: Dict[str, Any], index: Optional[int] = None):
        if changes.get("display_name"):
            item.display_name = f"{spec.display_prefix}{changes['display_name']}"
        if changes.get("description") is not None:
            item.description = describe(spec, changes["description"])
        if changes.get("order_index") is not None:
            item.order_index = spec.order_index(changes["order_index"])
        for key in UPDATABLE_FIELDS[self.item_kind]:
            if changes.get(key) is not None:
                setattr(item, key, changes[key])
        if "topic_id" in changes and changes["topic_id"] is not None:
            item.topic_id = changes["topic_id"]
            if self.item_kind == "question":
                item.topic_name = changes.get("topic_name")
        item.item_metadata = merge_period_metadata(spec, item.item_metadata, changes.get("metadata"))
        item.updated_at = datetime.now()

    def update_item(self, item_id: int, changes: Dict[str, Any]):
        item = self.items.get_active(item_id)
        if not item:
            raise ItemNotFound(f"{self.item_kind.capitalize()} {item_id} not found")
        try:
            self._apply_changes(item, spec_of(item), changes)
            self.db.commit()
            self.db.refresh(item)
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Updated {self.item_kind} {item_id} ({item.name})")
        return item

    def delete_item(self, item_id: int) -> Dict[str, Any]:
        item = self.items.get_active(item_id)
        if not item:
            raise ItemNotFound(f"{self.item_kind.capitalize()} {item_id} not found")
        try:
            self.items.soft_delete([item])
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Soft-deleted {self.item_kind} {item_id} ({item.name})")
        return {"deleted_count": 1, "id": item_id}

    def delete_period(self, context, period_type, period_value) -> Dict[str, Any]:
        spec = self.period_for(context, period_type, period_value)
        existing = self.guard.check(context, spec)
        if not existing.exists:
            raise ItemNotFound(f"No {self.item_kind} found for {spec.label}")
        try:
            deleted = self.guard.release(context, spec, existing)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return {"deleted_count": deleted, "period": spec.label}

    def list_periods(self, context, current_year: Optional[int] = None) -> List[Dict[str, Any]]:
        track = context.track
        specs = enumerate_periods(track.track_type, track.duration,
                                  current_year or datetime.now().year, YEAR_WINDOW)
        if self.item_kind == "question":
            access_mode = question_access_mode(track.track_type, track.name)
        else:
            access_mode = AccessMode.DIRECT
        if TrackType.parse(track.track_type) is TrackType.SEMESTER:
            # A listed semester covers items stored under its name or its number
            by_number = self.items.count_by_number(context)
            counts = {spec.key: by_number.get(spec.number, 0) for spec in specs}
        else:
            counts = self.items.count_by_period(context)
        return [
            {
                "number": spec.number,
                "label": spec.label,
                "key": spec.key,
                "name_prefix": spec.name_prefix,
                "access_mode": access_mode.value,
                "item_count": counts.get(spec.key, 0),
            }
            for spec in specs
        ]
