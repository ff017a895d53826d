import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError

from ..core.errors import Conflict
from ..core.periods import PeriodSpec
from ..repositories import PeriodItemRepository, PeriodSlotRepository

logger = logging.getLogger(__name__)


@dataclass
class ExistingPeriod:
    exists: bool
    count: int
    items: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"exists": self.exists, "count": self.count, "items": [i.summary() for i in self.items]}


class DuplicateGuard:
    """Keeps one active item set per (context, period).

    The application-level check produces a readable Conflict; the period
    slot's partial unique index catches writers that raced past the check.
    Callers own the transaction: ``claim`` only flushes.
    """

    def __init__(self, item_kind: str, items: PeriodItemRepository, slots: PeriodSlotRepository):
        self.item_kind = item_kind
        self.items = items
        self.slots = slots

    def check(self, context, spec: PeriodSpec) -> ExistingPeriod:
        found = self.items.find_period_items(context, spec)
        return ExistingPeriod(exists=bool(found), count=len(found), items=found)

    def conflict(self, spec: PeriodSpec, existing: ExistingPeriod) -> Conflict:
        logger.warning(f"{self.item_kind} already exists for {spec.label}: {existing.count} active item(s)")
        return Conflict(
            f"{self.item_kind.capitalize()} already exists for {spec.label}",
            existing.count,
            [item.summary() for item in existing.items],
        )

    def release(self, context, spec: PeriodSpec, existing: ExistingPeriod) -> int:
        """Soft-delete the period's active items and drop the claims nothing else holds."""
        deleted = self.items.soft_delete(existing.items)
        keys = {spec.key} | {item.period_key for item in existing.items}
        self.slots.release(self.item_kind, context, keys)
        if deleted:
            logger.info(f"Soft-deleted {deleted} {self.item_kind} item(s) for {spec.label}")
        return deleted

    def claim(self, context, spec: PeriodSpec, existing: ExistingPeriod) -> None:
        """Take the period slot; a concurrent writer holding it turns into Conflict."""
        # Drops only claims with no active items behind them
        self.slots.release(self.item_kind, context, [spec.key])
        try:
            with self.slots.db.begin_nested():
                self.slots.add(self.item_kind, context, spec.key)
        except IntegrityError:
            logger.warning(f"Lost the race for {spec.label}: another request claimed it first")
            current = self.check(context, spec)
            raise Conflict(f"{self.item_kind.capitalize()} for {spec.label} was written by another request",
                           current.count, [item.summary() for item in current.items])
