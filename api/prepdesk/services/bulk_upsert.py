import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import Session

from ..models import QuestionItem

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {
    "content": ("name",),
    "question": ("question", "correct_answer", "topic_id"),
}


def is_unique_violation(error: IntegrityError) -> bool:
    if getattr(error.orig, "pgcode", None) == "23505":
        return True
    return "unique" in str(error.orig).lower()


@dataclass
class BulkResult:
    expected: int = 0
    created: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    duplicates: List[Dict[str, Any]] = field(default_factory=list)
    updated: List[Dict[str, Any]] = field(default_factory=list)
    replaced: int = 0

    @property
    def success(self) -> bool:
        return bool(self.created or self.updated) or self.expected == 0

    @property
    def message(self) -> str:
        parts = [f"{len(self.created)} created"]
        if self.updated:
            parts.append(f"{len(self.updated)} updated")
        if self.replaced:
            parts.append(f"{self.replaced} replaced")
        if self.duplicates:
            parts.append(f"{len(self.duplicates)} duplicate(s)")
        if self.errors:
            parts.append(f"{len(self.errors)} error(s)")
        return ", ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "success": self.success,
            "message": self.message,
            "results": {
                "created": self.created,
                "errors": self.errors,
                "duplicates": self.duplicates,
            },
        }
        if self.updated:
            body["results"]["updated"] = self.updated
        if self.replaced:
            body["replaced_count"] = self.replaced
        return body


class BulkUpsertEngine:
    """Insert enriched records one SAVEPOINT at a time so a bad record only loses itself."""

    def __init__(self, db: Session):
        self.db = db

    def upsert(self, model, records: List[Dict[str, Any]]) -> BulkResult:
        item_kind = "question" if model is QuestionItem else "content"
        result = BulkResult(expected=len(records))

        for index, record in enumerate(records):
            missing = [f for f in REQUIRED_FIELDS[item_kind] if record.get(f) in (None, "")]
            if missing:
                result.errors.append({"index": index, "name": record.get("name"),
                                      "error": f"Missing required field(s): {', '.join(missing)}"})
                continue

            try:
                with self.db.begin_nested():
                    instance = model(**record)
                    self.db.add(instance)
                    self.db.flush()
                result.created.append({
                    "index": index,
                    "id": instance.id,
                    "name": instance.name,
                    "display_name": instance.display_name,
                    "order_index": instance.order_index,
                })
            except IntegrityError as e:
                if is_unique_violation(e):
                    result.duplicates.append({"index": index, "name": record.get("name"),
                                              "error": "An active item with this name already exists"})
                else:
                    result.errors.append({"index": index, "name": record.get("name"), "error": str(e.orig)})
            except (DataError, TypeError) as e:
                result.errors.append({"index": index, "name": record.get("name"), "error": str(e)})

        logger.info(f"Bulk insert into {model.__tablename__}: {result.message}")
        return result
