import logging
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.periods import TrackType
from ..models import Exam, Subject, SubCategory, Topic, Track

logger = logging.getLogger(__name__)


class HierarchySeeder:
    """Create exams with their subjects, topics, sub-categories and tracks from a nested dict.

    Entities that already exist are reused and reported under ``duplicates``,
    so running the same seed file twice is harmless.
    """

    def __init__(self, db: Session):
        self.db = db
        self.results: Dict[str, List[Dict[str, Any]]] = {"created": [], "duplicates": [], "errors": []}

    def _get_or_create(self, model, lookup: Dict[str, Any], values: Dict[str, Any], label: str):
        instance = self.db.query(model).filter_by(**lookup).first()
        if instance:
            self.results["duplicates"].append({"type": model.__tablename__, "name": label})
            return instance
        instance = model(**lookup, **values)
        try:
            with self.db.begin_nested():
                self.db.add(instance)
                self.db.flush()
        except IntegrityError as e:
            self.results["errors"].append({"type": model.__tablename__, "name": label, "error": str(e.orig)})
            return None
        self.results["created"].append({"type": model.__tablename__, "name": label, "id": instance.id})
        return instance

    def seed(self, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            for exam_data in data.get("exams", []):
                self._seed_exam(exam_data)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Seeded hierarchy: {len(self.results['created'])} created, "
                    f"{len(self.results['duplicates'])} existing, {len(self.results['errors'])} error(s)")
        return {"success": not self.results["errors"], "results": self.results}

    def _seed_exam(self, exam_data: Dict[str, Any]) -> None:
        name = exam_data["name"].strip().upper()
        exam = self._get_or_create(Exam, {"name": name},
                                   {"display_name": exam_data.get("display_name", name), "is_active": True}, name)
        if not exam:
            return

        for subject_data in exam_data.get("subjects", []):
            subject = self._get_or_create(
                Subject, {"exam_id": exam.id, "name": subject_data["name"]},
                {"display_name": subject_data.get("display_name", subject_data["name"]), "is_active": True},
                f"{name}/{subject_data['name']}",
            )
            if not subject:
                continue
            for index, topic_data in enumerate(subject_data.get("topics", [])):
                if isinstance(topic_data, str):
                    topic_data = {"name": topic_data}
                self._get_or_create(
                    Topic, {"exam_id": exam.id, "subject_id": subject.id, "name": topic_data["name"]},
                    {
                        "display_name": topic_data.get("display_name", topic_data["name"]),
                        "description": topic_data.get("description"),
                        "order_index": topic_data.get("order_index", index),
                        "is_active": True,
                    },
                    f"{name}/{subject.name}/{topic_data['name']}",
                )

        for sub_category_data in exam_data.get("sub_categories", []):
            sub_name = sub_category_data["name"].strip().lower()
            sub_category = self._get_or_create(
                SubCategory, {"exam_id": exam.id, "name": sub_name},
                {"display_name": sub_category_data.get("display_name", sub_category_data["name"]), "is_active": True},
                f"{name}/{sub_name}",
            )
            if not sub_category:
                continue
            for track_data in sub_category_data.get("tracks", []):
                track_type = TrackType.parse(track_data["track_type"]).value
                self._get_or_create(
                    Track, {"exam_id": exam.id, "sub_category_id": sub_category.id, "name": track_data["name"]},
                    {
                        "display_name": track_data.get("display_name", track_data["name"]),
                        "track_type": track_type,
                        "duration": track_data.get("duration"),
                        "is_active": True,
                    },
                    f"{name}/{sub_name}/{track_data['name']}",
                )
