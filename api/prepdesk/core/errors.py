"""Error taxonomy for the content pipeline.

Every error carries the HTTP status it maps to and a ``details`` dict that is
merged into the JSON body, so callers get enough context (available tracks,
approved topics, existing items) to correct the request themselves.
"""
from typing import Any, Dict, List, Optional


class PipelineError(Exception):
    status_code = 400
    error = "PipelineError"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {"success": False, "error": self.error, "message": self.message}
        body.update(self.details)
        return body


class ContextNotFound(PipelineError):
    status_code = 404
    error = "ContextNotFound"

    def __init__(self, level: str, message: str, available_tracks: Optional[List[Dict[str, Any]]] = None):
        details: Dict[str, Any] = {"level": level}
        if available_tracks is not None:
            details["available_tracks"] = available_tracks
        super().__init__(message, details)
        self.level = level
        self.available_tracks = available_tracks


class TrackTypeMismatch(PipelineError):
    error = "TrackTypeMismatch"

    def __init__(self, track_name: str, actual: str, expected: str):
        super().__init__(
            f"Track '{track_name}' is of type '{actual}', not '{expected}'",
            {"track_type": actual, "expected_track_type": expected},
        )


class PeriodOutOfRange(PipelineError):
    error = "PeriodOutOfRange"


class PeriodCapacityExceeded(PeriodOutOfRange):
    error = "PeriodCapacityExceeded"


class Conflict(PipelineError):
    status_code = 409
    error = "Conflict"

    def __init__(self, message: str, count: int, existing_items: List[Dict[str, Any]]):
        super().__init__(message, {
            "existing_count": count,
            "existing_items": existing_items,
            "suggestion": "Resend with force=true to replace the existing content",
        })
        self.count = count
        self.existing_items = existing_items


class TopicValidationFailed(PipelineError):
    error = "TopicValidationFailed"

    def __init__(self, report: Dict[str, Any]):
        invalid = report["summary"]["invalid"]
        super().__init__(
            f"{invalid} item(s) reference topics outside the approved list; nothing was written",
            {"validation": report},
        )
        self.report = report


class ItemNotFound(PipelineError):
    status_code = 404
    error = "ItemNotFound"


class InfrastructureFailure(PipelineError):
    status_code = 503
    error = "InfrastructureFailure"
