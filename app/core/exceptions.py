"""
Domain exceptions raised by the scheduling core and mapped to HTTP responses.
"""
from typing import Any, Dict, List, Optional, Sequence


class ScheduleError(Exception):
    """Base class for all scheduling errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(ScheduleError, ValueError):
    """Raised when schedule fields are malformed (ordering, running day count)."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.field:
            body["field"] = self.field
        return body


class NotFoundError(ScheduleError):
    """Raised when a schedule, train or location id does not resolve."""

    def __init__(self, resource: str, resource_id: Any):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} {resource_id} not found")


class ConflictError(ScheduleError):
    """Raised when a candidate schedule overlaps existing schedules of the same train."""

    def __init__(self, conflicts: Sequence[Any]):
        self.conflicts: List[Any] = list(conflicts)
        super().__init__(
            f"Schedule conflicts with {len(self.conflicts)} existing schedule(s)"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "conflicts": [
                {
                    "id": conflict.id,
                    "scheduledDeparture": conflict.scheduled_departure.isoformat(),
                    "scheduledArrival": conflict.scheduled_arrival.isoformat(),
                }
                for conflict in self.conflicts
            ],
        }


class IllegalTransitionError(ScheduleError):
    """Raised when the requested status is not reachable from the current one."""

    def __init__(self, current: Any, requested: Any):
        self.current = getattr(current, "value", current)
        self.requested = getattr(requested, "value", requested)
        super().__init__(
            f"Cannot transition schedule from '{self.current}' to '{self.requested}'"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "currentStatus": self.current,
            "requestedStatus": self.requested,
        }


class PersistenceError(ScheduleError):
    """Raised when the storage layer fails; the transaction has been rolled back."""

    pass


# Mapping of scheduling exceptions to HTTP status codes
ERROR_STATUS_CODES = {
    ValidationError: 422,
    NotFoundError: 404,
    ConflictError: 409,
    IllegalTransitionError: 400,
    PersistenceError: 503,
}


def status_code_for(exc: ScheduleError) -> int:
    """Resolve the HTTP status for an error, honouring subclasses."""
    for error_class in type(exc).__mro__:
        if error_class in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_class]
    return 500
