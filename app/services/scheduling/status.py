"""
Status lifecycle for schedules.
"""

from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Optional
import logging

from app.core.exceptions import IllegalTransitionError, ValidationError
from app.models.schedule import ScheduleStatus, utcnow
from app.services.scheduling.models import ScheduleState, StatusChange

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[ScheduleStatus, FrozenSet[ScheduleStatus]] = {
    ScheduleStatus.SCHEDULED: frozenset({
        ScheduleStatus.RUNNING, ScheduleStatus.DELAYED, ScheduleStatus.CANCELLED,
    }),
    ScheduleStatus.RUNNING: frozenset({
        ScheduleStatus.DELAYED, ScheduleStatus.COMPLETED, ScheduleStatus.CANCELLED,
    }),
    ScheduleStatus.DELAYED: frozenset({
        ScheduleStatus.RUNNING, ScheduleStatus.COMPLETED, ScheduleStatus.CANCELLED,
    }),
    ScheduleStatus.COMPLETED: frozenset(),
    ScheduleStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


class ScheduleStatusMachine:
    """
    Validates status transitions and derives the actual-time fields.

    The machine never mutates its input; it returns a StatusChange which the
    caller persists.
    """

    def __init__(self, departure_tolerance: timedelta = timedelta(0)):
        self.departure_tolerance = departure_tolerance

    def can_transition(self, current: ScheduleStatus, requested: ScheduleStatus) -> bool:
        return requested in ALLOWED_TRANSITIONS.get(current, frozenset())

    def apply_transition(
        self,
        current: ScheduleState,
        requested: ScheduleStatus,
        actual_departure: Optional[datetime] = None,
        actual_arrival: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> StatusChange:
        """
        Compute the field set for moving a schedule to ``requested``.

        Args:
            current: Current persisted state
            requested: Target status
            actual_departure: Departure to record when starting to run
            actual_arrival: Arrival to record when completing
            now: Clock override, defaults to the current UTC time

        Returns:
            The new status, cancellation flag and actual times

        Raises:
            IllegalTransitionError: If the transition is not allowed
            ValidationError: If the actual times are inconsistent
        """
        requested = ScheduleStatus(requested)
        if not self.can_transition(current.status, requested):
            raise IllegalTransitionError(current.status, requested)

        now = now or utcnow()
        departure = current.actual_departure
        arrival = current.actual_arrival

        if requested == ScheduleStatus.RUNNING:
            if actual_departure is not None:
                departure = actual_departure
            elif departure is None or current.status != ScheduleStatus.DELAYED:
                departure = now
            earliest = current.scheduled_departure - self.departure_tolerance
            if departure < earliest:
                raise ValidationError(
                    f"Actual departure {departure.isoformat()} is before the scheduled "
                    f"departure {current.scheduled_departure.isoformat()}",
                    field="actualDeparture",
                )

        elif requested == ScheduleStatus.COMPLETED:
            arrival = actual_arrival if actual_arrival is not None else now
            if departure is not None and arrival <= departure:
                raise ValidationError(
                    "Actual arrival must be after actual departure",
                    field="actualArrival",
                )

        return StatusChange(
            status=requested,
            is_cancelled=requested == ScheduleStatus.CANCELLED,
            actual_departure=departure,
            actual_arrival=arrival,
        )
