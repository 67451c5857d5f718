"""
Conflict detection for recurring schedules of the same train.

Two schedules conflict when their effective date ranges, running days and
daily time windows all overlap. Each dimension is an independent predicate;
runs crossing midnight are also checked on the following day. The store query
narrows candidates by train and date range and the final decision is always
made by :func:`schedules_conflict`.
"""

from datetime import date
from typing import Iterable, List, Optional
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.models.schedule import Schedule as ScheduleModel
from app.services.scheduling.models import ConflictingSchedule, ScheduleWindow

logger = logging.getLogger(__name__)


def date_ranges_overlap(a: ScheduleWindow, b: ScheduleWindow) -> bool:
    """Inclusive calendar overlap; a missing end date is open-ended."""
    a_end = a.effective_end_date or date.max
    b_end = b.effective_end_date or date.max
    return a.effective_start_date <= b_end and b.effective_start_date <= a_end


def daily_intervals_overlap(a: ScheduleWindow, b: ScheduleWindow) -> bool:
    """Half-open time-of-day overlap; windows that only touch do not overlap."""
    a_start, a_end = a.daily_interval
    b_start, b_end = b.daily_interval
    return a_start < b_end and b_start < a_end


def running_days_overlap(a: ScheduleWindow, b: ScheduleWindow) -> bool:
    return bool(a.running_days & b.running_days)


def duty_periods_overlap(a: ScheduleWindow, b: ScheduleWindow) -> bool:
    """
    Running-day and time-of-day overlap evaluated together.

    Same-day windows reduce to both predicates holding. Runs crossing
    midnight are also compared through their spill into the next day.
    """
    if running_days_overlap(a, b) and daily_intervals_overlap(a, b):
        return True
    return any(
        a_days & b_days and a_start < b_end and b_start < a_end
        for a_start, a_end, a_days in a.daily_segments
        for b_start, b_end, b_days in b.daily_segments
    )


def schedules_conflict(a: ScheduleWindow, b: ScheduleWindow) -> bool:
    return date_ranges_overlap(a, b) and duty_periods_overlap(a, b)


def find_conflicts(
    candidate: ScheduleWindow,
    existing: Iterable[ScheduleWindow],
    exclude_id: Optional[int] = None,
) -> List[ConflictingSchedule]:
    """
    Pure conflict decision over a snapshot of the train's active schedules.

    Args:
        candidate: Validated schedule being created or edited
        existing: Non-cancelled schedules of the same train
        exclude_id: Schedule id to ignore (the schedule being edited)

    Returns:
        Conflicting schedules sorted by ascending id; empty when none conflict
    """
    conflicts = [
        ConflictingSchedule(
            id=other.id,
            scheduled_departure=other.scheduled_departure,
            scheduled_arrival=other.scheduled_arrival,
        )
        for other in existing
        if other.id != exclude_id
        and other.train_id == candidate.train_id
        and schedules_conflict(candidate, other)
    ]
    return sorted(conflicts, key=lambda c: c.id)


def load_active_schedules(
    db: Session,
    candidate: ScheduleWindow,
    exclude_id: Optional[int] = None,
) -> List[ScheduleWindow]:
    """
    Load the train's non-cancelled schedules that can possibly conflict.

    The query is scoped by the indexed train_id and pushes the date-range
    predicate down as plain comparisons. Running days are not filtered here
    because an overnight run also occupies the day after its running days.
    """
    query = db.query(ScheduleModel).filter(
        ScheduleModel.train_id == candidate.train_id,
        ScheduleModel.is_cancelled == False,  # noqa: E712
        or_(
            ScheduleModel.effective_end_date.is_(None),
            ScheduleModel.effective_end_date >= candidate.effective_start_date,
        ),
    )
    if candidate.effective_end_date is not None:
        query = query.filter(ScheduleModel.effective_start_date <= candidate.effective_end_date)
    if exclude_id is not None:
        query = query.filter(ScheduleModel.id != exclude_id)

    return [ScheduleWindow.from_record(record) for record in query.order_by(ScheduleModel.id).all()]


def detect_conflicts(
    db: Session,
    candidate: ScheduleWindow,
    exclude_id: Optional[int] = None,
) -> List[ConflictingSchedule]:
    """
    Detect conflicts for a candidate against the store.

    Must be called inside the transaction that performs the eventual write,
    after the train has been locked, so concurrent writers for the same train
    cannot both observe an empty result.
    """
    existing = load_active_schedules(db, candidate, exclude_id)
    conflicts = find_conflicts(candidate, existing, exclude_id)
    logger.debug(
        f"Checked train {candidate.train_id} against {len(existing)} active schedules: "
        f"{len(conflicts)} conflict(s)"
    )
    return conflicts
