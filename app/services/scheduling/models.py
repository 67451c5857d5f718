"""
Data structures shared by the conflict detector and the status machine.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from app.core.exceptions import ValidationError
from app.models.schedule import ALL_RUNNING_DAYS, ScheduleStatus

DAYS_IN_WEEK = 7
ONE_DAY = timedelta(days=1)
DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def encode_running_days(days: Sequence[bool]) -> int:
    """Pack seven Monday-first booleans into a bitmask (bit 0 = Monday)."""
    if len(days) != DAYS_IN_WEEK:
        raise ValidationError(
            f"runningDays must contain exactly {DAYS_IN_WEEK} values, got {len(days)}",
            field="runningDays",
        )
    mask = 0
    for index, runs in enumerate(days):
        if runs:
            mask |= 1 << index
    return mask


def decode_running_days(mask: int) -> List[bool]:
    """Unpack a running-day bitmask into seven Monday-first booleans."""
    return [bool(mask & (1 << index)) for index in range(DAYS_IN_WEEK)]


def rotate_running_days(mask: int, days: int) -> int:
    """Shift a running-day mask forward by ``days``, wrapping Sunday onto Monday."""
    days %= DAYS_IN_WEEK
    return ((mask << days) | (mask >> (DAYS_IN_WEEK - days))) & ALL_RUNNING_DAYS


def check_schedule_fields(
    scheduled_departure: datetime,
    scheduled_arrival: datetime,
    effective_start_date: date,
    effective_end_date: Optional[date],
    running_days: Optional[Sequence[bool]] = None,
) -> None:
    """
    Field-level validation performed before any conflict detection.

    Raises:
        ValidationError: If arrival is not after departure, the end date is not
            after the start date, or running days do not have seven entries.
    """
    if scheduled_arrival <= scheduled_departure:
        raise ValidationError("Arrival time must be after departure time", field="scheduledArrival")
    if effective_end_date is not None and effective_end_date <= effective_start_date:
        raise ValidationError("End date must be after start date", field="effectiveEndDate")
    if running_days is not None:
        encode_running_days(running_days)


def _time_of_day(moment: datetime) -> timedelta:
    return timedelta(
        hours=moment.hour,
        minutes=moment.minute,
        seconds=moment.second,
        microseconds=moment.microsecond,
    )


@dataclass(frozen=True)
class ScheduleWindow:
    """The conflict-relevant fields of a schedule."""
    train_id: int
    scheduled_departure: datetime
    scheduled_arrival: datetime
    running_days: int
    effective_start_date: date
    effective_end_date: Optional[date] = None
    id: Optional[int] = None

    @classmethod
    def from_record(cls, record) -> "ScheduleWindow":
        return cls(
            id=record.id,
            train_id=record.train_id,
            scheduled_departure=record.scheduled_departure,
            scheduled_arrival=record.scheduled_arrival,
            running_days=record.running_days,
            effective_start_date=record.effective_start_date,
            effective_end_date=record.effective_end_date,
        )

    @property
    def daily_interval(self) -> Tuple[timedelta, timedelta]:
        """
        Half-open daily window as offsets from midnight.

        The window starts at the departure's time of day and lasts for the
        scheduled duty duration, so it may extend past 24h for overnight runs.
        """
        start = _time_of_day(self.scheduled_departure)
        return start, start + (self.scheduled_arrival - self.scheduled_departure)

    @property
    def daily_segments(self) -> List[Tuple[timedelta, timedelta, int]]:
        """
        The daily window cut at midnight, each piece with the days it falls on.

        A run that crosses midnight occupies ``[0, end - 24h)`` of the following
        day, so its spill carries the running-day mask shifted by one day.
        """
        start, end = self.daily_interval
        segments = []
        offset = 0
        # After a full week every day has been covered by a whole-day piece
        while start < end and offset <= DAYS_IN_WEEK:
            segments.append((start, min(end, ONE_DAY), rotate_running_days(self.running_days, offset)))
            start, end = timedelta(0), end - ONE_DAY
            offset += 1
        return segments

    @property
    def day_names(self) -> List[str]:
        return [name for name, runs in zip(DAY_NAMES, decode_running_days(self.running_days)) if runs]


@dataclass(frozen=True)
class ConflictingSchedule:
    """Reduced view of a conflicting schedule for caller display."""
    id: int
    scheduled_departure: datetime
    scheduled_arrival: datetime


@dataclass(frozen=True)
class ScheduleState:
    """Status-relevant fields of a persisted schedule."""
    status: ScheduleStatus
    scheduled_departure: datetime
    actual_departure: Optional[datetime] = None
    actual_arrival: Optional[datetime] = None

    @classmethod
    def from_record(cls, record) -> "ScheduleState":
        return cls(
            status=ScheduleStatus(record.status),
            scheduled_departure=record.scheduled_departure,
            actual_departure=record.actual_departure,
            actual_arrival=record.actual_arrival,
        )


@dataclass(frozen=True)
class StatusChange:
    """New persisted field set produced by a valid status transition."""
    status: ScheduleStatus
    is_cancelled: bool
    actual_departure: Optional[datetime]
    actual_arrival: Optional[datetime]

    def apply_to(self, record) -> None:
        record.status = self.status
        record.is_cancelled = self.is_cancelled
        record.actual_departure = self.actual_departure
        record.actual_arrival = self.actual_arrival
