"""
Schedule database model for recurring train duty periods.
"""
from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, DateTime, Enum, ForeignKey, Index, Integer,
)
import enum
from datetime import datetime, timezone

from app.db.base import Base

ALL_RUNNING_DAYS = 0b1111111


def utcnow() -> datetime:
    """Current time as naive UTC, the representation stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ScheduleStatus(str, enum.Enum):
    """Enumeration for schedule operational status."""
    SCHEDULED = "scheduled"
    RUNNING = "running"
    DELAYED = "delayed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Schedule(Base):
    """
    Schedule model representing a recurring duty period of one train.

    Attributes:
        train_id: Train the schedule belongs to (conflict scope)
        departure_location_id: Departure location
        arrival_location_id: Arrival location
        scheduled_departure: Instant whose time of day opens the daily window
        scheduled_arrival: Instant closing the daily window
        actual_departure: Recorded when the schedule starts running
        actual_arrival: Recorded when the schedule completes
        status: Current operational status
        is_cancelled: Denormalised flag, true iff status is cancelled
        running_days: 7-bit mask, bit 0 = Monday ... bit 6 = Sunday
        effective_start_date: First day the recurrence is active
        effective_end_date: Last day of the recurrence, open-ended when null
    """
    __tablename__ = "schedules"
    __table_args__ = (
        Index("ix_schedules_train_active", "train_id", "is_cancelled"),
        CheckConstraint("scheduled_arrival > scheduled_departure", name="arrival_after_departure"),
        CheckConstraint("running_days >= 0 AND running_days <= 127", name="running_days_mask"),
    )

    id = Column(Integer, primary_key=True, index=True)
    train_id = Column(Integer, ForeignKey("trains.id"), nullable=False, index=True)
    departure_location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    arrival_location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    scheduled_departure = Column(DateTime, nullable=False)
    scheduled_arrival = Column(DateTime, nullable=False)
    actual_departure = Column(DateTime)
    actual_arrival = Column(DateTime)
    status = Column(
        Enum(ScheduleStatus, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
        nullable=False,
        default=ScheduleStatus.SCHEDULED,
    )
    is_cancelled = Column(Boolean, nullable=False, default=False)
    running_days = Column(Integer, nullable=False, default=ALL_RUNNING_DAYS)
    effective_start_date = Column(Date, nullable=False)
    effective_end_date = Column(Date)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime)

    def __repr__(self) -> str:
        return f"<Schedule(id={self.id}, train_id={self.train_id}, status={self.status})>"
