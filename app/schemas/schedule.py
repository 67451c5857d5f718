"""
Pydantic schemas for schedule-related API operations.
"""
from __future__ import annotations
from pydantic import Field, field_validator, model_validator
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from app.models.schedule import ScheduleStatus, utcnow
from app.schemas.common import CamelModel, to_naive_utc
from app.services.scheduling.models import (
    DAYS_IN_WEEK, check_schedule_fields, decode_running_days,
)


def _all_days() -> List[bool]:
    return [True] * DAYS_IN_WEEK


class ScheduleBase(CamelModel):
    """Base schedule schema."""
    train_id: int = Field(..., ge=1, description="Train the schedule books")
    departure_location_id: int = Field(..., ge=1, description="Departure location")
    arrival_location_id: int = Field(..., ge=1, description="Arrival location")
    scheduled_departure: datetime = Field(..., description="Departure instant; its time of day opens the daily window")
    scheduled_arrival: datetime = Field(..., description="Arrival instant; closes the daily window")
    running_days: List[bool] = Field(default_factory=_all_days, description="Seven flags, Monday first")
    effective_start_date: date = Field(..., description="First day the recurrence is active")
    effective_end_date: Optional[date] = Field(None, description="Last active day, open-ended when omitted")

    @field_validator("scheduled_departure", "scheduled_arrival", mode="after")
    @classmethod
    def normalise_timestamps(cls, v):
        return to_naive_utc(v)

    @field_validator("running_days", mode="before")
    @classmethod
    def decode_mask(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return decode_running_days(v)
        return v

    @model_validator(mode="after")
    def check_fields(self):
        check_schedule_fields(
            self.scheduled_departure,
            self.scheduled_arrival,
            self.effective_start_date,
            self.effective_end_date,
            self.running_days,
        )
        return self


class ScheduleCreate(ScheduleBase):
    """Schema for creating schedules."""
    pass


class ScheduleUpdate(CamelModel):
    """Schema for partial schedule edits. Status changes go through StatusUpdate."""
    train_id: Optional[int] = Field(None, ge=1)
    departure_location_id: Optional[int] = Field(None, ge=1)
    arrival_location_id: Optional[int] = Field(None, ge=1)
    scheduled_departure: Optional[datetime] = None
    scheduled_arrival: Optional[datetime] = None
    running_days: Optional[List[bool]] = None
    effective_start_date: Optional[date] = None
    effective_end_date: Optional[date] = None

    @field_validator("scheduled_departure", "scheduled_arrival", mode="after")
    @classmethod
    def normalise_timestamps(cls, v):
        return to_naive_utc(v)

    @model_validator(mode="after")
    def reject_null_required_fields(self):
        # effective_end_date may be cleared explicitly; everything else is required
        for name in self.model_fields_set - {"effective_end_date"}:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class StatusUpdate(CamelModel):
    """Schema for status-only updates."""
    status: ScheduleStatus = Field(..., description="Requested status")
    actual_departure: Optional[datetime] = Field(None, description="Actual departure, defaults to now when starting to run")
    actual_arrival: Optional[datetime] = Field(None, description="Actual arrival, defaults to now when completing")

    @field_validator("actual_departure", "actual_arrival", mode="after")
    @classmethod
    def normalise_timestamps(cls, v):
        return to_naive_utc(v)


class StatusUpdateMessage(StatusUpdate):
    """Status update received over the WebSocket channel."""
    id: int = Field(..., description="Schedule to update")


class Schedule(ScheduleBase):
    """Complete schedule schema for responses."""
    id: int
    status: ScheduleStatus
    is_cancelled: bool
    actual_departure: Optional[datetime] = None
    actual_arrival: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class ScheduleStateChanged(CamelModel):
    """Payload broadcast after a committed status change."""
    schedule_id: int
    status: ScheduleStatus
    is_cancelled: bool
    actual_departure: Optional[datetime] = None
    actual_arrival: Optional[datetime] = None

    @classmethod
    def from_record(cls, record) -> "ScheduleStateChanged":
        return cls(
            schedule_id=record.id,
            status=record.status,
            is_cancelled=record.is_cancelled,
            actual_departure=record.actual_departure,
            actual_arrival=record.actual_arrival,
        )


class ScheduleEvent(CamelModel):
    """Change event handed to the update broadcaster after commit."""
    type: str = Field(..., description="scheduleCreated, scheduleUpdated, scheduleEdited or scheduleDeleted")
    timestamp: datetime = Field(default_factory=utcnow)
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def created(cls, record) -> "ScheduleEvent":
        return cls(type="scheduleCreated", data=Schedule.model_validate(record).model_dump(mode="json", by_alias=True))

    @classmethod
    def edited(cls, record) -> "ScheduleEvent":
        return cls(type="scheduleEdited", data=Schedule.model_validate(record).model_dump(mode="json", by_alias=True))

    @classmethod
    def state_changed(cls, record) -> "ScheduleEvent":
        return cls(
            type="scheduleUpdated",
            data=ScheduleStateChanged.from_record(record).model_dump(mode="json", by_alias=True),
        )

    @classmethod
    def deleted(cls, schedule_id: int) -> "ScheduleEvent":
        return cls(type="scheduleDeleted", data={"scheduleId": schedule_id})


class ConflictingScheduleOut(CamelModel):
    """Conflicting schedule entry in a 409 response."""
    id: int
    scheduled_departure: datetime
    scheduled_arrival: datetime


class ConflictResponse(CamelModel):
    """Body of a 409 response."""
    error: str
    conflicts: List[ConflictingScheduleOut]
