"""
API routes for recurring schedule management.
"""
from fastapi import APIRouter, Depends, Query, Response, status
from typing import List, Optional
from datetime import datetime
import logging

from app.core.dependencies import get_schedule_service
from app.schemas.schedule import (
    ConflictResponse, Schedule, ScheduleCreate, ScheduleUpdate, StatusUpdate,
)
from app.services.scheduling.service import ScheduleService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=List[Schedule])
async def list_schedules(
    start_date: Optional[datetime] = Query(None, alias="startDate", description="Earliest scheduled departure"),
    end_date: Optional[datetime] = Query(None, alias="endDate", description="Latest scheduled departure"),
    service: ScheduleService = Depends(get_schedule_service)
):
    """
    List schedules. When both startDate and endDate are given, only schedules
    whose scheduled departure falls inside the range are returned.
    """
    records = service.list_schedules(start_date, end_date)
    return [Schedule.model_validate(record) for record in records]


@router.get("/{schedule_id}", response_model=Schedule)
async def get_schedule(
    schedule_id: int,
    service: ScheduleService = Depends(get_schedule_service)
):
    """Get a single schedule."""
    return Schedule.model_validate(service.get(schedule_id))


@router.post(
    "",
    response_model=Schedule,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_409_CONFLICT: {"model": ConflictResponse}},
)
async def create_schedule(
    request: ScheduleCreate,
    service: ScheduleService = Depends(get_schedule_service)
):
    """
    Create a recurring schedule.

    Args:
        request: Train, locations, daily times, running days and effective dates
        service: Schedule service

    Returns:
        The created schedule; 409 with the conflicting schedules when the train
        is already booked in an overlapping slot
    """
    logger.info(f"Received schedule request for train {request.train_id}")
    record = await service.create(request)
    return Schedule.model_validate(record)


@router.patch(
    "/{schedule_id}",
    response_model=Schedule,
    responses={status.HTTP_409_CONFLICT: {"model": ConflictResponse}},
)
async def update_schedule(
    schedule_id: int,
    request: ScheduleUpdate,
    service: ScheduleService = Depends(get_schedule_service)
):
    """Edit schedule fields; time or recurrence changes are re-checked for conflicts."""
    record = await service.update_schedule(schedule_id, request)
    return Schedule.model_validate(record)


@router.patch("/{schedule_id}/status", response_model=Schedule)
async def update_schedule_status(
    schedule_id: int,
    request: StatusUpdate,
    service: ScheduleService = Depends(get_schedule_service)
):
    """Move a schedule through its status lifecycle."""
    record = await service.update_status(schedule_id, request)
    return Schedule.model_validate(record)


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(
    schedule_id: int,
    service: ScheduleService = Depends(get_schedule_service)
):
    """Administrative hard delete. Prefer cancelling through the status endpoint."""
    await service.delete(schedule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
