"""
FastAPI dependency injection utilities.
"""
from typing import Generator
from fastapi import FastAPI, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import Database
from app.services.broadcast import UpdateBroadcaster
from app.services.scheduling.service import ScheduleService, build_status_machine


def get_database(request: Request) -> Database:
    """Return the store handle created by the application lifespan."""
    return request.app.state.database


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Create database session dependency for FastAPI routes.

    Yields:
        Database session that automatically closes after use.
    """
    db = get_database(request).session()
    try:
        yield db
    finally:
        db.close()


def get_broadcaster(request: Request) -> UpdateBroadcaster:
    """Return the WebSocket fan-out created by the application lifespan."""
    return request.app.state.broadcaster


def build_schedule_service(app: FastAPI) -> ScheduleService:
    return ScheduleService(
        app.state.database,
        broadcaster=app.state.broadcaster,
        status_machine=build_status_machine(settings),
        max_attempts=settings.transaction_retries,
    )


def get_schedule_service(request: Request) -> ScheduleService:
    return build_schedule_service(request.app)
