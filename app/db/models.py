"""
Model imports for database initialization.
This file imports all models to ensure they are registered with the Base metadata.
"""
from app.db.base import Base

# Import order matters for foreign key constraints
from app.models.train import Train, TrainType  # Base table
from app.models.location import Location  # Base table
from app.models.schedule import Schedule, ScheduleStatus  # References Train and Location
from app.models.audit_log import AuditLog  # Independent table

__all__ = ["Base", "Train", "TrainType", "Location", "Schedule", "ScheduleStatus", "AuditLog"]
