"""
Pydantic schemas for train and location reference data.
"""
from typing import Optional

from pydantic import Field

from app.models.train import TrainType
from app.schemas.common import CamelModel


class Train(CamelModel):
    """Train schema for API responses."""
    id: int
    train_number: str = Field(..., description="Unique train number")
    description: Optional[str] = Field(None, description="Free text description")
    type: TrainType = Field(..., description="Service category")


class Location(CamelModel):
    """Location schema for API responses."""
    id: int
    name: str = Field(..., description="Display name")
    code: str = Field(..., description="Unique location code")
