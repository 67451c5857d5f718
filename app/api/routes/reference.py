"""
Read-only routes for train and location reference data.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from app.core.dependencies import get_db
from app.models.location import Location as LocationModel
from app.models.train import Train as TrainModel
from app.schemas.train import Location, Train

router = APIRouter()


@router.get("/trains", response_model=List[Train])
async def list_trains(db: Session = Depends(get_db)):
    """List all trains."""
    return db.query(TrainModel).order_by(TrainModel.id).all()


@router.get("/locations", response_model=List[Location])
async def list_locations(db: Session = Depends(get_db)):
    """List all locations."""
    return db.query(LocationModel).order_by(LocationModel.id).all()
