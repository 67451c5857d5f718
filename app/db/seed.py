"""
Reference data seeding for trains and locations.
"""
import logging

from sqlalchemy.orm import Session

from app.models.location import Location
from app.models.train import Train, TrainType

logger = logging.getLogger(__name__)

SAMPLE_TRAINS = [
    {"train_number": "EXP101", "description": "Daily Express", "type": TrainType.EXPRESS},
    {"train_number": "LOC201", "description": "Local Service", "type": TrainType.LOCAL},
    {"train_number": "FRT301", "description": "Cargo Transport", "type": TrainType.FREIGHT},
    {"train_number": "SPL401", "description": "Holiday Special", "type": TrainType.SPECIAL},
]

SAMPLE_LOCATIONS = [
    {"name": "Central Station", "code": "CTL"},
    {"name": "North Terminal", "code": "NTH"},
    {"name": "South Junction", "code": "STH"},
    {"name": "East Gateway", "code": "EST"},
    {"name": "West Port", "code": "WST"},
]


def seed_reference_data(db: Session) -> dict:
    """
    Insert the sample trains and locations that are not present yet.

    Args:
        db: Session inside an open transaction

    Returns:
        Number of trains and locations created
    """
    existing_trains = {number for (number,) in db.query(Train.train_number).all()}
    existing_codes = {code for (code,) in db.query(Location.code).all()}

    trains_created = 0
    for train in SAMPLE_TRAINS:
        if train["train_number"] not in existing_trains:
            db.add(Train(**train))
            trains_created += 1

    locations_created = 0
    for location in SAMPLE_LOCATIONS:
        if location["code"] not in existing_codes:
            db.add(Location(**location))
            locations_created += 1

    db.flush()
    logger.info(f"Seeded {trains_created} trains and {locations_created} locations")
    return {"trains": trains_created, "locations": locations_created}
