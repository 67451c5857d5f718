"""
Train database model.
"""
from sqlalchemy import Column, Integer, String, Text, Enum
import enum

from app.db.base import Base


class TrainType(str, enum.Enum):
    """Enumeration for train service categories."""
    EXPRESS = "express"
    LOCAL = "local"
    FREIGHT = "freight"
    SPECIAL = "special"


class Train(Base):
    """
    Train model. Only used as the exclusivity scope for schedule conflicts.

    Attributes:
        train_number: Unique human-readable train number (e.g. "EXP101")
        description: Free text description
        type: Service category
    """
    __tablename__ = "trains"

    id = Column(Integer, primary_key=True, index=True)
    train_number = Column(String(50), unique=True, index=True, nullable=False)
    description = Column(Text)
    type = Column(
        Enum(TrainType, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
        nullable=False,
        default=TrainType.LOCAL,
    )

    def __repr__(self) -> str:
        return f"<Train(train_number={self.train_number}, type={self.type})>"
