"""
Location database model for stations and terminals.
"""
from sqlalchemy import Column, Integer, String

from app.db.base import Base


class Location(Base):
    """
    Location model referenced by schedules for display only.

    Attributes:
        name: Display name (e.g. "Central Station")
        code: Unique short code (e.g. "CTL")
    """
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(20), unique=True, index=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Location(code={self.code}, name={self.name})>"
