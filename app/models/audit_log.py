"""
Audit log database model for schedule changes.
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON

from app.db.base import Base
from app.models.schedule import utcnow


class AuditLog(Base):
    """
    Audit record written in the same transaction as the change it describes.

    Attributes:
        action: create, update, status or delete
        table_name: Table the change applies to
        record_id: Primary key of the changed row
        details: JSON payload describing the change
        status: Outcome, "success" for committed changes
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String(50), nullable=False)
    table_name = Column(String(50), nullable=False)
    record_id = Column(Integer, index=True)
    details = Column(JSON, nullable=False, default=dict)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    status = Column(String(20), nullable=False, default="success")

    def __repr__(self) -> str:
        return f"<AuditLog(action={self.action}, table={self.table_name}, record_id={self.record_id})>"
