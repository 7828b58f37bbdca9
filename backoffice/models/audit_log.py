"""
Audit Log model for tracking inventory-affecting actions.
"""
from sqlalchemy import Column, Integer, BigInteger, String, Text, DateTime, Enum as SQLEnum
from datetime import datetime
import enum

from backoffice.database import Base


class AuditAction(enum.Enum):
    """Enumeration of auditable actions."""
    PURCHASE_CREATED = "PURCHASE_CREATED"
    PURCHASE_UPDATED = "PURCHASE_UPDATED"
    PURCHASE_DELETED = "PURCHASE_DELETED"


class AuditLog(Base):
    """
    Audit log row, written in the same transaction as the action it records.
    """
    __tablename__ = 'audit_log'

    id = Column(Integer, primary_key=True)
    action = Column(SQLEnum(AuditAction, name='audit_action'), nullable=False, index=True)
    resource_type = Column(String(50))  # e.g., 'purchase'
    resource_id = Column(BigInteger, index=True)  # ID of the affected resource
    details = Column(Text)  # JSON with product adjustments
    ip_address = Column(String(45))  # IPv4 or IPv6
    user_agent = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action.value} on {self.resource_type} {self.resource_id} at {self.created_at}>"
