"""
Audit Log Database Model.

Tracks every state transition performed by the status coordinator and
every admin role change.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - PAYMENT_CONFIRMED
    - RIDER_ASSIGNED
    - DELIVERY_STATUS_UPDATED
    - PARCEL_CASHED_OUT
    - RIDER_STATUS_CHANGED
    - ROLE_CHANGED (for privilege escalation detection)
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_email = Column(String(255), index=True, nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # What the action was performed on
    target_type = Column(String(50), nullable=True)
    target_id = Column(String(64), index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_email}, target={self.target_id})>"
