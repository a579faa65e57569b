"""
Audit logging service for tracking parcel, rider and payment transitions.

Entries are flushed into the caller's transaction, so an audit record exists
exactly when the state change it describes was committed.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    USER_CREATED = "USER_CREATED"
    ROLE_CHANGED = "ROLE_CHANGED"

    PARCEL_CREATED = "PARCEL_CREATED"
    PARCEL_DELETED = "PARCEL_DELETED"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    RIDER_ASSIGNED = "RIDER_ASSIGNED"
    DELIVERY_STATUS_UPDATED = "DELIVERY_STATUS_UPDATED"
    PARCEL_CASHED_OUT = "PARCEL_CASHED_OUT"

    RIDER_APPLIED = "RIDER_APPLIED"
    RIDER_STATUS_CHANGED = "RIDER_STATUS_CHANGED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_email: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Add an audit entry to the current transaction.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_email: Email of the caller performing the action
        target_type: Kind of entity acted upon ("parcel", "rider", "user")
        target_id: Identifier of the entity acted upon
        metadata: Additional context as JSON

    Returns:
        The flushed AuditLog instance (committed by the caller)
    """
    audit_log = AuditLog(
        actor_email=actor_email,
        action=action,
        target_type=target_type,
        target_id=target_id,
        meta_data=metadata
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    target_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if target_id:
        query = query.where(AuditLog.target_id == target_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
