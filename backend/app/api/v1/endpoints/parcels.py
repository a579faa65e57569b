"""
Parcel API Endpoints.

Senders create and track parcels; admins assign riders; the assigned rider
moves the parcel through delivery and cashes out the fee.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError
from backend.app.core.guards import require_admin, require_role, is_admin
from backend.app.domain.delivery.queries import DeliveryQueries
from backend.app.domain.delivery.status_coordinator import StatusCoordinator
from backend.app.models.enums import UserRole
from backend.app.models.parcel import Parcel
from backend.app.models.parcel_enums import PaymentStatus, DeliveryStatus
from backend.app.schemas.admin import AuditTrailResponse, AuditLogResponse
from backend.app.schemas.parcel import (
    ParcelCreate, ParcelResponse, ParcelListResponse,
    RiderAssignment, DeliveryStatusUpdate, CashoutRequest
)
from backend.app.schemas.rider import RiderAssignmentResponse, RiderResponse
from backend.app.services.audit import get_audit_trail

router = APIRouter(prefix="/parcels", tags=["Parcels"])


def _ensure_can_view(parcel: Parcel, current_user: dict) -> None:
    email = current_user["sub"]
    if is_admin(current_user) or email in (parcel.sender_email, parcel.assigned_rider_email):
        return
    raise InsufficientPermissionsError("Access denied. You do not have permission to access this parcel.")


@router.post("", response_model=ParcelResponse, status_code=status.HTTP_201_CREATED)
async def create_parcel(
    parcel_data: ParcelCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a parcel for the caller (unpaid, not collected).
    """
    parcel = await DeliveryQueries.create_parcel(
        db, sender_email=current_user["sub"], data=parcel_data.model_dump()
    )
    return ParcelResponse.model_validate(parcel)


@router.get("", response_model=ParcelListResponse)
async def list_parcels(
    email: Optional[str] = Query(None, description="Sender email (admins only; others see their own)"),
    payment_status: Optional[PaymentStatus] = Query(None),
    delivery_status: Optional[DeliveryStatus] = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    List parcels, newest first.
    """
    sender_email = email if is_admin(current_user) else current_user["sub"]

    parcels, total = await DeliveryQueries.list_parcels(
        db,
        sender_email=sender_email,
        payment_status=payment_status,
        delivery_status=delivery_status,
        page=page,
        page_size=page_size
    )

    return ParcelListResponse(
        parcels=[ParcelResponse.model_validate(p) for p in parcels],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/latest", response_model=Optional[ParcelResponse])
async def latest_parcel(
    email: Optional[str] = Query(None, description="Sender email (admins only; others see their own)"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Most recently created parcel, or null when there is none.
    """
    sender_email = email if is_admin(current_user) else current_user["sub"]
    parcel = await DeliveryQueries.latest_parcel(db, sender_email=sender_email)
    return ParcelResponse.model_validate(parcel) if parcel else None


@router.get("/{parcel_id}", response_model=ParcelResponse)
async def get_parcel(
    parcel_id: str = Path(..., description="Parcel ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    parcel = await DeliveryQueries.get_parcel(db, parcel_id)
    _ensure_can_view(parcel, current_user)
    return ParcelResponse.model_validate(parcel)


@router.delete("/{parcel_id}")
async def delete_parcel(
    parcel_id: str = Path(..., description="Parcel ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete an unpaid parcel (sender or admin).
    """
    parcel = await DeliveryQueries.get_parcel(db, parcel_id)
    if parcel.sender_email != current_user["sub"] and not is_admin(current_user):
        raise InsufficientPermissionsError("Only the sender can delete this parcel")

    await DeliveryQueries.delete_parcel(db, parcel_id, actor_email=current_user["sub"])
    return {"parcel_id": parcel_id, "deleted": True}


@router.patch("/{parcel_id}/assign-rider", response_model=RiderAssignmentResponse)
async def assign_rider(
    assignment: RiderAssignment,
    parcel_id: str = Path(..., description="Parcel ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Assign an active rider to a paid parcel (admin-only).

    The parcel's delivery status and the rider's busy status change together.
    """
    parcel, rider = await StatusCoordinator.assign_rider(
        db,
        parcel_id=parcel_id,
        rider_id=assignment.rider_id,
        rider_email=assignment.rider_email,
        rider_name=assignment.rider_name,
        delivery_status=assignment.delivery_status,
        actor_email=admin["sub"]
    )
    return RiderAssignmentResponse(
        parcel=ParcelResponse.model_validate(parcel),
        rider=RiderResponse.model_validate(rider)
    )


@router.patch("/{parcel_id}/delivery-status", response_model=ParcelResponse)
async def update_delivery_status(
    update: DeliveryStatusUpdate,
    parcel_id: str = Path(..., description="Parcel ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Move a parcel along its delivery lifecycle (assigned rider or admin).
    """
    if not is_admin(current_user):
        parcel = await DeliveryQueries.get_parcel(db, parcel_id)
        if parcel.assigned_rider_email != current_user["sub"]:
            raise InsufficientPermissionsError("Parcel is not assigned to you")

    parcel = await StatusCoordinator.update_delivery_status(
        db, parcel_id, update.delivery_status, actor_email=current_user["sub"]
    )
    return ParcelResponse.model_validate(parcel)


@router.patch("/{parcel_id}/cashout", response_model=ParcelResponse)
async def cash_out_parcel(
    cashout: CashoutRequest,
    parcel_id: str = Path(..., description="Parcel ID"),
    rider: dict = Depends(require_role([UserRole.RIDER])),
    db: AsyncSession = Depends(get_db)
):
    """
    Cash out the delivery fee for a delivered parcel (assigned rider only).
    """
    parcel = await StatusCoordinator.cash_out_parcel(
        db, parcel_id, cashout.amount, rider_email=rider["sub"], actor_email=rider["sub"]
    )
    return ParcelResponse.model_validate(parcel)


@router.get("/{parcel_id}/history", response_model=AuditTrailResponse)
async def parcel_history(
    parcel_id: str = Path(..., description="Parcel ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Audit trail of every transition recorded for a parcel (admin-only).
    """
    logs = await get_audit_trail(db, target_id=parcel_id)
    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )
