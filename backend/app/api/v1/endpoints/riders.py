"""
Rider API Endpoints.

Rider applications, admin approval and the rider's own delivery lists.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, status, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_admin, require_role
from backend.app.domain.delivery.queries import DeliveryQueries
from backend.app.domain.delivery.status_coordinator import StatusCoordinator
from backend.app.models.enums import UserRole
from backend.app.models.parcel_enums import COMPLETED_DELIVERY_STATUSES, PENDING_DELIVERY_STATUSES
from backend.app.models.rider_enums import RiderStatus
from backend.app.schemas.parcel import ParcelResponse
from backend.app.schemas.rider import (
    RiderApplication, RiderResponse, RiderStatusUpdate, RiderParcelsResponse
)

router = APIRouter(prefix="/riders", tags=["Riders"])


@router.post("", response_model=RiderResponse, status_code=status.HTTP_201_CREATED)
async def apply_as_rider(
    application: RiderApplication,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Submit a rider application for the caller. Starts as pending.
    """
    rider = await DeliveryQueries.create_rider(
        db, {**application.model_dump(), "email": current_user["sub"]}
    )
    return RiderResponse.model_validate(rider)


@router.get("", response_model=List[RiderResponse])
async def list_riders(
    rider_status: Optional[RiderStatus] = Query(None, alias="status", description="Filter by status"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    List riders, e.g. pending applications (admin-only).
    """
    riders = await DeliveryQueries.list_riders(db, status=rider_status)
    return [RiderResponse.model_validate(r) for r in riders]


@router.get("/available", response_model=List[RiderResponse])
async def available_riders(
    district: Optional[str] = Query(None, description="Receiver district to match"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Active riders that can take a parcel, optionally in one district (admin-only).
    """
    riders = await DeliveryQueries.list_riders(db, status=RiderStatus.ACTIVE, district=district)
    return [RiderResponse.model_validate(r) for r in riders]


@router.get("/me/parcels", response_model=RiderParcelsResponse)
async def my_parcels(
    rider: dict = Depends(require_role([UserRole.RIDER])),
    db: AsyncSession = Depends(get_db)
):
    """
    The calling rider's pending and completed deliveries.
    """
    pending = await DeliveryQueries.rider_parcels(db, rider["sub"], PENDING_DELIVERY_STATUSES)
    completed = await DeliveryQueries.rider_parcels(db, rider["sub"], COMPLETED_DELIVERY_STATUSES)
    return RiderParcelsResponse(
        pending=[ParcelResponse.model_validate(p) for p in pending],
        completed=[ParcelResponse.model_validate(p) for p in completed]
    )


@router.patch("/{rider_id}/status", response_model=RiderResponse)
async def set_rider_status(
    status_update: RiderStatusUpdate,
    rider_id: str = Path(..., description="Rider ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Approve, reject, or release a rider (admin-only).

    Activation also grants the rider role to the matching user.
    """
    rider = await StatusCoordinator.set_rider_status(
        db, rider_id, status_update.status, actor_email=admin["sub"]
    )
    return RiderResponse.model_validate(rider)
