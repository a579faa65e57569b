"""
Parcel Pydantic schemas.

Defines request and response models for parcel management and the
status-coordination endpoints.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional, List, Dict, Any
from backend.app.models.parcel_enums import (
    PaymentStatus, DeliveryStatus, CashoutStatus, ParcelType
)


class ParcelCreate(BaseModel):
    """Schema for creating a new parcel. The sender is the caller."""
    title: str = Field(..., min_length=1, max_length=255, description="What is being sent")
    parcel_type: ParcelType = Field(default=ParcelType.NON_DOCUMENT)
    weight_kg: Optional[float] = Field(None, gt=0, description="Weight in kilograms")
    cost: float = Field(..., ge=0, description="Delivery fee charged to the sender")

    sender_name: Optional[str] = Field(None, max_length=255)
    sender_region: Optional[str] = Field(None, max_length=100)
    sender_district: Optional[str] = Field(None, max_length=100)

    receiver_name: str = Field(..., min_length=1, max_length=255)
    receiver_contact: Optional[str] = Field(None, max_length=50)
    receiver_region: Optional[str] = Field(None, max_length=100)
    receiver_district: Optional[str] = Field(None, max_length=100)
    receiver_address: Optional[str] = Field(None, max_length=500)

    details: Optional[Dict[str, Any]] = Field(None, description="Any additional fields")


class ParcelResponse(BaseModel):
    """Schema for parcel response."""
    id: str
    tracking_id: str
    title: str
    parcel_type: ParcelType
    weight_kg: Optional[float]
    cost: float

    sender_email: str
    sender_name: Optional[str]
    sender_region: Optional[str]
    sender_district: Optional[str]

    receiver_name: Optional[str]
    receiver_contact: Optional[str]
    receiver_region: Optional[str]
    receiver_district: Optional[str]
    receiver_address: Optional[str]

    details: Optional[Dict[str, Any]]

    payment_status: PaymentStatus
    delivery_status: DeliveryStatus

    assigned_rider_id: Optional[str]
    assigned_rider_email: Optional[str]
    assigned_rider_name: Optional[str]
    assigned_at: Optional[datetime]
    picked_at: Optional[datetime]
    delivered_at: Optional[datetime]

    cashout_status: Optional[CashoutStatus]
    cashout_amount: Optional[float]
    cashed_out_at: Optional[datetime]

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ParcelListResponse(BaseModel):
    """Schema for paginated parcel list."""
    parcels: List[ParcelResponse]
    total: int
    page: int
    page_size: int


class RiderAssignment(BaseModel):
    """Schema for assigning a rider to a parcel."""
    rider_id: str = Field(..., min_length=1)
    rider_email: EmailStr
    rider_name: str = Field(..., min_length=1, max_length=255)
    delivery_status: str = Field(default=DeliveryStatus.RIDER_ASSIGNED.value)


class DeliveryStatusUpdate(BaseModel):
    # Plain string: unknown values are rejected by the coordinator as a 400
    delivery_status: str = Field(..., min_length=1)


class CashoutRequest(BaseModel):
    amount: float = Field(..., description="Rider fee being settled")
