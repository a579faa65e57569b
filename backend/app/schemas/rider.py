"""
Rider schemas.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional, List
from backend.app.models.rider_enums import RiderStatus
from backend.app.schemas.parcel import ParcelResponse


class RiderApplication(BaseModel):
    """Schema for a rider application. The email is the caller's."""
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    region: Optional[str] = Field(None, max_length=100)
    district: Optional[str] = Field(None, max_length=100)
    bike_brand: Optional[str] = Field(None, max_length=100)
    bike_registration: Optional[str] = Field(None, max_length=100)


class RiderResponse(BaseModel):
    id: str
    email: EmailStr
    name: str
    phone: Optional[str]
    region: Optional[str]
    district: Optional[str]
    bike_brand: Optional[str]
    bike_registration: Optional[str]
    status: RiderStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RiderStatusUpdate(BaseModel):
    # Plain string: unknown values are rejected by the coordinator as a 400
    status: str = Field(..., min_length=1)


class RiderAssignmentResponse(BaseModel):
    """Response after rider assignment: both sides of the transition."""
    parcel: ParcelResponse
    rider: RiderResponse


class RiderParcelsResponse(BaseModel):
    pending: List[ParcelResponse]
    completed: List[ParcelResponse]
