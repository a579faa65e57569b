"""
Payment schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class PaymentIntentRequest(BaseModel):
    amount_in_cents: int = Field(..., gt=0, description="Charge amount in the currency's minor unit")
    currency: str = Field(default="usd", min_length=3, max_length=3)
    parcel_id: Optional[str] = None


class PaymentIntentResponse(BaseModel):
    client_secret: str
    payment_intent_id: str


class PaymentConfirm(BaseModel):
    """Recorded after the client completes the charge with the processor."""
    parcel_id: str = Field(..., min_length=1)
    amount: float = Field(..., description="Amount paid in major units")
    currency: str = Field(default="usd", min_length=3, max_length=3)
    payment_method: str = Field(..., min_length=1, max_length=64)
    transaction_id: str = Field(..., min_length=1, max_length=255)


class PaymentResponse(BaseModel):
    id: str
    parcel_id: str
    email: str
    amount: float
    currency: str
    status: str
    payment_method: str
    transaction_id: str
    paid_at: datetime
    paid_at_string: str

    class Config:
        from_attributes = True
