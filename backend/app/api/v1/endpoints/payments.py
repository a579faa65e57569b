"""
Payment API Endpoints.

Payment intent creation through the processor, payment confirmation and
payment history.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import ConflictError
from backend.app.core.guards import is_admin
from backend.app.domain.delivery.queries import DeliveryQueries
from backend.app.domain.delivery.status_coordinator import StatusCoordinator
from backend.app.models.parcel_enums import PaymentStatus
from backend.app.schemas.payment import (
    PaymentIntentRequest, PaymentIntentResponse, PaymentConfirm, PaymentResponse
)
from backend.app.services.payment_gateway import PaymentGatewayClient, get_payment_gateway

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    intent: PaymentIntentRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_payment_gateway)
):
    """
    Create a payment intent and return its client secret.
    """
    if intent.parcel_id:
        parcel = await DeliveryQueries.get_parcel(db, intent.parcel_id)
        if parcel.payment_status == PaymentStatus.PAID:
            raise ConflictError("Parcel is already paid", details={"parcel_id": intent.parcel_id})

    result = await gateway.create_payment_intent(
        intent.amount_in_cents, intent.currency, parcel_id=intent.parcel_id
    )
    return PaymentIntentResponse(**result)


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def confirm_payment(
    payment: PaymentConfirm,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a completed payment and mark the parcel paid.

    Safe to retry: the same transaction id returns the original record.
    """
    record = await StatusCoordinator.confirm_payment(
        db,
        parcel_id=payment.parcel_id,
        email=current_user["sub"],
        amount=payment.amount,
        currency=payment.currency,
        payment_method=payment.payment_method,
        transaction_id=payment.transaction_id,
        actor_email=current_user["sub"]
    )
    return PaymentResponse.model_validate(record)


@router.get("", response_model=List[PaymentResponse])
async def payment_history(
    email: Optional[str] = Query(None, description="Payer email (admins only; others see their own)"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Payment history, newest first.
    """
    payer = email if is_admin(current_user) else current_user["sub"]
    payments = await DeliveryQueries.payment_history(db, email=payer)
    return [PaymentResponse.model_validate(p) for p in payments]
