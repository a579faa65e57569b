"""
Status Coordinator (Domain Logic).

Performs the multi-step state transitions that span parcels, riders,
payments and users. Every operation:

1. Runs in a single transaction: all writes commit together or roll back.
2. Guards each write with a conditional update on the expected prior state,
   so a concurrent writer turns into a Conflict instead of a lost update.
3. Runs under the configured operation deadline.
4. Appends an audit entry in the same transaction.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple, Union

from sqlalchemy import select, update, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import (
    AppException,
    ConflictError,
    ExternalServiceError,
    InsufficientPermissionsError,
    ResourceNotFoundError,
    ValidationError,
)
from backend.app.models.enums import UserRole
from backend.app.models.parcel import Parcel
from backend.app.models.parcel_enums import (
    PaymentStatus,
    DeliveryStatus,
    CashoutStatus,
    COMPLETED_DELIVERY_STATUSES,
    PENDING_DELIVERY_STATUSES,
    can_transition_delivery,
)
from backend.app.models.payment import Payment
from backend.app.models.rider import Rider
from backend.app.models.rider_enums import RiderStatus, can_transition_rider
from backend.app.models.user import User
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_delivery_status(value: Union[str, DeliveryStatus]) -> DeliveryStatus:
    try:
        return DeliveryStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid delivery status '{value}'",
            details={"allowed": [s.value for s in DeliveryStatus]}
        )


def _coerce_rider_status(value: Union[str, RiderStatus]) -> RiderStatus:
    try:
        return RiderStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid rider status '{value}'",
            details={"allowed": [s.value for s in RiderStatus]}
        )


def _delivery_timestamps(target: DeliveryStatus, now: datetime) -> dict:
    if target == DeliveryStatus.IN_TRANSIT:
        return {"picked_at": now}
    if target in COMPLETED_DELIVERY_STATUSES:
        return {"delivered_at": now}
    return {}


async def _load(db: AsyncSession, model, entity_id: str):
    # populate_existing: a session reused across operations must see committed state
    result = await db.execute(
        select(model).where(model.id == entity_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


class StatusCoordinator:

    @staticmethod
    async def _run(db: AsyncSession, operation: str, func, *args):
        """
        Execute one coordinator operation as a transaction under the deadline.

        Any failure rolls back every write made by the operation.
        """
        try:
            return await asyncio.wait_for(
                func(db, *args), timeout=settings.operation_timeout_seconds
            )
        except asyncio.TimeoutError:
            await db.rollback()
            logger.error("%s exceeded %.1fs deadline", operation, settings.operation_timeout_seconds)
            raise ExternalServiceError(
                service="database",
                message=f"{operation} did not complete within {settings.operation_timeout_seconds}s"
            )
        except AppException as e:
            await db.rollback()
            logger.warning("%s rejected: %s", operation, e.message)
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.exception("%s failed at the database", operation)
            raise ExternalServiceError(
                service="database",
                message=f"{operation} failed: database unavailable"
            ) from e

    # ------------------------------------------------------------------
    # Confirm Payment
    # ------------------------------------------------------------------

    @staticmethod
    async def confirm_payment(
        db: AsyncSession,
        parcel_id: str,
        email: str,
        amount: float,
        currency: str,
        payment_method: str,
        transaction_id: str,
        actor_email: Optional[str] = None
    ) -> Payment:
        """
        Mark a parcel paid and record the payment.

        Retrying with an already recorded transaction id returns the
        existing payment without writing.

        Raises:
            ValidationError: amount not positive, currency or transaction id empty
            ResourceNotFoundError: parcel missing or already paid
            ConflictError: transaction id already recorded for another parcel
        """
        async def _confirm(db: AsyncSession) -> Payment:
            if amount is None or amount <= 0:
                raise ValidationError("Payment amount must be positive", details={"amount": amount})
            if not currency or not transaction_id:
                raise ValidationError("Currency and transaction id are required")

            existing = await StatusCoordinator._payment_by_transaction(db, transaction_id)
            if existing:
                return StatusCoordinator._replayed_payment(existing, parcel_id)

            result = await db.execute(
                update(Parcel)
                .where(Parcel.id == parcel_id, Parcel.payment_status == PaymentStatus.UNPAID)
                .values(payment_status=PaymentStatus.PAID)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ResourceNotFoundError(
                    "Parcel", parcel_id, message=f"Parcel {parcel_id} not found or already paid"
                )

            paid_at = _now()
            payment = Payment(
                parcel_id=parcel_id,
                email=email,
                amount=amount,
                currency=currency.lower(),
                status="succeeded",
                payment_method=payment_method,
                transaction_id=transaction_id,
                paid_at=paid_at,
                paid_at_string=paid_at.isoformat()
            )
            db.add(payment)

            try:
                await db.flush()
            except IntegrityError:
                # Another request recorded this transaction between our check and insert
                await db.rollback()
                existing = await StatusCoordinator._payment_by_transaction(db, transaction_id)
                if existing:
                    return StatusCoordinator._replayed_payment(existing, parcel_id)
                raise

            await log_event(
                db,
                action=AuditAction.PAYMENT_CONFIRMED,
                actor_email=actor_email or email,
                target_type="parcel",
                target_id=parcel_id,
                metadata={
                    "payment_id": payment.id,
                    "amount": amount,
                    "currency": payment.currency,
                    "transaction_id": transaction_id
                }
            )
            await db.commit()

            logger.info("Payment %s confirmed for parcel %s", transaction_id, parcel_id)
            return payment

        return await StatusCoordinator._run(db, "confirm_payment", _confirm)

    @staticmethod
    async def _payment_by_transaction(db: AsyncSession, transaction_id: str) -> Optional[Payment]:
        result = await db.execute(select(Payment).where(Payment.transaction_id == transaction_id))
        return result.scalar_one_or_none()

    @staticmethod
    def _replayed_payment(existing: Payment, parcel_id: str) -> Payment:
        if existing.parcel_id != parcel_id:
            raise ConflictError(
                "Transaction already recorded for another parcel",
                details={"transaction_id": existing.transaction_id, "parcel_id": existing.parcel_id}
            )
        logger.info("Payment %s already recorded, returning existing record", existing.transaction_id)
        return existing

    # ------------------------------------------------------------------
    # Assign Rider to Parcel
    # ------------------------------------------------------------------

    @staticmethod
    async def assign_rider(
        db: AsyncSession,
        parcel_id: str,
        rider_id: str,
        rider_email: str,
        rider_name: str,
        delivery_status: Union[str, DeliveryStatus] = DeliveryStatus.RIDER_ASSIGNED,
        actor_email: Optional[str] = None
    ) -> Tuple[Parcel, Rider]:
        """
        Assign an active rider to a paid parcel and mark the rider busy.

        Raises:
            ValidationError: unknown delivery status, or rider email mismatch
            ResourceNotFoundError: parcel or rider missing
            ConflictError: parcel unpaid, already assigned or past not_collected,
                target other than rider_assigned, rider not active, or a
                concurrent writer got there first
        """
        target = _coerce_delivery_status(delivery_status)

        async def _assign(db: AsyncSession) -> Tuple[Parcel, Rider]:
            parcel = await _load(db, Parcel, parcel_id)
            if not parcel:
                raise ResourceNotFoundError("Parcel", parcel_id)

            rider = await _load(db, Rider, rider_id)
            if not rider:
                raise ResourceNotFoundError("Rider", rider_id)

            if rider.email != rider_email:
                raise ValidationError(
                    "Rider email does not match the rider record",
                    details={"rider_id": rider_id}
                )

            if parcel.payment_status != PaymentStatus.PAID:
                raise ConflictError(
                    "Parcel must be paid before a rider can be assigned",
                    details={"payment_status": parcel.payment_status.value}
                )

            if target != DeliveryStatus.RIDER_ASSIGNED:
                raise ConflictError(
                    f"Assignment moves a parcel to rider_assigned, not {target.value}",
                    details={"to": target.value}
                )

            # Reassigning requires withdrawing the parcel to not_collected first
            if parcel.delivery_status != DeliveryStatus.NOT_COLLECTED or parcel.assigned_rider_id is not None:
                raise ConflictError(
                    f"Cannot assign rider: parcel is {parcel.delivery_status.value}",
                    details={
                        "from": parcel.delivery_status.value,
                        "to": target.value,
                        "assigned_rider_id": parcel.assigned_rider_id
                    }
                )

            if rider.status != RiderStatus.ACTIVE:
                raise ConflictError(
                    f"Rider is {rider.status.value}, only active riders can be assigned",
                    details={"rider_status": rider.status.value}
                )

            now = _now()
            parcel_result = await db.execute(
                update(Parcel)
                .where(
                    Parcel.id == parcel_id,
                    Parcel.payment_status == PaymentStatus.PAID,
                    Parcel.delivery_status == DeliveryStatus.NOT_COLLECTED,
                    Parcel.assigned_rider_id.is_(None)
                )
                .values(
                    delivery_status=target,
                    assigned_rider_id=rider_id,
                    assigned_rider_email=rider_email,
                    assigned_rider_name=rider_name,
                    assigned_at=now,
                    **_delivery_timestamps(target, now)
                )
                .execution_options(synchronize_session=False)
            )
            if parcel_result.rowcount == 0:
                raise ConflictError("Parcel was modified by another request", details={"parcel_id": parcel_id})

            rider_result = await db.execute(
                update(Rider)
                .where(Rider.id == rider_id, Rider.status == RiderStatus.ACTIVE)
                .values(status=RiderStatus.BUSY)
                .execution_options(synchronize_session=False)
            )
            if rider_result.rowcount == 0:
                raise ConflictError("Rider is no longer available", details={"rider_id": rider_id})

            await log_event(
                db,
                action=AuditAction.RIDER_ASSIGNED,
                actor_email=actor_email,
                target_type="parcel",
                target_id=parcel_id,
                metadata={"rider_id": rider_id, "rider_email": rider_email, "delivery_status": target.value}
            )
            await db.commit()
            await db.refresh(parcel)
            await db.refresh(rider)

            logger.info("Rider %s assigned to parcel %s", rider_id, parcel_id)
            return parcel, rider

        return await StatusCoordinator._run(db, "assign_rider", _assign)

    # ------------------------------------------------------------------
    # Update Delivery Status
    # ------------------------------------------------------------------

    @staticmethod
    async def update_delivery_status(
        db: AsyncSession,
        parcel_id: str,
        delivery_status: Union[str, DeliveryStatus],
        actor_email: Optional[str] = None
    ) -> Parcel:
        """
        Move a parcel along the delivery state machine.

        Writing the current status is a successful no-op. Moving back to
        not_collected withdraws the assignment and frees the rider in the
        same transaction.

        Raises:
            ValidationError: unknown delivery status
            ResourceNotFoundError: parcel missing
            ConflictError: illegal transition or concurrent modification
        """
        target = _coerce_delivery_status(delivery_status)

        async def _update(db: AsyncSession) -> Parcel:
            parcel = await _load(db, Parcel, parcel_id)
            if not parcel:
                raise ResourceNotFoundError("Parcel", parcel_id)

            current = parcel.delivery_status
            if current == target:
                return parcel

            if not can_transition_delivery(current, target):
                raise ConflictError(
                    f"Cannot change delivery status from {current.value} to {target.value}",
                    details={"from": current.value, "to": target.value}
                )

            if target == DeliveryStatus.RIDER_ASSIGNED:
                raise ConflictError("Use rider assignment to move a parcel to rider_assigned")

            now = _now()
            values = {"delivery_status": target, **_delivery_timestamps(target, now)}
            released_rider_id = None
            if target == DeliveryStatus.NOT_COLLECTED:
                released_rider_id = parcel.assigned_rider_id
                values.update(
                    assigned_rider_id=None,
                    assigned_rider_email=None,
                    assigned_rider_name=None,
                    assigned_at=None
                )

            result = await db.execute(
                update(Parcel)
                .where(Parcel.id == parcel_id, Parcel.delivery_status == current)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError("Parcel was modified by another request", details={"parcel_id": parcel_id})

            if released_rider_id:
                await db.execute(
                    update(Rider)
                    .where(Rider.id == released_rider_id, Rider.status == RiderStatus.BUSY)
                    .values(status=RiderStatus.ACTIVE)
                    .execution_options(synchronize_session=False)
                )

            await log_event(
                db,
                action=AuditAction.DELIVERY_STATUS_UPDATED,
                actor_email=actor_email,
                target_type="parcel",
                target_id=parcel_id,
                metadata={"from": current.value, "to": target.value}
            )
            await db.commit()
            await db.refresh(parcel)

            logger.info("Parcel %s delivery status %s -> %s", parcel_id, current.value, target.value)
            return parcel

        return await StatusCoordinator._run(db, "update_delivery_status", _update)

    # ------------------------------------------------------------------
    # Cash Out Parcel
    # ------------------------------------------------------------------

    @staticmethod
    async def cash_out_parcel(
        db: AsyncSession,
        parcel_id: str,
        amount: float,
        rider_email: Optional[str] = None,
        actor_email: Optional[str] = None
    ) -> Parcel:
        """
        Settle the rider's fee for a delivered parcel, exactly once.

        When rider_email is given, only the rider assigned to the parcel may
        cash it out.

        Raises:
            ValidationError: amount not positive
            ResourceNotFoundError: parcel missing
            InsufficientPermissionsError: caller is not the assigned rider
            ConflictError: parcel not delivered, or already cashed out
        """
        async def _cash_out(db: AsyncSession) -> Parcel:
            if amount is None or amount <= 0:
                raise ValidationError("Cash-out amount must be positive", details={"amount": amount})

            parcel = await _load(db, Parcel, parcel_id)
            if not parcel:
                raise ResourceNotFoundError("Parcel", parcel_id)

            if rider_email is not None and parcel.assigned_rider_email != rider_email:
                raise InsufficientPermissionsError("Parcel is not assigned to you")

            if parcel.delivery_status not in COMPLETED_DELIVERY_STATUSES:
                raise ConflictError(
                    "Only delivered parcels can be cashed out",
                    details={"delivery_status": parcel.delivery_status.value}
                )

            if parcel.cashout_status == CashoutStatus.CASHED_OUT:
                raise ConflictError("Parcel has already been cashed out", details={"parcel_id": parcel_id})

            result = await db.execute(
                update(Parcel)
                .where(
                    Parcel.id == parcel_id,
                    Parcel.delivery_status.in_(COMPLETED_DELIVERY_STATUSES),
                    or_(Parcel.cashout_status.is_(None), Parcel.cashout_status != CashoutStatus.CASHED_OUT)
                )
                .values(
                    cashout_status=CashoutStatus.CASHED_OUT,
                    cashout_amount=amount,
                    cashed_out_at=_now()
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError("Parcel has already been cashed out", details={"parcel_id": parcel_id})

            await log_event(
                db,
                action=AuditAction.PARCEL_CASHED_OUT,
                actor_email=actor_email or rider_email,
                target_type="parcel",
                target_id=parcel_id,
                metadata={"amount": amount}
            )
            await db.commit()
            await db.refresh(parcel)

            logger.info("Parcel %s cashed out (%.2f)", parcel_id, amount)
            return parcel

        return await StatusCoordinator._run(db, "cash_out_parcel", _cash_out)

    # ------------------------------------------------------------------
    # Set Rider Status
    # ------------------------------------------------------------------

    @staticmethod
    async def set_rider_status(
        db: AsyncSession,
        rider_id: str,
        status: Union[str, RiderStatus],
        actor_email: Optional[str] = None
    ) -> Rider:
        """
        Change a rider's status. Activation also grants the user the rider role.

        Raises:
            ValidationError: unknown rider status
            ResourceNotFoundError: rider missing, or no user with the rider's email
            ConflictError: illegal transition, releasing a busy rider who still
                has an undelivered parcel, or concurrent modification
        """
        target = _coerce_rider_status(status)

        async def _set(db: AsyncSession) -> Rider:
            rider = await _load(db, Rider, rider_id)
            if not rider:
                raise ResourceNotFoundError("Rider", rider_id)

            current = rider.status
            if current == target:
                return rider

            if not can_transition_rider(current, target):
                raise ConflictError(
                    f"Cannot change rider status from {current.value} to {target.value}",
                    details={"from": current.value, "to": target.value}
                )

            if current == RiderStatus.BUSY:
                open_parcel = await db.execute(
                    select(Parcel.id)
                    .where(
                        Parcel.assigned_rider_id == rider_id,
                        Parcel.delivery_status.in_(PENDING_DELIVERY_STATUSES)
                    )
                    .limit(1)
                )
                open_parcel_id = open_parcel.scalar_one_or_none()
                if open_parcel_id:
                    raise ConflictError(
                        "Rider still has an undelivered parcel",
                        details={"rider_id": rider_id, "parcel_id": open_parcel_id}
                    )

            result = await db.execute(
                update(Rider)
                .where(Rider.id == rider_id, Rider.status == current)
                .values(status=target)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError("Rider was modified by another request", details={"rider_id": rider_id})

            if target == RiderStatus.ACTIVE:
                user_result = await db.execute(
                    update(User)
                    .where(User.email == rider.email)
                    .values(role=UserRole.RIDER)
                    .execution_options(synchronize_session=False)
                )
                if user_result.rowcount == 0:
                    raise ResourceNotFoundError(
                        "User", rider.email, message=f"No user account for rider email {rider.email}"
                    )

            await log_event(
                db,
                action=AuditAction.RIDER_STATUS_CHANGED,
                actor_email=actor_email,
                target_type="rider",
                target_id=rider_id,
                metadata={"from": current.value, "to": target.value, "email": rider.email}
            )
            await db.commit()
            await db.refresh(rider)

            logger.info("Rider %s status %s -> %s", rider_id, current.value, target.value)
            return rider

        return await StatusCoordinator._run(db, "set_rider_status", _set)

    # ------------------------------------------------------------------
    # Resolve Role
    # ------------------------------------------------------------------

    @staticmethod
    async def resolve_role(db: AsyncSession, email: str) -> str:
        """
        Return the role of the user with this email.

        Raises:
            ResourceNotFoundError: no user with this email
        """
        async def _resolve(db: AsyncSession) -> str:
            result = await db.execute(select(User.role).where(User.email == email))
            role = result.scalar_one_or_none()
            if role is None:
                raise ResourceNotFoundError("User", email, message=f"User {email} not found")
            return role.value

        return await StatusCoordinator._run(db, "resolve_role", _resolve)
