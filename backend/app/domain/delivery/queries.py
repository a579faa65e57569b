"""
Delivery queries.

Single-collection reads and inserts for parcels, riders, users and payments.
State transitions that touch more than one record live in the
StatusCoordinator; nothing in the API layer queries the database directly.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Optional, List, Iterable

from sqlalchemy import select, delete, func, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ConflictError, ResourceNotFoundError
from backend.app.models.enums import UserRole
from backend.app.models.parcel import Parcel
from backend.app.models.parcel_enums import PaymentStatus, DeliveryStatus
from backend.app.models.payment import Payment
from backend.app.models.rider import Rider
from backend.app.models.rider_enums import RiderStatus
from backend.app.models.user import User
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)


def generate_tracking_id() -> str:
    """Tracking ids look like PCL-20261018-3F9A1C."""
    return f"PCL-{datetime.now(timezone.utc):%Y%m%d}-{secrets.token_hex(3).upper()}"


class DeliveryQueries:

    # -- users ---------------------------------------------------------

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    @staticmethod
    async def sign_in_user(db: AsyncSession, email: str, name: Optional[str] = None,
                           photo_url: Optional[str] = None) -> tuple[User, bool]:
        """
        Create the user on first sign-in, otherwise refresh last_login_at.

        Returns:
            (user, created)
        """
        user = await DeliveryQueries.get_user_by_email(db, email)
        if user:
            user.last_login_at = datetime.now(timezone.utc)
            await db.commit()
            await db.refresh(user)
            return user, False

        user = User(email=email, name=name, photo_url=photo_url, role=UserRole.USER)
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Concurrent first sign-in for the same email
            await db.rollback()
            user = await DeliveryQueries.get_user_by_email(db, email)
            return user, False

        await log_event(db, AuditAction.USER_CREATED, actor_email=email, target_type="user", target_id=user.id)
        await db.commit()
        await db.refresh(user)
        logger.info("Created user %s on first sign-in", email)
        return user, True

    @staticmethod
    async def set_user_role(db: AsyncSession, user_id: str, role: UserRole, actor_email: str) -> User:
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            raise ResourceNotFoundError("User", user_id)

        previous = user.role
        user.role = role
        await log_event(
            db,
            AuditAction.ROLE_CHANGED,
            actor_email=actor_email,
            target_type="user",
            target_id=user.id,
            metadata={"from": previous.value, "to": role.value, "email": user.email}
        )
        await db.commit()
        await db.refresh(user)
        logger.info("Role of %s changed %s -> %s by %s", user.email, previous.value, role.value, actor_email)
        return user

    # -- parcels -------------------------------------------------------

    @staticmethod
    async def create_parcel(db: AsyncSession, sender_email: str, data: dict) -> Parcel:
        parcel = Parcel(
            sender_email=sender_email,
            tracking_id=generate_tracking_id(),
            payment_status=PaymentStatus.UNPAID,
            delivery_status=DeliveryStatus.NOT_COLLECTED,
            **data
        )
        db.add(parcel)
        await db.flush()
        await log_event(
            db,
            AuditAction.PARCEL_CREATED,
            actor_email=sender_email,
            target_type="parcel",
            target_id=parcel.id,
            metadata={"tracking_id": parcel.tracking_id}
        )
        await db.commit()
        await db.refresh(parcel)
        return parcel

    @staticmethod
    async def get_parcel(db: AsyncSession, parcel_id: str) -> Parcel:
        result = await db.execute(select(Parcel).where(Parcel.id == parcel_id))
        parcel = result.scalar_one_or_none()
        if not parcel:
            raise ResourceNotFoundError("Parcel", parcel_id)
        return parcel

    @staticmethod
    async def list_parcels(
        db: AsyncSession,
        sender_email: Optional[str] = None,
        payment_status: Optional[PaymentStatus] = None,
        delivery_status: Optional[DeliveryStatus] = None,
        page: int = 1,
        page_size: int = 50
    ) -> tuple[List[Parcel], int]:
        """Newest first. Returns (parcels, total matching)."""
        filters = []
        if sender_email:
            filters.append(Parcel.sender_email == sender_email)
        if payment_status:
            filters.append(Parcel.payment_status == payment_status)
        if delivery_status:
            filters.append(Parcel.delivery_status == delivery_status)

        total = (await db.execute(select(func.count(Parcel.id)).where(*filters))).scalar()

        query = (
            select(Parcel)
            .where(*filters)
            .order_by(desc(Parcel.created_at), desc(Parcel.id))
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await db.execute(query)
        return result.scalars().all(), total

    @staticmethod
    async def latest_parcel(db: AsyncSession, sender_email: Optional[str] = None) -> Optional[Parcel]:
        query = select(Parcel).order_by(desc(Parcel.created_at), desc(Parcel.id)).limit(1)
        if sender_email:
            query = query.where(Parcel.sender_email == sender_email)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def delete_parcel(db: AsyncSession, parcel_id: str, actor_email: str) -> None:
        """Only unpaid parcels can be deleted."""
        parcel = await DeliveryQueries.get_parcel(db, parcel_id)
        if parcel.payment_status == PaymentStatus.PAID:
            raise ConflictError("Paid parcels cannot be deleted", details={"parcel_id": parcel_id})

        result = await db.execute(
            delete(Parcel)
            .where(Parcel.id == parcel_id, Parcel.payment_status == PaymentStatus.UNPAID)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            raise ConflictError("Parcel was paid while being deleted", details={"parcel_id": parcel_id})

        await log_event(db, AuditAction.PARCEL_DELETED, actor_email=actor_email,
                        target_type="parcel", target_id=parcel_id)
        await db.commit()

    @staticmethod
    async def rider_parcels(
        db: AsyncSession,
        rider_email: str,
        statuses: Iterable[DeliveryStatus]
    ) -> List[Parcel]:
        result = await db.execute(
            select(Parcel)
            .where(Parcel.assigned_rider_email == rider_email, Parcel.delivery_status.in_(list(statuses)))
            .order_by(desc(Parcel.assigned_at), desc(Parcel.id))
        )
        return result.scalars().all()

    # -- riders --------------------------------------------------------

    @staticmethod
    async def create_rider(db: AsyncSession, data: dict) -> Rider:
        existing = await db.execute(select(Rider.id).where(Rider.email == data["email"]))
        if existing.scalar_one_or_none():
            raise ConflictError("A rider application already exists for this email",
                                details={"email": data["email"]})

        rider = Rider(status=RiderStatus.PENDING, **data)
        db.add(rider)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ConflictError("A rider application already exists for this email",
                                details={"email": data["email"]})

        await log_event(db, AuditAction.RIDER_APPLIED, actor_email=rider.email,
                        target_type="rider", target_id=rider.id)
        await db.commit()
        await db.refresh(rider)
        return rider

    @staticmethod
    async def list_riders(
        db: AsyncSession,
        status: Optional[RiderStatus] = None,
        district: Optional[str] = None
    ) -> List[Rider]:
        query = select(Rider).order_by(desc(Rider.created_at), desc(Rider.id))
        if status:
            query = query.where(Rider.status == status)
        if district:
            query = query.where(Rider.district == district)
        result = await db.execute(query)
        return result.scalars().all()

    # -- payments ------------------------------------------------------

    @staticmethod
    async def payment_history(db: AsyncSession, email: Optional[str] = None) -> List[Payment]:
        """Newest first; all payments when email is None."""
        query = select(Payment).order_by(desc(Payment.paid_at), desc(Payment.id))
        if email:
            query = query.where(Payment.email == email)
        result = await db.execute(query)
        return result.scalars().all()
