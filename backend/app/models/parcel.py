"""
Parcel database model.

A parcel is a shipment created by a sender and tracked through payment,
rider assignment, delivery and rider cash-out.
"""

from sqlalchemy import Column, String, Float, DateTime, Enum, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base, generate_id
from backend.app.models.enums import enum_values
from backend.app.models.parcel_enums import (
    PaymentStatus, DeliveryStatus, CashoutStatus, ParcelType
)


class Parcel(Base):
    """
    Parcel model for the delivery platform.

    Rider fields are denormalised copies taken at assignment time; there is
    no foreign key to riders, matching the document store the service
    replaced.
    """
    __tablename__ = "parcels"

    id = Column(String(24), primary_key=True, default=generate_id)
    tracking_id = Column(String(32), unique=True, nullable=False, index=True)

    # Sender
    sender_email = Column(String(255), nullable=False, index=True)
    sender_name = Column(String(255), nullable=True)
    sender_region = Column(String(100), nullable=True)
    sender_district = Column(String(100), nullable=True)

    # Receiver
    receiver_name = Column(String(255), nullable=True)
    receiver_contact = Column(String(50), nullable=True)
    receiver_region = Column(String(100), nullable=True)
    receiver_district = Column(String(100), nullable=True)
    receiver_address = Column(String(500), nullable=True)

    # Parcel description
    title = Column(String(255), nullable=False)
    parcel_type = Column(
        Enum(ParcelType, values_callable=enum_values, native_enum=False, length=32),
        default=ParcelType.NON_DOCUMENT,
        nullable=False
    )
    weight_kg = Column(Float, nullable=True)
    cost = Column(Float, nullable=False, default=0.0)
    details = Column(JSON, nullable=True)

    # Status
    payment_status = Column(
        Enum(PaymentStatus, values_callable=enum_values, native_enum=False, length=32),
        default=PaymentStatus.UNPAID,
        nullable=False,
        index=True
    )
    delivery_status = Column(
        Enum(DeliveryStatus, values_callable=enum_values, native_enum=False, length=32),
        default=DeliveryStatus.NOT_COLLECTED,
        nullable=False,
        index=True
    )

    # Rider assignment
    assigned_rider_id = Column(String(24), nullable=True, index=True)
    assigned_rider_email = Column(String(255), nullable=True, index=True)
    assigned_rider_name = Column(String(255), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    picked_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    # Rider cash-out
    cashout_status = Column(
        Enum(CashoutStatus, values_callable=enum_values, native_enum=False, length=32),
        nullable=True
    )
    cashout_amount = Column(Float, nullable=True)
    cashed_out_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return (
            f"<Parcel(id={self.id}, tracking_id='{self.tracking_id}', "
            f"payment='{self.payment_status.value}', delivery='{self.delivery_status.value}')>"
        )
