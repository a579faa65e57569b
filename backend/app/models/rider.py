"""
Rider database model.

Riders apply (PENDING), are approved by an admin (ACTIVE) and become BUSY
while carrying a parcel.
"""

from sqlalchemy import Column, String, DateTime, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base, generate_id
from backend.app.models.enums import enum_values
from backend.app.models.rider_enums import RiderStatus


class Rider(Base):
    __tablename__ = "riders"

    id = Column(String(24), primary_key=True, default=generate_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    region = Column(String(100), nullable=True)
    district = Column(String(100), nullable=True, index=True)
    bike_brand = Column(String(100), nullable=True)
    bike_registration = Column(String(100), nullable=True)

    status = Column(
        Enum(RiderStatus, values_callable=enum_values, native_enum=False, length=32),
        default=RiderStatus.PENDING,
        nullable=False,
        index=True
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Rider(id={self.id}, email='{self.email}', status='{self.status.value}')>"
