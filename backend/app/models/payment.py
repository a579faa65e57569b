"""
Payment database model.

Stores a confirmed payment for a parcel. Records are immutable once written.
"""

from sqlalchemy import Column, String, Float, DateTime
from backend.app.db.session import Base, generate_id


class Payment(Base):
    """
    Payment model.

    One record per confirmed transaction; `transaction_id` is unique so a
    retried confirmation cannot create a second record. The payment time is
    stored both natively and as an ISO-8601 string for clients that sort on
    the string form.
    """
    __tablename__ = "payments"

    id = Column(String(24), primary_key=True, default=generate_id)
    parcel_id = Column(String(24), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)

    amount = Column(Float, nullable=False)
    currency = Column(String(10), nullable=False)
    status = Column(String(32), nullable=False, default="succeeded")
    payment_method = Column(String(64), nullable=False)
    transaction_id = Column(String(255), unique=True, nullable=False, index=True)

    paid_at = Column(DateTime(timezone=True), nullable=False, index=True)
    paid_at_string = Column(String(64), nullable=False)

    def __repr__(self):
        return f"<Payment(id={self.id}, parcel_id={self.parcel_id}, amount={self.amount} {self.currency})>"
