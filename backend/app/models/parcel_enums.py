"""
Parcel status enumerations and the delivery status transition table.
"""

import enum


class PaymentStatus(str, enum.Enum):
    """Parcel payment status. A parcel is created UNPAID."""
    UNPAID = "unpaid"
    PAID = "paid"


class DeliveryStatus(str, enum.Enum):
    """
    Parcel delivery status.

    Status flow:
        NOT_COLLECTED → RIDER_ASSIGNED → IN_TRANSIT → DELIVERED
        IN_TRANSIT → SERVICE_CENTER_DELIVERED → DELIVERED
        RIDER_ASSIGNED → NOT_COLLECTED (assignment withdrawn)
    """
    NOT_COLLECTED = "not_collected"
    RIDER_ASSIGNED = "rider_assigned"
    IN_TRANSIT = "in-transit"
    DELIVERED = "delivered"
    SERVICE_CENTER_DELIVERED = "service_center_delivered"


class CashoutStatus(str, enum.Enum):
    """Rider cash-out status for a delivered parcel."""
    PENDING = "pending"
    CASHED_OUT = "cashed_out"


class ParcelType(str, enum.Enum):
    DOCUMENT = "document"
    NON_DOCUMENT = "non-document"


DELIVERY_TRANSITIONS = {
    DeliveryStatus.NOT_COLLECTED: {DeliveryStatus.RIDER_ASSIGNED},
    DeliveryStatus.RIDER_ASSIGNED: {DeliveryStatus.IN_TRANSIT, DeliveryStatus.NOT_COLLECTED},
    DeliveryStatus.IN_TRANSIT: {DeliveryStatus.DELIVERED, DeliveryStatus.SERVICE_CENTER_DELIVERED},
    DeliveryStatus.SERVICE_CENTER_DELIVERED: {DeliveryStatus.DELIVERED},
    DeliveryStatus.DELIVERED: set(),
}

# Statuses that count as a completed delivery (eligible for cash out)
COMPLETED_DELIVERY_STATUSES = {
    DeliveryStatus.DELIVERED,
    DeliveryStatus.SERVICE_CENTER_DELIVERED,
}

# Statuses a rider still has work to do on
PENDING_DELIVERY_STATUSES = {
    DeliveryStatus.RIDER_ASSIGNED,
    DeliveryStatus.IN_TRANSIT,
}


def can_transition_delivery(current: DeliveryStatus, target: DeliveryStatus) -> bool:
    """Same-status writes are allowed; everything else must be in the table."""
    return current == target or target in DELIVERY_TRANSITIONS[current]
