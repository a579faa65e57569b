"""
Rider Status Enumeration and transition table.
"""

import enum


class RiderStatus(str, enum.Enum):
    """
    Rider status enumeration.

    Status flow:
        PENDING → ACTIVE (admin approval) | REJECTED
        ACTIVE → BUSY (assigned to a parcel) | REJECTED (deactivated)
        BUSY → ACTIVE (released by an admin)
        REJECTED → PENDING (re-application)
    """
    PENDING = "pending"
    ACTIVE = "active"
    BUSY = "busy"
    REJECTED = "rejected"


RIDER_TRANSITIONS = {
    RiderStatus.PENDING: {RiderStatus.ACTIVE, RiderStatus.REJECTED},
    RiderStatus.ACTIVE: {RiderStatus.BUSY, RiderStatus.REJECTED},
    RiderStatus.BUSY: {RiderStatus.ACTIVE},
    RiderStatus.REJECTED: {RiderStatus.PENDING},
}


def can_transition_rider(current: RiderStatus, target: RiderStatus) -> bool:
    return current == target or target in RIDER_TRANSITIONS[current]
