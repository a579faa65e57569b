"""
User roles enumeration.

Defines the role types for the parcel delivery system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        USER: Sender / customer (default role on first sign-in)
        ADMIN: Approves riders, assigns parcels, manages roles
        RIDER: Delivery agent, granted when a rider application is activated
    """
    USER = "user"
    ADMIN = "admin"
    RIDER = "rider"


def enum_values(enum_cls):
    """Persist enum values (e.g. "in-transit") rather than member names."""
    return [member.value for member in enum_cls]
