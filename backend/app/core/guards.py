"""
Security guards for role-based access control.

Roles are resolved from the users collection on every request rather than
trusted from the token, and every check fails closed: a caller that cannot
be resolved to an allowed role is rejected.
"""

from typing import List
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError, ResourceNotFoundError
from backend.app.db.session import get_db
from backend.app.domain.delivery.status_coordinator import StatusCoordinator
from backend.app.models.enums import UserRole


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.patch("/parcels/{parcel_id}/cashout")
        async def cash_out(current_user: dict = Depends(require_role([UserRole.RIDER]))):
            ...

    Args:
        allowed_roles: List of UserRole enums that are allowed to access the endpoint

    Returns:
        FastAPI dependency function that validates user role

    Raises:
        InsufficientPermissionsError if the role cannot be resolved or is not in allowed_roles
    """
    async def role_checker(
        current_user: dict = Depends(get_current_user),
        db: AsyncSession = Depends(get_db)
    ) -> dict:
        try:
            role = await StatusCoordinator.resolve_role(db, current_user["sub"])
        except ResourceNotFoundError:
            raise InsufficientPermissionsError("Role could not be resolved")

        if role not in [r.value for r in allowed_roles]:
            raise InsufficientPermissionsError(
                f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return {**current_user, "role": role}

    return role_checker


async def require_admin(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    Dependency for admin-only endpoints.

    Usage:
        @router.patch("/users/{user_id}/role")
        async def update_role(user_id: str, admin: dict = Depends(require_admin)):
            ...

    Returns:
        User payload if admin, raises InsufficientPermissionsError otherwise
    """
    try:
        role = await StatusCoordinator.resolve_role(db, current_user["sub"])
    except ResourceNotFoundError:
        raise InsufficientPermissionsError("Admin access required")

    if role != UserRole.ADMIN.value:
        raise InsufficientPermissionsError("Admin access required")

    return {**current_user, "role": role}


def is_admin(current_user: dict) -> bool:
    """For endpoints open to everyone where admins see more."""
    return current_user.get("role") == UserRole.ADMIN.value
