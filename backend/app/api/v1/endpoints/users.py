"""
User API Endpoints.

User creation on first sign-in, role lookup and admin role updates.
"""

from fastapi import APIRouter, Depends, status, Path, Response
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError
from backend.app.core.guards import require_admin, is_admin
from backend.app.domain.delivery.queries import DeliveryQueries
from backend.app.domain.delivery.status_coordinator import StatusCoordinator
from backend.app.schemas.auth import (
    SignInRequest, UserResponse, UserCreatedResponse, RoleResponse, RoleUpdate
)

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=UserCreatedResponse)
async def create_user(
    user_data: SignInRequest,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    """
    Record a user on first sign-in.

    Returns 201 when the user is created, 200 when it already existed
    (last login time is refreshed).
    """
    user, created = await DeliveryQueries.sign_in_user(
        db, user_data.email, name=user_data.name, photo_url=user_data.photo_url
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return UserCreatedResponse(created=created, user=UserResponse.model_validate(user))


@router.get("/{email}/role", response_model=RoleResponse)
async def get_user_role(
    email: str = Path(..., description="User email"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Resolve a user's role. Users may query themselves; admins anyone.
    """
    if email != current_user["sub"] and not is_admin(current_user):
        raise InsufficientPermissionsError("You can only look up your own role")

    role = await StatusCoordinator.resolve_role(db, email)
    return RoleResponse(email=email, role=role)


@router.patch("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    role_update: RoleUpdate,
    user_id: str = Path(..., description="User ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Change a user's role (admin-only).
    """
    user = await DeliveryQueries.set_user_role(db, user_id, role_update.role, actor_email=admin["sub"])
    return UserResponse.model_validate(user)
