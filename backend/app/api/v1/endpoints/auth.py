"""
Authentication API endpoints.

Provides sign-in (token exchange), sign-out and user info endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.db.session import get_db
from backend.app.schemas.auth import SignInRequest, TokenResponse, UserResponse
from backend.app.core.jwt import create_access_token
from backend.app.core.dependencies import get_current_user
from backend.app.core.token_revocation import revoke_token
from backend.app.domain.delivery.queries import DeliveryQueries

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/token", response_model=TokenResponse)
async def issue_token(
    credentials: SignInRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Exchange a signed-in email for an API token.

    The user is created on first sign-in with the default "user" role.
    """
    user, _ = await DeliveryQueries.sign_in_user(
        db, credentials.email, name=credentials.name, photo_url=credentials.photo_url
    )

    access_token = create_access_token(user.email, user_id=user.id)

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        user_id=user.id,
        email=user.email,
        role=user.role
    )


@router.post("/logout")
async def logout(current_user: dict = Depends(get_current_user)):
    """
    Revoke the presented token.

    Later requests with the same token receive 401.
    """
    revoked = await revoke_token(current_user["token"], current_user["sub"])
    return {"success": revoked, "message": "Signed out" if revoked else "Token could not be revoked"}


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get the current authenticated user's profile.
    """
    user = await DeliveryQueries.get_user_by_email(db, current_user["sub"])
    return UserResponse.model_validate(user)
