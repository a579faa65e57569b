"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.core.exceptions import AuthenticationError, TokenRevokedError
from backend.app.core.jwt import decode_access_token
from backend.app.core.token_revocation import is_token_revoked
from backend.app.db.session import get_db
from backend.app.domain.delivery.queries import DeliveryQueries

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Security checks:
    1. A bearer token is present
    2. Validates JWT token signature and expiry
    3. Checks if token has been explicitly revoked (signed out)
    4. Verifies the subject still exists in the users collection

    Args:
        credentials: HTTP Bearer token from request header
        db: Database session for real-time user lookup

    Returns:
        Decoded token payload with the user's current role and raw token added

    Raises:
        AuthenticationError: missing, invalid or expired token, or unknown user
        TokenRevokedError: the token was signed out
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    token = credentials.credentials

    # 1. Decode and validate JWT
    payload = decode_access_token(token)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")

    email = payload.get("sub")
    if not email:
        raise AuthenticationError("Invalid token payload")

    # 2. Check if this specific token has been revoked
    if await is_token_revoked(token):
        raise TokenRevokedError()

    # 3. Real-time database check: the user must still exist
    user = await DeliveryQueries.get_user_by_email(db, email)
    if not user:
        raise AuthenticationError("User not found")

    return {
        **payload,
        "user_id": user.id,
        "role": user.role.value,
        "token": token,
    }
