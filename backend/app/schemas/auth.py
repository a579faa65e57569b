"""
Authentication and user Pydantic schemas.

Defines request and response schemas for sign-in and user endpoints.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional
from backend.app.models.enums import UserRole


class SignInRequest(BaseModel):
    """
    Schema for first sign-in / token exchange.

    Used by POST /auth/token and POST /users.
    """
    email: EmailStr = Field(..., description="User email address")
    name: Optional[str] = Field(default=None, max_length=255, description="Display name")
    photo_url: Optional[str] = Field(default=None, max_length=500, description="Avatar URL")


class TokenResponse(BaseModel):
    """
    Schema for JWT token response.

    Returned by a successful sign-in.
    """
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user_id: str = Field(..., description="User ID")
    email: str = Field(..., description="Email address")
    role: UserRole = Field(..., description="User role")


class UserResponse(BaseModel):
    """
    Schema for user information response.

    Used by GET /auth/me and the user endpoints.
    """
    id: str
    email: str
    name: Optional[str] = None
    photo_url: Optional[str] = None
    role: UserRole
    created_at: datetime
    last_login_at: datetime

    class Config:
        from_attributes = True  # Pydantic v2 (was orm_mode in v1)


class UserCreatedResponse(BaseModel):
    """POST /users result: the user and whether this call created it."""
    created: bool
    user: UserResponse


class RoleResponse(BaseModel):
    email: str
    role: UserRole


class RoleUpdate(BaseModel):
    role: UserRole = Field(..., description="New role")
