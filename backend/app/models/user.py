"""
User database model.

A user is created on first sign-in and identified by email.
"""

from sqlalchemy import Column, String, DateTime, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base, generate_id
from backend.app.models.enums import UserRole, enum_values


class User(Base):
    """
    User model for authentication and role management.

    Role changes come from two places: an admin updating it directly, or a
    rider application being activated (role becomes RIDER).
    """
    __tablename__ = "users"

    id = Column(String(24), primary_key=True, default=generate_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    photo_url = Column(String(500), nullable=True)

    role = Column(
        Enum(UserRole, values_callable=enum_values, native_enum=False, length=32),
        default=UserRole.USER,
        nullable=False
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_login_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"
