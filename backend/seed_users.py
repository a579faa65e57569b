"""
Database seeding script for the first admin.

Only an admin can grant the admin role over the API, so the first one is
created here. Run after the database is reachable:

    python -m backend.seed_users admin@example.com --name "Ops Admin"
"""

import argparse
import asyncio
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.models.enums import UserRole
from backend.app.models.user import User
from backend.app.services.audit import log_event, AuditAction

# Registered with Base so create_all builds every table
from backend.app.models.parcel import Parcel  # noqa: F401
from backend.app.models.rider import Rider  # noqa: F401
from backend.app.models.payment import Payment  # noqa: F401
from backend.app.models.audit_log import AuditLog  # noqa: F401


async def seed_admin(db: AsyncSession, email: str, name: Optional[str] = None) -> tuple[User, bool]:
    """
    Create the user as admin, or promote an existing user.

    Returns:
        (user, changed): changed is False when the user was already an admin
    """
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if user and user.role == UserRole.ADMIN:
        return user, False

    previous = user.role.value if user else None
    if user is None:
        user = User(email=email, name=name, role=UserRole.ADMIN)
        db.add(user)
        await db.flush()
    else:
        user.role = UserRole.ADMIN

    await log_event(
        db,
        AuditAction.ROLE_CHANGED,
        actor_email="seed_users",
        target_type="user",
        target_id=user.id,
        metadata={"from": previous, "to": UserRole.ADMIN.value, "email": email}
    )
    await db.commit()
    await db.refresh(user)
    return user, True


async def main(email: str, name: Optional[str] = None):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting admin seeding...")
        user, changed = await seed_admin(db, email, name)

    if changed:
        print(f"✅ {user.email} is now an admin (user id {user.id})")
    else:
        print(f"ℹ️  {user.email} is already an admin, nothing to do")

    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or promote the first admin user")
    parser.add_argument("email", help="Email the admin signs in with")
    parser.add_argument("--name", default=None, help="Display name for a new user")
    args = parser.parse_args()
    asyncio.run(main(args.email, args.name))
