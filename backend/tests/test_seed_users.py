"""
Tests for the first-admin seeding script.
"""

import pytest

from backend.app.models.enums import UserRole
from backend.app.models.user import User
from backend.app.services.audit import get_audit_trail, AuditAction
from backend.seed_users import seed_admin
from backend.tests.factories import create_user, fetch


@pytest.mark.asyncio
async def test_seed_creates_admin(db_session):
    user, changed = await seed_admin(db_session, "root@test.com", name="Root")

    assert changed is True
    assert user.role == UserRole.ADMIN
    assert user.name == "Root"

    trail = await get_audit_trail(db_session, target_id=user.id, action=AuditAction.ROLE_CHANGED)
    assert len(trail) == 1
    assert trail[0].meta_data["from"] is None


@pytest.mark.asyncio
async def test_seed_promotes_existing_user(db_session):
    existing = await create_user("ops@test.com")

    user, changed = await seed_admin(db_session, "ops@test.com")

    assert changed is True
    assert user.id == existing.id
    stored = await fetch(User, existing.id)
    assert stored.role == UserRole.ADMIN


@pytest.mark.asyncio
async def test_seed_is_noop_for_existing_admin(db_session):
    await create_user("admin@test.com", UserRole.ADMIN)

    _, changed = await seed_admin(db_session, "admin@test.com")

    assert changed is False
