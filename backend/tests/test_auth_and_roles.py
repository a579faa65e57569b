"""
Integration tests for sign-in, token revocation and role guards.
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from backend.app.core.config import settings
from backend.app.core.jwt import create_access_token, decode_access_token
from backend.app.models.enums import UserRole
from backend.tests.factories import create_user, auth_headers

# Note: Client and DB setup are in conftest.py


@pytest.mark.asyncio
async def test_token_creates_user_on_first_sign_in(client):
    response = await client.post("/v1/auth/token", json={"email": "new@test.com", "name": "New User"})

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["email"] == "new@test.com"
    assert data["role"] == "user"

    payload = jwt.decode(data["access_token"], settings.secret_key, algorithms=[settings.algorithm])
    assert payload["sub"] == "new@test.com"

    me = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert me.status_code == 200
    assert me.json()["name"] == "New User"


@pytest.mark.asyncio
async def test_create_user_endpoint_is_idempotent(client):
    first = await client.post("/v1/users", json={"email": "u@test.com", "name": "U"})
    second = await client.post("/v1/users", json={"email": "u@test.com", "name": "U"})

    assert first.status_code == 201
    assert first.json()["created"] is True
    assert second.status_code == 200
    assert second.json()["created"] is False
    assert first.json()["user"]["id"] == second.json()["user"]["id"]


@pytest.mark.asyncio
async def test_invalid_email_is_rejected(client):
    response = await client.post("/v1/users", json={"email": "not-an-email"})

    assert response.status_code == 422
    assert response.json()["kind"] == "Validation"


@pytest.mark.asyncio
async def test_missing_and_invalid_tokens(client):
    response = await client.get("/v1/auth/me")
    assert response.status_code == 401
    assert response.json()["kind"] == "Unauthorized"
    assert response.json()["error_code"] == "ERR_AUTH_001"
    assert response.headers["WWW-Authenticate"] == "Bearer"

    response = await client.get("/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_access_token_claims():
    token = create_access_token("rider@test.com", user_id="abc123")

    payload = decode_access_token(token)

    assert payload["sub"] == "rider@test.com"
    assert payload["user_id"] == "abc123"
    assert payload["exp"] > payload["iat"]
    assert "role" not in payload


def test_expired_token_is_rejected():
    token = create_access_token("rider@test.com", expires_delta=timedelta(seconds=-5))

    assert decode_access_token(token) is None


@pytest.mark.parametrize("subject", ["not-an-email", "", 42])
def test_token_subject_must_be_an_email(subject):
    token = jwt.encode(
        {"sub": subject, "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        settings.secret_key,
        algorithm=settings.algorithm
    )

    assert decode_access_token(token) is None


@pytest.mark.asyncio
async def test_non_email_subject_is_unauthorized(client):
    await create_user("admin@test.com", UserRole.ADMIN)
    token = jwt.encode(
        {"sub": "admin", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        settings.secret_key,
        algorithm=settings.algorithm
    )

    response = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_AUTH_001"


@pytest.mark.asyncio
async def test_token_for_unknown_user_is_rejected(client):
    response = await client.get("/v1/auth/me", headers=auth_headers("ghost@test.com"))

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_logout_revokes_token(client, sender_headers):
    response = await client.post("/v1/auth/logout", headers=sender_headers)
    assert response.status_code == 200
    assert response.json()["success"] is True

    response = await client.get("/v1/auth/me", headers=sender_headers)
    assert response.status_code == 401
    assert response.json()["message"] == "Token has been revoked"
    assert response.json()["error_code"] == "ERR_AUTH_002"


@pytest.mark.asyncio
async def test_user_can_read_own_role(client, sender_headers):
    response = await client.get("/v1/users/sender@test.com/role", headers=sender_headers)

    assert response.status_code == 200
    assert response.json() == {"email": "sender@test.com", "role": "user"}


@pytest.mark.asyncio
async def test_user_cannot_read_other_roles(client, sender_headers):
    await create_user("other@test.com")

    response = await client.get("/v1/users/other@test.com/role", headers=sender_headers)

    assert response.status_code == 403
    assert response.json()["kind"] == "Forbidden"
    assert response.json()["error_code"] == "ERR_PERM_001"


@pytest.mark.asyncio
async def test_admin_role_lookup_of_unknown_user(client, admin_headers):
    response = await client.get("/v1/users/nobody@test.com/role", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["kind"] == "NotFound"


@pytest.mark.asyncio
async def test_admin_changes_role(client, admin_headers):
    user = await create_user("promote@test.com")

    response = await client.patch(
        f"/v1/users/{user.id}/role", json={"role": "admin"}, headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["role"] == "admin"

    lookup = await client.get(
        "/v1/users/promote@test.com/role", headers=auth_headers("promote@test.com")
    )
    assert lookup.json()["role"] == "admin"


@pytest.mark.asyncio
async def test_non_admin_cannot_change_roles(client, sender_headers):
    user = await create_user("victim@test.com")

    response = await client.patch(
        f"/v1/users/{user.id}/role", json={"role": "admin"}, headers=sender_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_role_is_read_from_database_not_token(client):
    """A demoted admin loses access even with a token issued while they were admin."""
    await create_user("former@test.com", UserRole.USER)
    token = jwt.encode(
        {"sub": "former@test.com", "role": "admin", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        settings.secret_key,
        algorithm=settings.algorithm
    )

    response = await client.get("/v1/riders", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_001"


@pytest.mark.asyncio
async def test_admin_guard_fails_closed_when_role_lookup_fails(client, admin_headers, mocker):
    from backend.app.core.exceptions import ResourceNotFoundError
    mocker.patch(
        "backend.app.core.guards.StatusCoordinator.resolve_role",
        side_effect=ResourceNotFoundError("User", "admin@test.com")
    )

    response = await client.get("/v1/riders", headers=admin_headers)

    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_001"
    assert response.json()["message"] == "Admin access required"


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["redis"] == "ok"
    assert "X-Correlation-ID" in response.headers
