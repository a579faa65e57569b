"""
Integration tests for rider applications and approval.
"""

import pytest

from backend.app.models.rider_enums import RiderStatus
from backend.tests.factories import create_user, create_rider, auth_headers

APPLICATION = {
    "name": "Karim Rider",
    "phone": "+8801711111111",
    "region": "Dhaka",
    "district": "Dhaka",
    "bike_brand": "Honda",
    "bike_registration": "DHA-1234",
}


@pytest.mark.asyncio
async def test_apply_as_rider(client, sender_headers):
    response = await client.post("/v1/riders", json=APPLICATION, headers=sender_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "sender@test.com"
    assert data["status"] == "pending"


@pytest.mark.asyncio
async def test_duplicate_application_conflicts(client, sender_headers):
    await client.post("/v1/riders", json=APPLICATION, headers=sender_headers)

    response = await client.post("/v1/riders", json=APPLICATION, headers=sender_headers)

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_list_riders_by_status(client, admin_headers):
    await create_rider("R1", "r1@test.com", status=RiderStatus.PENDING)
    await create_rider("R2", "r2@test.com", status=RiderStatus.ACTIVE)

    response = await client.get("/v1/riders?status=pending", headers=admin_headers)

    assert response.status_code == 200
    assert [r["id"] for r in response.json()] == ["R1"]

    response = await client.get("/v1/riders", headers=admin_headers)
    assert {r["id"] for r in response.json()} == {"R1", "R2"}


@pytest.mark.asyncio
async def test_list_riders_requires_admin(client, sender_headers):
    response = await client.get("/v1/riders", headers=sender_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_available_riders_filters_district_and_status(client, admin_headers):
    await create_rider("R1", "r1@test.com", district="Dhaka")
    await create_rider("R2", "r2@test.com", district="Sylhet")
    await create_rider("R3", "r3@test.com", district="Dhaka", status=RiderStatus.BUSY)

    response = await client.get("/v1/riders/available?district=Dhaka", headers=admin_headers)

    assert [r["id"] for r in response.json()] == ["R1"]


@pytest.mark.asyncio
async def test_approve_rider_grants_rider_role(client, admin_headers):
    await create_user("r2@x.com")
    await create_rider("R2", "r2@x.com", status=RiderStatus.PENDING)

    response = await client.patch("/v1/riders/R2/status", json={"status": "active"}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["status"] == "active"

    response = await client.get("/v1/users/r2@x.com/role", headers=auth_headers("r2@x.com"))
    assert response.json()["role"] == "rider"

    # The new role opens the rider-only endpoints
    response = await client.get("/v1/riders/me/parcels", headers=auth_headers("r2@x.com"))
    assert response.status_code == 200
    assert response.json() == {"pending": [], "completed": []}


@pytest.mark.asyncio
async def test_reject_then_reapply_cycle(client, admin_headers):
    await create_user("r5@x.com")
    await create_rider("R5", "r5@x.com", status=RiderStatus.PENDING)

    response = await client.patch("/v1/riders/R5/status", json={"status": "rejected"}, headers=admin_headers)
    assert response.json()["status"] == "rejected"

    response = await client.patch("/v1/riders/R5/status", json={"status": "busy"}, headers=admin_headers)
    assert response.status_code == 409

    response = await client.patch("/v1/riders/R5/status", json={"status": "pending"}, headers=admin_headers)
    assert response.json()["status"] == "pending"


@pytest.mark.asyncio
async def test_rider_status_errors(client, admin_headers):
    await create_rider("R1", "r1@test.com", status=RiderStatus.PENDING)

    response = await client.patch("/v1/riders/R1/status", json={"status": "retired"}, headers=admin_headers)
    assert response.status_code == 400

    response = await client.patch("/v1/riders/NOPE/status", json={"status": "active"}, headers=admin_headers)
    assert response.status_code == 404

    # No user account behind the rider email
    response = await client.patch("/v1/riders/R1/status", json={"status": "active"}, headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["details"]["resource"] == "User"


@pytest.mark.asyncio
async def test_my_parcels_requires_rider_role(client, sender_headers):
    response = await client.get("/v1/riders/me/parcels", headers=sender_headers)

    assert response.status_code == 403
    body = response.json()
    assert body["kind"] == "Forbidden"
    assert body["error_code"] == "ERR_PERM_001"
    assert body["message"] == "Access denied. Required role: rider"
