"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import auth, users, parcels, riders, payments

router = APIRouter()

# Authentication endpoints
router.include_router(auth.router)

# Users and roles
router.include_router(users.router)

# Parcel lifecycle
router.include_router(parcels.router)

# Rider management
router.include_router(riders.router)

# Payment intents, confirmation and history
router.include_router(payments.router)
