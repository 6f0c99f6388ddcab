"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from travel_backend.app.api.v1.endpoints import (
    trips, advances, receipts, settlements, notifications
)

router = APIRouter()

# Trip lifecycle and Finance review
router.include_router(trips.router)

# Advances
router.include_router(advances.router)

# Receipts
router.include_router(receipts.router)

# Settlements
router.include_router(settlements.router)

# Notifications
router.include_router(notifications.router)
