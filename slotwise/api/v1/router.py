"""
API v1 router setup
Organized into: public (availability, guest booking) and dashboard (JWT) routes
"""
from fastapi import APIRouter

from slotwise.api.v1 import availability, bookings
from slotwise.api.v1.dashboard import bookings as dashboard_bookings, schedule, services

api_v1_router = APIRouter()

# ============================================================================
# PUBLIC ROUTES (No authentication required; bookings accept an optional token)
# ============================================================================
api_v1_router.include_router(
    availability.router,
    tags=["Public"]
)

api_v1_router.include_router(
    bookings.router,
    tags=["Bookings"]
)

# ============================================================================
# DASHBOARD ROUTES (JWT authentication required)
# ============================================================================
api_v1_router.include_router(
    dashboard_bookings.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)

api_v1_router.include_router(
    schedule.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)

api_v1_router.include_router(
    services.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)


# ============================================================================
# ROOT ENDPOINT - API Info
# ============================================================================
@api_v1_router.get("/", tags=["Info"])
async def api_info():
    """
    API information and available endpoints.
    """
    return {
        "version": "1.0",
        "authentication": {
            "public": "No authentication required",
            "bookings": "Guest-bookable; JWT Bearer token links bookings to a client",
            "dashboard": "JWT Bearer token required (admin or provider)"
        }
    }
