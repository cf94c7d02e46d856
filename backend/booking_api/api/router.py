"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter, Depends
from booking_api.api.rate_limit import api_rate_limiter
from booking_api.api.routes import auth, events, bookings

api_router = APIRouter(prefix="/api/v1", dependencies=[Depends(api_rate_limiter)])
api_router.include_router(auth.router)
api_router.include_router(events.router)
api_router.include_router(bookings.router)
