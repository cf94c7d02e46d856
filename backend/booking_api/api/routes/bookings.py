"""
Booking endpoints with concurrency-safe seat reservation.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.db.session import get_db
from booking_api.models.user import User
from booking_api.schemas.booking import (
    AdminBookingResponse,
    BookingCancelResponse,
    BookingCreate,
    BookingResponse,
    BookingWithEventResponse,
)
from booking_api.services.booking_service import (
    cancel_booking,
    create_booking,
    get_all_bookings,
    get_user_bookings,
    replay_idempotent_booking,
)
from booking_api.services.cache_service import invalidate_event_cache
from booking_api.core.exceptions import PermissionDeniedError
from booking_api.core.security import get_current_user, require_admin
from booking_api.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    response: Response,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=64),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Book seats for an event.

    Seats are taken with a single conditional UPDATE, so concurrent requests
    can never oversell. Returns 400 "Not enough seats available" when the
    event cannot cover the requested quantity. Repeating a request with the
    same Idempotency-Key returns the original booking with 200, or 409 if
    the key was used for a different event or quantity.
    """
    if idempotency_key:
        existing = await replay_idempotent_booking(
            db, user.id, idempotency_key, booking_data.event_id, booking_data.quantity
        )
        if existing is not None:
            response.status_code = status.HTTP_200_OK
            return existing

    booking = await create_booking(
        db,
        user_id=user.id,
        event_id=booking_data.event_id,
        quantity=booking_data.quantity,
        idempotency_key=idempotency_key,
    )
    await invalidate_event_cache()
    return booking


@router.get("/user/{user_id}", response_model=list[BookingWithEventResponse])
async def list_user_bookings(
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Bookings of one user, event populated. Callers may only read their own unless admin."""
    if user.id != user_id and not user.is_admin:
        raise PermissionDeniedError("Access denied")
    return await get_user_bookings(db, user_id)


@router.get("/", response_model=list[AdminBookingResponse])
async def list_all_bookings(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Every booking with event and user populated. Admin only."""
    return await get_all_bookings(db)


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking and release seats back to the event."""
    booking = await cancel_booking(db, booking_id, user)
    await invalidate_event_cache()
    return BookingCancelResponse(
        message="Booking canceled successfully",
        booking_id=booking.id,
        status=booking.status,
        seats_released=booking.quantity,
    )
