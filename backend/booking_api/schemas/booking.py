"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from pydantic import BaseModel, Field

from booking_api.core.config import get_settings
from booking_api.schemas.event import EventResponse
from booking_api.schemas.user import UserSummary

MAX_SEATS_PER_BOOKING = get_settings().MAX_SEATS_PER_BOOKING


class BookingCreate(BaseModel):
    """Accepts `eventId` as well as `event_id`."""

    event_id: int = Field(..., gt=0, alias="eventId")
    quantity: int = Field(..., ge=1, le=MAX_SEATS_PER_BOOKING)

    model_config = {"populate_by_name": True}


class BookingResponse(BaseModel):
    id: int
    user_id: int
    event_id: int
    quantity: int
    status: str
    payment_status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingWithEventResponse(BookingResponse):
    event: EventResponse


class AdminBookingResponse(BookingWithEventResponse):
    user: UserSummary


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    status: str
    seats_released: int
