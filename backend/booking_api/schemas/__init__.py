from booking_api.schemas.user import UserCreate, UserResponse, UserLogin, Token
from booking_api.schemas.event import EventCreate, EventUpdate, EventResponse, EventListResponse
from booking_api.schemas.booking import BookingCreate, BookingResponse

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "EventCreate", "EventUpdate", "EventResponse", "EventListResponse",
    "BookingCreate", "BookingResponse",
]
