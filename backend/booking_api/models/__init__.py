from booking_api.models.user import User, UserRole
from booking_api.models.event import Event
from booking_api.models.booking import Booking, BookingStatus, PaymentStatus

__all__ = ["User", "UserRole", "Event", "Booking", "BookingStatus", "PaymentStatus"]
