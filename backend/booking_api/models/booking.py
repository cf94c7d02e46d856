"""
Booking model representing a user's reservation of seats for an event.

- quantity is fixed at creation; cancellation flips status instead of deleting
- payment_status is owned by payment collaborators and starts as pending
- (user_id, idempotency_key) is unique so client retries cannot double-book
"""

import enum

from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship

from booking_api.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELED = "canceled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    idempotency_key = Column(String(64), nullable=True)

    user = relationship("User", back_populates="bookings")
    event = relationship("Event", back_populates="bookings")

    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_booking_user_idempotency_key"),
        CheckConstraint("quantity > 0", name="check_booking_quantity_positive"),
        CheckConstraint("status IN ('confirmed', 'canceled')", name="check_booking_status"),
        CheckConstraint("payment_status IN ('pending', 'paid')", name="check_booking_payment_status"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, event={self.event_id}, qty={self.quantity}, status={self.status})>"
