"""
Event model with seat inventory tracking.

Key design decisions:
- `available_seats` is denormalized (avoids COUNT over bookings) and is only
  ever changed by conditional UPDATE statements, never read-modify-write
- CHECK constraints keep 0 <= available_seats <= total_seats at the DB level
- Index on `date` for upcoming-event listings
"""

from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from booking_api.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(String(2000), nullable=True)
    date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(200), nullable=True)
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    total_seats = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    organizer = relationship("User", back_populates="events")
    bookings = relationship("Booking", back_populates="event")

    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="check_available_seats_non_negative"),
        CheckConstraint("total_seats > 0", name="check_total_seats_positive"),
        CheckConstraint("available_seats <= total_seats", name="check_available_lte_total"),
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        Index("ix_events_date", "date"),
        Index("ix_events_available_date", "available_seats", "date"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, available={self.available_seats}/{self.total_seats})>"
