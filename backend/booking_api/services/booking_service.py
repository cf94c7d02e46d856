"""
Booking service with concurrency-safe seat reservation.

CONCURRENCY STRATEGY: Atomic Conditional Update
===============================================

Problem:
  Two users try to book the last seat simultaneously.
  Both read available_seats=1, both decrement to 0, both succeed.
  Result: Overbooking.

Solution:
  The seat check and the decrement are one statement:

    UPDATE events SET available_seats = available_seats - :q
    WHERE id = :event_id AND available_seats >= :q

  The database serializes writers on the row, so of two requests racing for
  the last seat exactly one sees rowcount == 1. The loser sees rowcount == 0
  and gets "Not enough seats available". There is no read-then-write window
  and therefore nothing to retry.

  The decrement and the booking INSERT run in the same transaction. If the
  INSERT fails, the rollback restores the seats, so inventory and booking
  rows never diverge. The CHECK constraints on events are the final safety
  net (0 <= available_seats <= total_seats).

Zero-row ambiguity:
  rowcount == 0 means either the event does not exist or it lacks seats.
  Only on that failure path do we look the event up to return a precise
  404 vs 400. The success path stays a single round trip.

Idempotency:
  A client may send an Idempotency-Key. The (user_id, idempotency_key)
  unique constraint makes a retried request collide on INSERT; the rollback
  undoes its decrement and the original booking is returned instead. A key
  reused for a different event or quantity is a 409.
"""

import time
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from booking_api.core.config import get_settings
from booking_api.core.exceptions import (
    ConflictError,
    InsufficientInventoryError,
    NotFoundError,
    PermissionDeniedError,
    StorageFailureError,
    ValidationError,
)
from booking_api.core.logging import get_logger
from booking_api.core.metrics import (
    booking_cancellations,
    booking_latency,
    record_booking_attempt,
    seats_reserved,
)
from booking_api.models.booking import Booking, BookingStatus, PaymentStatus
from booking_api.models.event import Event
from booking_api.models.user import User

logger = get_logger(__name__)


def validate_booking_request(event_id, quantity) -> None:
    """Reject malformed input before any statement reaches the database."""
    max_seats = get_settings().MAX_SEATS_PER_BOOKING
    errors = []

    if event_id is None or isinstance(event_id, bool) or not isinstance(event_id, int) or event_id <= 0:
        errors.append({"field": "event_id", "message": "Event ID is required"})
    if (
        quantity is None
        or isinstance(quantity, bool)
        or not isinstance(quantity, int)
        or not 1 <= quantity <= max_seats
    ):
        errors.append({"field": "quantity", "message": f"Quantity must be between 1 and {max_seats}"})

    if errors:
        raise ValidationError("Validation failed", errors=errors)


async def find_idempotent_booking(
    db: AsyncSession,
    user_id: int,
    idempotency_key: str,
) -> Optional[Booking]:
    result = await db.execute(
        select(Booking).where(
            Booking.user_id == user_id,
            Booking.idempotency_key == idempotency_key,
        )
    )
    return result.scalar_one_or_none()


async def replay_idempotent_booking(
    db: AsyncSession,
    user_id: int,
    idempotency_key: str,
    event_id: int,
    quantity: int,
) -> Optional[Booking]:
    """
    Return the booking already stored under this key, or None.

    A key reused for a different event or quantity is a ConflictError.
    """
    existing = await find_idempotent_booking(db, user_id, idempotency_key)
    if existing is None:
        return None

    if existing.event_id != event_id or existing.quantity != quantity:
        logger.warning(
            "idempotency_key_mismatch",
            booking_id=existing.id,
            user_id=user_id,
            event_id=event_id,
            quantity=quantity,
        )
        raise ConflictError("Idempotency-Key was already used for a different booking")

    record_booking_attempt("replayed")
    logger.info(
        "booking_replayed",
        booking_id=existing.id,
        user_id=user_id,
        event_id=existing.event_id,
    )
    return existing


async def _raise_no_match(db: AsyncSession, event_id: int, quantity: int) -> None:
    result = await db.execute(
        select(Event.available_seats).where(Event.id == event_id)
    )
    available = result.scalar_one_or_none()

    if available is None:
        record_booking_attempt("not_found")
        logger.info("booking_failed_event_not_found", event_id=event_id)
        raise NotFoundError("Event not found")

    record_booking_attempt("insufficient")
    logger.warning(
        "booking_failed_no_seats",
        event_id=event_id,
        requested=quantity,
        available=available,
    )
    raise InsufficientInventoryError("Not enough seats available")


async def create_booking(
    db: AsyncSession,
    user_id: int,
    event_id: int,
    quantity: int,
    idempotency_key: Optional[str] = None,
) -> Booking:
    """
    Reserve `quantity` seats on `event_id` for `user_id` and record a booking.

    Raises ValidationError, NotFoundError, InsufficientInventoryError or
    StorageFailureError. On any error no seats remain reserved.
    """
    validate_booking_request(event_id, quantity)
    started = time.perf_counter()

    try:
        result = await db.execute(
            update(Event)
            .where(
                Event.id == event_id,
                Event.available_seats >= quantity,
            )
            .values(available_seats=Event.available_seats - quantity)
        )

        if result.rowcount != 1:
            await db.rollback()
            await _raise_no_match(db, event_id, quantity)

        booking = Booking(
            user_id=user_id,
            event_id=event_id,
            quantity=quantity,
            status=BookingStatus.CONFIRMED.value,
            payment_status=PaymentStatus.PENDING.value,
            idempotency_key=idempotency_key,
        )
        db.add(booking)
        await db.flush()
        await db.commit()

    except IntegrityError as e:
        await db.rollback()
        if idempotency_key:
            existing = await replay_idempotent_booking(
                db, user_id, idempotency_key, event_id, quantity
            )
            if existing is not None:
                return existing
        record_booking_attempt("error")
        logger.error("booking_insert_failed", event_id=event_id, user_id=user_id, error=str(e.orig))
        raise StorageFailureError()

    except SQLAlchemyError as e:
        await db.rollback()
        record_booking_attempt("error")
        logger.error("booking_transaction_failed", event_id=event_id, user_id=user_id, error=str(e))
        raise StorageFailureError()

    finally:
        booking_latency.observe(time.perf_counter() - started)

    await db.refresh(booking)
    record_booking_attempt("success")
    seats_reserved.inc(quantity)

    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=user_id,
        event_id=event_id,
        seats=quantity,
    )
    return booking


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    user: User,
) -> Booking:
    """
    Cancel a booking and release its seats back to the event.

    Both the status flip and the seat release are conditional updates inside
    one transaction, so concurrent cancels of the same booking release the
    seats once.
    """
    booking = await db.get(Booking, booking_id)

    if booking is None:
        raise NotFoundError("Booking not found")

    if booking.user_id != user.id and not user.is_admin:
        raise PermissionDeniedError("Access denied")

    if booking.status == BookingStatus.CANCELED.value:
        raise ValidationError("Booking is already canceled")

    try:
        flipped = await db.execute(
            update(Booking)
            .where(
                Booking.id == booking_id,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
            .values(status=BookingStatus.CANCELED.value)
        )
        if flipped.rowcount != 1:
            await db.rollback()
            raise ValidationError("Booking is already canceled")

        released = await db.execute(
            update(Event)
            .where(
                Event.id == booking.event_id,
                Event.available_seats + booking.quantity <= Event.total_seats,
            )
            .values(available_seats=Event.available_seats + booking.quantity)
        )
        if released.rowcount != 1:
            await db.rollback()
            logger.error(
                "booking_cancel_release_failed",
                booking_id=booking_id,
                event_id=booking.event_id,
            )
            raise ConflictError("Could not release seats for this booking")

        await db.commit()

    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("booking_cancel_failed", booking_id=booking_id, error=str(e))
        raise StorageFailureError()

    await db.refresh(booking)
    booking_cancellations.inc()

    logger.info(
        "booking_canceled",
        booking_id=booking.id,
        user_id=booking.user_id,
        canceled_by=user.id,
        event_id=booking.event_id,
        seats_released=booking.quantity,
    )
    return booking


async def get_user_bookings(db: AsyncSession, user_id: int) -> list[Booking]:
    """Get all bookings for a user with the event populated."""
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.event))
        .execution_options(populate_existing=True)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def get_all_bookings(db: AsyncSession) -> list[Booking]:
    """Admin view: every booking with event and user populated."""
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.event), selectinload(Booking.user))
        .execution_options(populate_existing=True)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())
