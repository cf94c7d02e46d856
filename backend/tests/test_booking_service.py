"""
Service-level tests for the booking transaction: seat arithmetic, input
rejection, rollback on insert failure and races for the last seat.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from booking_api.core.exceptions import (
    ConflictError,
    InsufficientInventoryError,
    NotFoundError,
    StorageFailureError,
    ValidationError,
)
from booking_api.models import Booking, Event
from booking_api.services.booking_service import create_booking


async def _available_seats(database, event_id: int) -> int:
    async with database.session_factory() as session:
        result = await session.execute(select(Event.available_seats).where(Event.id == event_id))
        return result.scalar_one()


async def _booking_count(database, event_id: int) -> int:
    async with database.session_factory() as session:
        result = await session.execute(select(Booking).where(Booking.event_id == event_id))
        return len(result.scalars().all())


async def _try_book(database, user_id: int, event_id: int, quantity: int):
    """Book in a session of its own; return the booking or the raised error."""
    async with database.session_factory() as session:
        try:
            return await create_booking(session, user_id, event_id, quantity)
        except InsufficientInventoryError as e:
            return e


@pytest.mark.asyncio
async def test_booking_defaults(db_session, test_user, test_event):
    booking = await create_booking(db_session, test_user.id, test_event.id, 2)

    assert booking.id is not None
    assert booking.quantity == 2
    assert booking.status == "confirmed"
    assert booking.payment_status == "pending"
    assert booking.user_id == test_user.id
    assert booking.event_id == test_event.id


@pytest.mark.asyncio
async def test_booking_whole_inventory_then_one_more(database, db_session, test_user, test_event):
    """Booking all N seats leaves 0; the next single seat is refused."""
    await create_booking(db_session, test_user.id, test_event.id, 10)
    assert await _available_seats(database, test_event.id) == 0

    with pytest.raises(InsufficientInventoryError) as exc_info:
        await create_booking(db_session, test_user.id, test_event.id, 1)

    assert exc_info.value.message == "Not enough seats available"
    assert exc_info.value.status_code == 400
    assert await _available_seats(database, test_event.id) == 0


@pytest.mark.asyncio
async def test_ten_seat_scenario(database, db_session, test_user, other_user, test_event):
    await create_booking(db_session, test_user.id, test_event.id, 3)
    assert await _available_seats(database, test_event.id) == 7

    with pytest.raises(InsufficientInventoryError):
        await create_booking(db_session, other_user.id, test_event.id, 8)
    assert await _available_seats(database, test_event.id) == 7

    await create_booking(db_session, other_user.id, test_event.id, 7)
    assert await _available_seats(database, test_event.id) == 0
    assert await _booking_count(database, test_event.id) == 2


@pytest.mark.asyncio
async def test_unknown_event_is_not_found(db_session, test_user):
    with pytest.raises(NotFoundError) as exc_info:
        await create_booking(db_session, test_user.id, 99999, 1)
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_sold_out_event_is_insufficient_not_missing(db_session, test_user, sold_out_event):
    with pytest.raises(InsufficientInventoryError):
        await create_booking(db_session, test_user.id, sold_out_event.id, 1)


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity", [0, -1, -50, 51, 1000])
async def test_out_of_range_quantity_never_reaches_storage(quantity):
    db = AsyncMock()

    with pytest.raises(ValidationError) as exc_info:
        await create_booking(db, user_id=1, event_id=1, quantity=quantity)

    assert exc_info.value.errors[0]["field"] == "quantity"
    db.execute.assert_not_called()
    db.commit.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("event_id", [None, 0, -3])
async def test_missing_event_id_never_reaches_storage(event_id):
    db = AsyncMock()

    with pytest.raises(ValidationError):
        await create_booking(db, user_id=1, event_id=event_id, quantity=1)

    db.execute.assert_not_called()


@pytest.mark.asyncio
async def test_max_quantity_is_accepted(db_session, test_user, admin_user):
    event = Event(
        title="Stadium",
        date=datetime.now(timezone.utc) + timedelta(days=5),
        price=0,
        total_seats=100,
        available_seats=100,
        organizer_id=admin_user.id,
    )
    db_session.add(event)
    await db_session.commit()

    booking = await create_booking(db_session, test_user.id, event.id, 50)
    assert booking.quantity == 50


@pytest.mark.asyncio
async def test_insert_failure_rolls_back_seat_decrement(
    database, db_session, test_user, test_event, monkeypatch
):
    """If the booking row cannot be written, the seats come back."""
    monkeypatch.setattr(
        db_session,
        "flush",
        AsyncMock(side_effect=OperationalError("INSERT INTO bookings", {}, Exception("disk I/O error"))),
    )

    with pytest.raises(StorageFailureError):
        await create_booking(db_session, test_user.id, test_event.id, 4)

    assert await _available_seats(database, test_event.id) == 10
    assert await _booking_count(database, test_event.id) == 0


@pytest.mark.asyncio
async def test_repeated_idempotency_key_reserves_once(database, db_session, test_user, test_event):
    first = await create_booking(db_session, test_user.id, test_event.id, 3, idempotency_key="retry-1")
    second = await create_booking(db_session, test_user.id, test_event.id, 3, idempotency_key="retry-1")

    assert second.id == first.id
    assert await _available_seats(database, test_event.id) == 7
    assert await _booking_count(database, test_event.id) == 1


@pytest.mark.asyncio
async def test_same_key_different_users_are_independent(database, db_session, test_user, other_user, test_event):
    a = await create_booking(db_session, test_user.id, test_event.id, 1, idempotency_key="k")
    b = await create_booking(db_session, other_user.id, test_event.id, 1, idempotency_key="k")

    assert a.id != b.id
    assert await _available_seats(database, test_event.id) == 8


@pytest.mark.asyncio
async def test_race_for_last_seat(database, test_user, other_user, last_seat_event):
    """Two concurrent single-seat requests: exactly one wins."""
    results = await asyncio.gather(
        _try_book(database, test_user.id, last_seat_event.id, 1),
        _try_book(database, other_user.id, last_seat_event.id, 1),
    )

    successes = [r for r in results if isinstance(r, Booking)]
    failures = [r for r in results if isinstance(r, InsufficientInventoryError)]

    assert len(successes) == 1
    assert len(failures) == 1
    assert await _available_seats(database, last_seat_event.id) == 0
    assert await _booking_count(database, last_seat_event.id) == 1


@pytest.mark.asyncio
async def test_many_concurrent_requests_never_oversell(database, test_user, test_event):
    """Twelve requests for 2 seats each against 10 seats: five win, none oversell."""
    results = await asyncio.gather(
        *(_try_book(database, test_user.id, test_event.id, 2) for _ in range(12))
    )

    successes = [r for r in results if isinstance(r, Booking)]
    failures = [r for r in results if isinstance(r, InsufficientInventoryError)]

    assert len(successes) == 5
    assert len(failures) == 7
    available = await _available_seats(database, test_event.id)
    assert available == 0
    assert 0 <= available <= test_event.total_seats


@pytest.mark.asyncio
async def test_key_collision_with_different_quantity_is_conflict(database, db_session, test_user, test_event):
    """The unique-key collision path refuses a mismatched retry and gives its seats back."""
    await create_booking(db_session, test_user.id, test_event.id, 3, idempotency_key="retry-2")

    with pytest.raises(ConflictError):
        await create_booking(db_session, test_user.id, test_event.id, 4, idempotency_key="retry-2")

    assert await _available_seats(database, test_event.id) == 7
    assert await _booking_count(database, test_event.id) == 1
