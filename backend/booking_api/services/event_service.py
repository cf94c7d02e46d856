"""
Event service handling CRUD operations.
"""

from datetime import datetime, timezone
from sqlalchemy import delete, select, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.exceptions import ConflictError, NotFoundError, ValidationError
from booking_api.models.booking import Booking, BookingStatus
from booking_api.models.event import Event
from booking_api.schemas.event import EventCreate, EventUpdate
from booking_api.core.logging import get_logger

logger = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _ensure_future(value: datetime) -> None:
    if _as_utc(value) <= datetime.now(timezone.utc):
        raise ValidationError(
            "Event date must be in the future",
            errors=[{"field": "date", "message": "Event date must be in the future"}],
        )


async def create_event(db: AsyncSession, event_data: EventCreate, organizer_id: int) -> Event:
    """Create a new event with full seat availability."""
    _ensure_future(event_data.date)

    event = Event(
        title=event_data.title.strip(),
        description=event_data.description,
        date=_as_utc(event_data.date),
        location=event_data.location,
        price=event_data.price,
        total_seats=event_data.total_seats,
        available_seats=event_data.total_seats,
        organizer_id=organizer_id,
    )
    db.add(event)
    await db.commit()
    await db.refresh(event)

    logger.info("event_created", event_id=event.id, title=event.title, seats=event.total_seats)
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    """Get a single event by ID with fresh seat counts."""
    result = await db.execute(
        select(Event)
        .where(Event.id == event_id)
        .execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()

    if not event:
        raise NotFoundError("Event not found")
    return event


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    upcoming_only: bool = True,
) -> tuple[list[Event], int]:
    """List events with pagination, soonest first. Uses the ix_events_date index."""
    query = select(Event)

    if upcoming_only:
        query = query.where(Event.date >= datetime.now(timezone.utc))

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    events_query = (
        query
        .order_by(Event.date.asc(), Event.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(events_query)
    events = list(result.scalars().all())

    return events, total


async def update_event(db: AsyncSession, event_id: int, event_data: EventUpdate) -> Event:
    """
    Partially update an event.

    A total_seats change shifts available_seats by the same delta in one
    conditional UPDATE, so seats already booked are never given away and
    the update cannot race with concurrent bookings.
    """
    event = await get_event(db, event_id)
    changes = event_data.model_dump(exclude_unset=True, exclude={"total_seats"})

    if "date" in changes:
        if changes["date"] is None:
            raise ValidationError("Event date cannot be empty")
        _ensure_future(changes["date"])
        changes["date"] = _as_utc(changes["date"])
    if "title" in changes and changes["title"] is None:
        raise ValidationError("Event title cannot be empty")
    if "price" in changes and changes["price"] is None:
        raise ValidationError("Event price cannot be empty")

    new_total = event_data.total_seats
    if new_total is not None and new_total != event.total_seats:
        delta = new_total - event.total_seats
        resized = await db.execute(
            update(Event)
            .where(
                Event.id == event_id,
                Event.available_seats + delta >= 0,
            )
            .values(
                total_seats=new_total,
                available_seats=Event.available_seats + delta,
            )
        )
        if resized.rowcount != 1:
            await db.rollback()
            logger.warning("event_resize_rejected", event_id=event_id, requested_total=new_total)
            raise ConflictError("Cannot reduce total seats below the number already booked")

    for field, value in changes.items():
        setattr(event, field, value)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Event update violates seat constraints")

    event = await get_event(db, event_id)
    logger.info("event_updated", event_id=event_id, fields=sorted(event_data.model_fields_set))
    return event


async def delete_event(db: AsyncSession, event_id: int) -> None:
    """Delete an event. Refused while confirmed bookings still hold seats."""
    event = await get_event(db, event_id)

    confirmed = (
        await db.execute(
            select(func.count(Booking.id)).where(
                Booking.event_id == event_id,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
        )
    ).scalar()
    if confirmed:
        raise ConflictError("Event has confirmed bookings; cancel them first")

    try:
        await db.execute(delete(Booking).where(Booking.event_id == event_id))
        await db.execute(delete(Event).where(Event.id == event.id))
        await db.commit()
    except IntegrityError:
        # A booking landed between the count and the delete
        await db.rollback()
        logger.warning("event_delete_conflict", event_id=event_id)
        raise ConflictError("Event has confirmed bookings; cancel them first")

    logger.info("event_deleted", event_id=event_id)
