"""
Event service: CRUD glue around the mixing record plus the lifecycle gate.

Only `is_bookable` matters to the booking ledger. Everything else here is
organizer-facing record keeping.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.event import Event, EventStatus
from app.schemas.event import EventCreate
from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.core.logging import get_logger

logger = get_logger(__name__)

ALLOWED_TRANSITIONS = {
    EventStatus.DRAFT: {EventStatus.SCHEDULED, EventStatus.ACTIVE, EventStatus.CANCELLED},
    EventStatus.SCHEDULED: {EventStatus.ACTIVE, EventStatus.CANCELLED},
    EventStatus.ACTIVE: {EventStatus.COMPLETED, EventStatus.CANCELLED},
    EventStatus.COMPLETED: set(),
    EventStatus.CANCELLED: set(),
}


def is_bookable(event: Event) -> bool:
    return event.status == EventStatus.ACTIVE.value


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def initial_status(event_data: EventCreate, now: Optional[datetime] = None) -> EventStatus:
    if event_data.draft:
        return EventStatus.DRAFT
    now = now or datetime.now(timezone.utc)
    if event_data.release_at and _as_utc(event_data.release_at) > now:
        return EventStatus.SCHEDULED
    return EventStatus.ACTIVE


async def create_event(db: AsyncSession, event_data: EventCreate, organizer_id: str) -> Event:
    """Create a mixing; released immediately unless a future release time is given."""
    status = initial_status(event_data)

    event = Event(
        title=event_data.title,
        description=event_data.description,
        location=event_data.location,
        event_date=event_data.event_date,
        organizer_id=organizer_id,
        capacity=event_data.capacity,
        reserve_spots=event_data.reserve_spots,
        people_per_booking=event_data.people_per_booking,
        rules=dict(event_data.rules),
        status=status.value,
        release_at=event_data.release_at,
    )
    db.add(event)
    await db.commit()
    await db.refresh(event)

    logger.info(
        "event_created",
        event_id=event.id,
        title=event.title,
        capacity=event.capacity,
        status=event.status,
    )
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    """Get a single event by ID."""
    result = await db.execute(
        select(Event)
        .where(Event.id == event_id)
        .execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()

    if not event:
        raise NotFoundError(f"Event {event_id} not found")
    return event


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    status: Optional[EventStatus] = None,
) -> tuple[list[Event], int]:
    """List events with pagination, newest first."""
    query = select(Event)

    if status is not None:
        query = query.where(Event.status == status.value)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    events_query = (
        query
        .order_by(Event.created_at.desc(), Event.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(events_query)
    events = list(result.scalars().all())

    return events, total


async def change_event_status(
    db: AsyncSession,
    event_id: int,
    new_status: EventStatus,
    acting_user_id: str,
) -> Event:
    """Organizer-triggered lifecycle transition."""
    event = await get_event(db, event_id)

    if event.organizer_id != acting_user_id:
        raise ForbiddenError("Only the organizer can change this mixing")

    current = EventStatus(event.status)
    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise ValidationError(
            f"Cannot move mixing from {current.value} to {new_status.value}"
        )

    # Bump the version so in-flight ledger writes re-check bookability
    event.status = new_status.value
    event.version = event.version + 1
    await db.commit()
    await db.refresh(event)

    logger.info(
        "event_status_changed",
        event_id=event.id,
        from_status=current.value,
        to_status=new_status.value,
    )
    return event


async def release_due_events(db: AsyncSession, now: Optional[datetime] = None) -> list[int]:
    """Activate scheduled mixings whose release time has passed."""
    now = now or datetime.now(timezone.utc)

    result = await db.execute(
        select(Event.id).where(
            Event.status == EventStatus.SCHEDULED.value,
            Event.release_at.is_not(None),
            Event.release_at <= now,
        )
    )
    event_ids = list(result.scalars().all())
    if not event_ids:
        return []

    await db.execute(
        update(Event)
        .where(Event.id.in_(event_ids), Event.status == EventStatus.SCHEDULED.value)
        .values(status=EventStatus.ACTIVE.value, version=Event.version + 1)
    )
    await db.commit()

    logger.info("events_released", event_ids=event_ids)
    return event_ids
