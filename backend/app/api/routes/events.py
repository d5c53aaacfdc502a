"""
Event endpoints: mixing records, availability and booking placement.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.event import EventStatus
from app.schemas.event import (
    AvailabilityResponse, EventCreate, EventListResponse, EventResponse, EventStatusUpdate,
)
from app.schemas.booking import BookingCreate, BookingResponse, EventBookingsResponse
from app.services.event_service import (
    change_event_status, create_event, get_event, list_events, release_due_events,
)
from app.services.booking_service import get_availability, list_event_bookings, place_booking
from app.services.cache_service import get_cached_events, set_cached_events, invalidate_event_cache
from app.services.dispatcher_factory import get_dispatcher
from app.services.interfaces.dispatcher import NotificationDispatcher
from app.core.security import get_current_user_id
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a mixing. The acting user becomes its organizer."""
    event = await create_event(db, event_data, user_id)
    await invalidate_event_cache()
    return event


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: Optional[EventStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    """
    List mixings with pagination.
    Results are cached in Redis; availability is not part of this payload.
    """
    status_key = status_filter.value if status_filter else None
    cached = await get_cached_events(page, page_size, status_key)
    if cached:
        logger.info("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListResponse(**cached)

    events, total = await list_events(db, page, page_size, status_filter)

    response_data = {
        "events": [EventResponse.model_validate(e).model_dump() for e in events],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached_events(page, page_size, status_key, response_data)

    return EventListResponse(**response_data)


@router.post("/release-due", response_model=list[int])
async def release_due_events_endpoint(db: AsyncSession = Depends(get_db)):
    """Open booking on scheduled mixings whose release time has passed."""
    released = await release_due_events(db)
    if released:
        await invalidate_event_cache()
    return released


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(event_id: int, db: AsyncSession = Depends(get_db)):
    return await get_event(db, event_id)


@router.post("/{event_id}/status", response_model=EventResponse)
async def change_event_status_endpoint(
    event_id: int,
    update: EventStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Organizer-only lifecycle transition (activate, complete, cancel...)."""
    event = await change_event_status(db, event_id, update.status, user_id)
    await invalidate_event_cache()
    return event


@router.get("/{event_id}/availability", response_model=AvailabilityResponse)
async def get_availability_endpoint(event_id: int, db: AsyncSession = Depends(get_db)):
    """Live attending/waiting counts. Never cached."""
    return AvailabilityResponse(**await get_availability(db, event_id))


@router.get("/{event_id}/bookings", response_model=EventBookingsResponse)
async def list_event_bookings_endpoint(event_id: int, db: AsyncSession = Depends(get_db)):
    """Participants list and waiting list, both in arrival order."""
    attending, waiting = await list_event_bookings(db, event_id)
    return EventBookingsResponse(
        event_id=event_id,
        attending=[BookingResponse.model_validate(b) for b in attending],
        waiting=[
            BookingResponse.model_validate(b).model_copy(update={"waiting_position": position})
            for position, b in enumerate(waiting, start=1)
        ],
    )


@router.post(
    "/{event_id}/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def place_booking_endpoint(
    event_id: int,
    booking_data: BookingCreate,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=128),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Book the listed participants into a mixing.

    The group attends if it fits in the free spots, otherwise it joins the
    waiting list as a whole. Resubmitting with the same Idempotency-Key
    returns the original booking.
    """
    result = await place_booking(
        db,
        event_id,
        user_id,
        booking_data.participant_names,
        idempotency_key=idempotency_key,
        dispatcher=dispatcher,
    )
    return result.booking
