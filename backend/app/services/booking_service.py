"""
Booking ledger: places and cancels bookings for a mixing and keeps the
waiting list moving.

CONCURRENCY STRATEGY: Per-event Compare-and-Set with Retry
==========================================================

Problem:
  Two people book the last 2 spots at the same time. Both read
  attending=8/10, both decide "attending", both insert. Result: 12/10.
  The same race on cancellation promotes one waiting booking twice.

Solution:
  Every ledger write for an event is guarded by the event's `version`:

  1. Read the event (and its version) and the bookings we decide on
  2. UPDATE events SET version = version + 1
     WHERE id = :event_id AND version = :read_version
  3. If rows_affected == 0, another write for this event committed in
     between -> roll back, re-read, decide again
  4. Otherwise write the booking change(s) and commit

  The UPDATE takes the event row lock, so concurrent writers for the same
  event queue up behind it and then fail the version check. Writes for
  different events never contend. Nothing is committed until the whole
  decision is written, so a caller that sees an error can retry the whole
  operation.

Storage-level backstops:
  - Partial unique index: one non-cancelled booking per requester per event
  - Unique idempotency key per requester per event
  A unique violation rolls back and re-runs the checks, which turn it into
  an idempotent replay or a DuplicateBookingError.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking, BookingStatus
from app.models.event import Event
from app.services.allocation import allocate, free_spots, select_promotions
from app.services.event_service import get_event, is_bookable
from app.services.interfaces.dispatcher import (
    BookingNotification,
    NotificationDispatcher,
    NotificationType,
)
from app.services.notification_service import publish_notifications
from app.services.cache_service import publish_booking_change
from app.core.config import get_settings
from app.core.exceptions import (
    AlreadyCancelledError,
    ConcurrencyConflictError,
    DuplicateBookingError,
    EventNotActiveError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from app.core.metrics import (
    ledger_latency,
    record_booking_attempt,
    record_cancellation,
    record_ledger_retry,
)
from app.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


@dataclass
class PlacementResult:
    booking: Booking
    replayed: bool = False


@dataclass
class CancellationResult:
    booking: Booking
    promoted: list[Booking] = field(default_factory=list)


def normalize_participants(names: Sequence[str], people_per_booking: int) -> list[str]:
    """Strip names and check the group size against the mixing's limit."""
    cleaned = [name.strip() for name in names]
    if not cleaned:
        raise ValidationError("At least one participant name is required")
    if any(not name for name in cleaned):
        raise ValidationError("Participant names cannot be blank")
    if len(cleaned) > people_per_booking:
        raise ValidationError(
            f"A booking can include at most {people_per_booking} participant(s), "
            f"got {len(cleaned)}"
        )
    return cleaned


async def _claim_event_version(db: AsyncSession, event_id: int, version: int) -> bool:
    """Compare-and-set on the event version. False means someone else wrote first."""
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.version == version)
        .values(version=Event.version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _load_booking(db: AsyncSession, booking_id: int) -> Optional[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _find_by_idempotency_key(
    db: AsyncSession, event_id: int, requester_id: str, idempotency_key: str
) -> Optional[Booking]:
    result = await db.execute(
        select(Booking)
        .where(
            Booking.event_id == event_id,
            Booking.requester_id == requester_id,
            Booking.idempotency_key == idempotency_key,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _find_active_booking(db: AsyncSession, event_id: int, requester_id: str) -> Optional[Booking]:
    result = await db.execute(
        select(Booking).where(
            Booking.event_id == event_id,
            Booking.requester_id == requester_id,
            Booking.status != BookingStatus.CANCELLED.value,
        )
    )
    return result.scalars().first()


async def _participant_sum(db: AsyncSession, event_id: int, status: BookingStatus) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(Booking.participant_count), 0)).where(
            Booking.event_id == event_id,
            Booking.status == status.value,
        )
    )
    return int(result.scalar())


async def _booking_count(db: AsyncSession, event_id: int, status: BookingStatus) -> int:
    result = await db.execute(
        select(func.count(Booking.id)).where(
            Booking.event_id == event_id,
            Booking.status == status.value,
        )
    )
    return int(result.scalar())


async def _waiting_queue(db: AsyncSession, event_id: int) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(
            Booking.event_id == event_id,
            Booking.status == BookingStatus.WAITING.value,
        )
        .order_by(Booking.booked_at.asc(), Booking.id.asc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _announce(
    dispatcher: Optional[NotificationDispatcher],
    notifications: list[BookingNotification],
) -> None:
    if dispatcher is None or not notifications:
        return
    await publish_notifications(dispatcher, notifications)


async def place_booking(
    db: AsyncSession,
    event_id: int,
    requester_id: str,
    participant_names: Sequence[str],
    idempotency_key: Optional[str] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> PlacementResult:
    """
    Book a group into a mixing.

    The whole group attends if it fits in the free spots, otherwise the whole
    group joins the waiting list. A repeated call with the same idempotency
    key returns the original booking untouched.
    """
    with ledger_latency.labels(operation="place").time():
        for attempt in range(1, settings.LEDGER_MAX_RETRIES + 1):
            event = await get_event(db, event_id)

            if idempotency_key:
                existing = await _find_by_idempotency_key(db, event_id, requester_id, idempotency_key)
                if existing:
                    logger.info(
                        "booking_replayed",
                        booking_id=existing.id,
                        event_id=event_id,
                        requester_id=requester_id,
                    )
                    record_booking_attempt("replayed")
                    return PlacementResult(booking=existing, replayed=True)

            try:
                names = normalize_participants(participant_names, event.people_per_booking)
                if not is_bookable(event):
                    raise EventNotActiveError(
                        f"Event {event_id} is {event.status}, bookings are closed"
                    )
                if await _find_active_booking(db, event_id, requester_id):
                    raise DuplicateBookingError("You already have a booking for this event")
            except (ValidationError, EventNotActiveError, DuplicateBookingError):
                record_booking_attempt("rejected")
                raise

            attending = await _participant_sum(db, event_id, BookingStatus.ATTENDING)
            allocation = allocate(event.capacity, attending, len(names))

            if not await _claim_event_version(db, event_id, event.version):
                logger.info(
                    "ledger_version_conflict",
                    operation="place",
                    event_id=event_id,
                    attempt=attempt,
                )
                record_ledger_retry("place")
                await db.rollback()
                continue

            booking = Booking(
                event_id=event_id,
                requester_id=requester_id,
                participant_names=names,
                participant_count=len(names),
                status=allocation.status.value,
                idempotency_key=idempotency_key,
            )
            db.add(booking)
            try:
                await db.flush()
            except IntegrityError:
                # Concurrent submission by the same requester won the insert
                logger.info(
                    "booking_insert_conflict",
                    event_id=event_id,
                    requester_id=requester_id,
                    attempt=attempt,
                )
                record_ledger_retry("place")
                await db.rollback()
                continue

            await db.commit()
            await db.refresh(booking)

            logger.info(
                "booking_placed",
                booking_id=booking.id,
                event_id=event_id,
                requester_id=requester_id,
                participants=booking.participant_count,
                status=booking.status,
                available_before=allocation.available_before,
                attempt=attempt,
            )
            record_booking_attempt(booking.status)

            notification_type = (
                NotificationType.CONFIRMED
                if booking.status == BookingStatus.ATTENDING.value
                else NotificationType.WAITING
            )
            await _announce(dispatcher, [
                BookingNotification(
                    type=notification_type,
                    user_id=requester_id,
                    event_id=event_id,
                    booking_id=booking.id,
                    event_title=event.title,
                )
            ])
            await publish_booking_change(event_id, booking.id, booking.status)
            return PlacementResult(booking=booking)

    logger.warning("booking_retries_exhausted", event_id=event_id, requester_id=requester_id)
    raise ConcurrencyConflictError("Booking failed due to high demand. Please try again.")


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    acting_user_id: str,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> CancellationResult:
    """
    Cancel a booking as its requester or as the mixing's organizer.

    Cancelling an attending booking frees its spots and promotes waiting
    bookings first-fit in arrival order. Cancelling a waiting booking
    touches nothing else.
    """
    with ledger_latency.labels(operation="cancel").time():
        for attempt in range(1, settings.LEDGER_MAX_RETRIES + 1):
            booking = await _load_booking(db, booking_id)
            if not booking:
                raise NotFoundError(f"Booking {booking_id} not found")

            event = await get_event(db, booking.event_id)

            if acting_user_id not in (booking.requester_id, event.organizer_id):
                raise ForbiddenError("Only the requester or the organizer can cancel this booking")

            if booking.status == BookingStatus.CANCELLED.value:
                raise AlreadyCancelledError("Booking is already cancelled")

            if not await _claim_event_version(db, event.id, event.version):
                logger.info(
                    "ledger_version_conflict",
                    operation="cancel",
                    event_id=event.id,
                    attempt=attempt,
                )
                record_ledger_retry("cancel")
                await db.rollback()
                continue

            # The booking was read before the event version, so read it again
            # under the claim; a cancellation committed in between shows up here.
            booking = await _load_booking(db, booking_id)
            if booking.status == BookingStatus.CANCELLED.value:
                await db.rollback()
                raise AlreadyCancelledError("Booking is already cancelled")

            previous_status = booking.status
            booking.status = BookingStatus.CANCELLED.value
            booking.cancelled_at = func.now()

            promoted: list[Booking] = []
            if previous_status == BookingStatus.ATTENDING.value:
                await db.flush()
                attending = await _participant_sum(db, event.id, BookingStatus.ATTENDING)
                waiting = await _waiting_queue(db, event.id)
                promoted = select_promotions(waiting, free_spots(event.capacity, attending))
                for waiting_booking in promoted:
                    waiting_booking.status = BookingStatus.ATTENDING.value

            await db.commit()
            await db.refresh(booking)
            for promoted_booking in promoted:
                await db.refresh(promoted_booking)

            logger.info(
                "booking_cancelled",
                booking_id=booking.id,
                event_id=event.id,
                acting_user_id=acting_user_id,
                previous_status=previous_status,
                spots_released=booking.participant_count if previous_status == BookingStatus.ATTENDING.value else 0,
                promoted=[b.id for b in promoted],
            )
            for promoted_booking in promoted:
                logger.info(
                    "booking_promoted",
                    booking_id=promoted_booking.id,
                    event_id=event.id,
                    participants=promoted_booking.participant_count,
                )
            record_cancellation(previous_status, len(promoted))

            await _announce(dispatcher, [
                BookingNotification(
                    type=NotificationType.PROMOTED,
                    user_id=b.requester_id,
                    event_id=event.id,
                    booking_id=b.id,
                    event_title=event.title,
                )
                for b in promoted
            ])
            await publish_booking_change(
                event.id, booking.id, booking.status, promoted=[b.id for b in promoted]
            )
            return CancellationResult(booking=booking, promoted=promoted)

    logger.warning("cancellation_retries_exhausted", booking_id=booking_id)
    raise ConcurrencyConflictError("Cancellation failed due to high demand. Please try again.")


async def get_booking(db: AsyncSession, booking_id: int) -> Booking:
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


# Derived queries. Always read from the bookings table, never cached.

async def attending_count(db: AsyncSession, event_id: int) -> int:
    await get_event(db, event_id)
    return await _participant_sum(db, event_id, BookingStatus.ATTENDING)


async def waiting_count(db: AsyncSession, event_id: int) -> int:
    """Number of bookings on the waiting list (groups, not people)."""
    await get_event(db, event_id)
    return await _booking_count(db, event_id, BookingStatus.WAITING)


async def available_spots(db: AsyncSession, event_id: int) -> int:
    event = await get_event(db, event_id)
    attending = await _participant_sum(db, event_id, BookingStatus.ATTENDING)
    return free_spots(event.capacity, attending)


async def get_availability(db: AsyncSession, event_id: int) -> dict:
    event = await get_event(db, event_id)
    attending = await _participant_sum(db, event_id, BookingStatus.ATTENDING)
    waiting = await _booking_count(db, event_id, BookingStatus.WAITING)
    waiting_people = await _participant_sum(db, event_id, BookingStatus.WAITING)
    return {
        "event_id": event.id,
        "capacity": event.capacity,
        "reserve_spots": event.reserve_spots,
        "attending_count": attending,
        "waiting_count": waiting,
        "waiting_participants": waiting_people,
        "available_spots": free_spots(event.capacity, attending),
        "bookable": is_bookable(event),
    }


async def list_event_bookings(db: AsyncSession, event_id: int) -> tuple[list[Booking], list[Booking]]:
    """Attending and waiting bookings, each in arrival order."""
    await get_event(db, event_id)
    result = await db.execute(
        select(Booking)
        .where(
            Booking.event_id == event_id,
            Booking.status != BookingStatus.CANCELLED.value,
        )
        .order_by(Booking.booked_at.asc(), Booking.id.asc())
    )
    bookings = list(result.scalars().all())
    attending = [b for b in bookings if b.status == BookingStatus.ATTENDING.value]
    waiting = [b for b in bookings if b.status == BookingStatus.WAITING.value]
    return attending, waiting


async def list_user_bookings(db: AsyncSession, user_id: str) -> list[Booking]:
    """Get all bookings for a user, newest first."""
    result = await db.execute(
        select(Booking)
        .where(Booking.requester_id == user_id)
        .order_by(Booking.booked_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())
