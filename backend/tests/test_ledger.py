"""
Tests for the booking ledger service: allocation, cancellation-driven
promotion, idempotency and the error taxonomy.
"""

import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AlreadyCancelledError,
    ConcurrencyConflictError,
    DuplicateBookingError,
    EventNotActiveError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from app.models.booking import Booking, BookingStatus
from app.models.event import EventStatus
from app.services import booking_service
from app.services.booking_service import (
    attending_count,
    available_spots,
    cancel_booking,
    get_availability,
    list_event_bookings,
    place_booking,
    waiting_count,
)
from app.services.interfaces.dispatcher import NotificationType

from conftest import ORGANIZER_ID, FailingDispatcher

ATTENDING = BookingStatus.ATTENDING.value
WAITING = BookingStatus.WAITING.value
CANCELLED = BookingStatus.CANCELLED.value


async def _status_of(db: AsyncSession, booking_id: int) -> str:
    result = await db.execute(
        select(Booking.status).where(Booking.id == booking_id)
    )
    return result.scalar_one()


@pytest.mark.asyncio
async def test_scenario_pairs_fill_event_and_single_is_promoted(db_session, event_factory, dispatcher):
    """capacity=4, peoplePerBooking=2: A(2), B(2) attend, C(1) waits, cancelling A promotes C."""
    event = await event_factory(capacity=4, people_per_booking=2)

    a = await place_booking(db_session, event.id, "user-a", ["Ana", "Ben"], dispatcher=dispatcher)
    assert a.booking.status == ATTENDING
    assert await available_spots(db_session, event.id) == 2

    with pytest.raises(ValidationError):
        await place_booking(db_session, event.id, "user-b", ["Cy", "Di", "Ed"], dispatcher=dispatcher)

    b = await place_booking(db_session, event.id, "user-b", ["Cy", "Di"], dispatcher=dispatcher)
    assert b.booking.status == ATTENDING
    assert await available_spots(db_session, event.id) == 0

    c = await place_booking(db_session, event.id, "user-c", ["Flo"], dispatcher=dispatcher)
    assert c.booking.status == WAITING
    assert await available_spots(db_session, event.id) == 0

    result = await cancel_booking(db_session, a.booking.id, ORGANIZER_ID, dispatcher=dispatcher)
    assert result.booking.status == CANCELLED
    assert result.booking.cancelled_at is not None
    assert [p.id for p in result.promoted] == [c.booking.id]
    assert await _status_of(db_session, c.booking.id) == ATTENDING
    assert await available_spots(db_session, event.id) == 1

    assert [n.type for n in dispatcher.sent] == [
        NotificationType.CONFIRMED,
        NotificationType.CONFIRMED,
        NotificationType.WAITING,
        NotificationType.PROMOTED,
    ]
    assert dispatcher.sent[-1].user_id == "user-c"


@pytest.mark.asyncio
async def test_scenario_large_group_promoted_when_enough_spots_free(db_session, event_factory):
    """capacity=5: A(2) attends, B(4) waits, C(1) attends, cancelling A promotes B."""
    event = await event_factory(capacity=5, people_per_booking=4)

    a = await place_booking(db_session, event.id, "user-a", ["1", "2"])
    b = await place_booking(db_session, event.id, "user-b", ["1", "2", "3", "4"])
    c = await place_booking(db_session, event.id, "user-c", ["1"])
    assert (a.booking.status, b.booking.status, c.booking.status) == (ATTENDING, WAITING, ATTENDING)
    assert await available_spots(db_session, event.id) == 2

    result = await cancel_booking(db_session, a.booking.id, "user-a")

    assert [p.id for p in result.promoted] == [b.booking.id]
    assert await available_spots(db_session, event.id) == 0
    assert await attending_count(db_session, event.id) == 5
    assert await waiting_count(db_session, event.id) == 0


@pytest.mark.asyncio
async def test_promotion_skips_group_that_does_not_fit(db_session, event_factory):
    event = await event_factory(capacity=5, people_per_booking=3)

    await place_booking(db_session, event.id, "user-a", ["1", "2", "3"])
    b = await place_booking(db_session, event.id, "user-b", ["1", "2"])
    c = await place_booking(db_session, event.id, "user-c", ["1", "2", "3"])
    d = await place_booking(db_session, event.id, "user-d", ["1"])
    assert (c.booking.status, d.booking.status) == (WAITING, WAITING)

    result = await cancel_booking(db_session, b.booking.id, "user-b")

    assert [p.id for p in result.promoted] == [d.booking.id]
    assert await _status_of(db_session, c.booking.id) == WAITING
    assert await available_spots(db_session, event.id) == 1


@pytest.mark.asyncio
async def test_cancelling_waiting_booking_changes_nothing_else(db_session, event_factory, dispatcher):
    event = await event_factory(capacity=2, people_per_booking=2)

    a = await place_booking(db_session, event.id, "user-a", ["1"])
    b = await place_booking(db_session, event.id, "user-b", ["1", "2"])
    c = await place_booking(db_session, event.id, "user-c", ["1"])
    assert (a.booking.status, b.booking.status, c.booking.status) == (ATTENDING, WAITING, ATTENDING)

    result = await cancel_booking(db_session, b.booking.id, "user-b", dispatcher=dispatcher)

    assert result.promoted == []
    assert dispatcher.sent == []
    assert await _status_of(db_session, a.booking.id) == ATTENDING
    assert await _status_of(db_session, c.booking.id) == ATTENDING


@pytest.mark.asyncio
async def test_duplicate_booking_rejected(db_session, test_event):
    await place_booking(db_session, test_event.id, "user-a", ["Ana"])

    with pytest.raises(DuplicateBookingError):
        await place_booking(db_session, test_event.id, "user-a", ["Ana"])


@pytest.mark.asyncio
async def test_waiting_booking_also_blocks_second_booking(db_session, event_factory):
    event = await event_factory(capacity=1, people_per_booking=2)
    await place_booking(db_session, event.id, "user-a", ["1"])
    waiting = await place_booking(db_session, event.id, "user-b", ["1", "2"])
    assert waiting.booking.status == WAITING

    with pytest.raises(DuplicateBookingError):
        await place_booking(db_session, event.id, "user-b", ["1"])


@pytest.mark.asyncio
async def test_rebooking_allowed_after_cancellation(db_session, test_event):
    first = await place_booking(db_session, test_event.id, "user-a", ["Ana"])
    await cancel_booking(db_session, first.booking.id, "user-a")

    second = await place_booking(db_session, test_event.id, "user-a", ["Ana", "Ben"])

    assert second.booking.id != first.booking.id
    assert second.booking.status == ATTENDING


@pytest.mark.asyncio
async def test_idempotent_retry_creates_one_booking(db_session, test_event, dispatcher):
    first = await place_booking(
        db_session, test_event.id, "user-a", ["Ana"], idempotency_key="req-1", dispatcher=dispatcher
    )
    retry = await place_booking(
        db_session, test_event.id, "user-a", ["Ana"], idempotency_key="req-1", dispatcher=dispatcher
    )

    assert retry.replayed is True
    assert retry.booking.id == first.booking.id
    count = await db_session.execute(
        select(func.count(Booking.id)).where(Booking.event_id == test_event.id)
    )
    assert count.scalar() == 1
    assert len(dispatcher.sent) == 1


@pytest.mark.asyncio
async def test_idempotent_retry_after_event_closed_still_returns_booking(db_session, test_event):
    first = await place_booking(db_session, test_event.id, "user-a", ["Ana"], idempotency_key="k")
    test_event.status = EventStatus.COMPLETED.value
    await db_session.commit()

    retry = await place_booking(db_session, test_event.id, "user-a", ["Ana"], idempotency_key="k")

    assert retry.replayed is True
    assert retry.booking.id == first.booking.id


@pytest.mark.asyncio
async def test_booking_closed_event_rejected(db_session, draft_event):
    with pytest.raises(EventNotActiveError):
        await place_booking(db_session, draft_event.id, "user-a", ["Ana"])


@pytest.mark.asyncio
async def test_booking_unknown_event(db_session):
    with pytest.raises(NotFoundError):
        await place_booking(db_session, 9999, "user-a", ["Ana"])


@pytest.mark.asyncio
@pytest.mark.parametrize("names", [[], ["Ana", "   "], [""], ["A", "B", "C"]])
async def test_invalid_participant_lists_rejected(db_session, test_event, names):
    with pytest.raises(ValidationError):
        await place_booking(db_session, test_event.id, "user-a", names)


@pytest.mark.asyncio
async def test_participant_names_are_trimmed(db_session, test_event):
    result = await place_booking(db_session, test_event.id, "user-a", ["  Ana ", "Ben  "])
    assert result.booking.participant_names == ["Ana", "Ben"]
    assert result.booking.participant_count == 2


@pytest.mark.asyncio
async def test_cancel_unknown_booking(db_session):
    with pytest.raises(NotFoundError):
        await cancel_booking(db_session, 9999, "user-a")


@pytest.mark.asyncio
async def test_cancel_by_stranger_forbidden(db_session, test_event):
    placed = await place_booking(db_session, test_event.id, "user-a", ["Ana"])

    with pytest.raises(ForbiddenError):
        await cancel_booking(db_session, placed.booking.id, "someone-else")


@pytest.mark.asyncio
async def test_cancel_twice(db_session, test_event):
    placed = await place_booking(db_session, test_event.id, "user-a", ["Ana"])
    await cancel_booking(db_session, placed.booking.id, "user-a")

    with pytest.raises(AlreadyCancelledError):
        await cancel_booking(db_session, placed.booking.id, "user-a")


@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_booking(db_session, test_event):
    result = await place_booking(
        db_session, test_event.id, "user-a", ["Ana"], dispatcher=FailingDispatcher()
    )

    assert result.booking.status == ATTENDING
    assert await _status_of(db_session, result.booking.id) == ATTENDING


@pytest.mark.asyncio
async def test_version_conflict_is_retried(db_session, test_event, monkeypatch):
    real_claim = booking_service._claim_event_version
    calls = []

    async def flaky_claim(db, event_id, version):
        calls.append(version)
        if len(calls) == 1:
            return False
        return await real_claim(db, event_id, version)

    monkeypatch.setattr(booking_service, "_claim_event_version", flaky_claim)

    result = await place_booking(db_session, test_event.id, "user-a", ["Ana"])

    assert result.booking.status == ATTENDING
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_retries_exhausted_commits_nothing(db_session, test_event, monkeypatch):
    async def always_conflict(db, event_id, version):
        return False

    monkeypatch.setattr(booking_service, "_claim_event_version", always_conflict)

    with pytest.raises(ConcurrencyConflictError):
        await place_booking(db_session, test_event.id, "user-a", ["Ana"])

    count = await db_session.execute(select(func.count(Booking.id)))
    assert count.scalar() == 0


@pytest.mark.asyncio
async def test_stale_version_cannot_be_claimed(db_session, test_event):
    """Two writers that read the same version: only the first claim wins."""
    version = test_event.version

    assert await booking_service._claim_event_version(db_session, test_event.id, version) is True
    assert await booking_service._claim_event_version(db_session, test_event.id, version) is False
    await db_session.rollback()


@pytest.mark.asyncio
async def test_every_write_bumps_event_version(db_session, test_event):
    start = test_event.version
    placed = await place_booking(db_session, test_event.id, "user-a", ["Ana"])
    await cancel_booking(db_session, placed.booking.id, "user-a")

    await db_session.refresh(test_event)
    assert test_event.version == start + 2


@pytest.mark.asyncio
async def test_availability_summary(db_session, event_factory):
    event = await event_factory(capacity=3, people_per_booking=2, reserve_spots=1)
    await place_booking(db_session, event.id, "user-a", ["1", "2"])
    await place_booking(db_session, event.id, "user-b", ["1", "2"])
    await place_booking(db_session, event.id, "user-c", ["1"])

    summary = await get_availability(db_session, event.id)

    assert summary == {
        "event_id": event.id,
        "capacity": 3,
        "reserve_spots": 1,
        "attending_count": 3,
        "waiting_count": 1,
        "waiting_participants": 2,
        "available_spots": 0,
        "bookable": True,
    }


@pytest.mark.asyncio
async def test_event_bookings_listed_in_arrival_order(db_session, event_factory):
    event = await event_factory(capacity=1, people_per_booking=1)
    first = await place_booking(db_session, event.id, "user-a", ["1"])
    second = await place_booking(db_session, event.id, "user-b", ["1"])
    third = await place_booking(db_session, event.id, "user-c", ["1"])

    attending, waiting = await list_event_bookings(db_session, event.id)

    assert [b.id for b in attending] == [first.booking.id]
    assert [b.id for b in waiting] == [second.booking.id, third.booking.id]
