"""
Capacity allocation for mixings.

Pure functions over participant counts, kept free of I/O so the booking
ledger can run them inside its version-guarded transaction and tests can
drive them directly.

Placement is all-or-nothing: a request either fits in the free spots and
attends, or the whole group waits. Promotion walks the waiting queue in
arrival order and promotes every booking that fits (first-fit), so a later,
smaller group may move ahead of an earlier one that is still too large.
"""

from dataclasses import dataclass
from typing import Protocol, Sequence, TypeVar

from app.models.booking import BookingStatus


class Sized(Protocol):
    participant_count: int


T = TypeVar("T", bound=Sized)


@dataclass(frozen=True)
class Allocation:
    status: BookingStatus
    available_before: int


def free_spots(capacity: int, attending_count: int) -> int:
    return max(capacity - attending_count, 0)


def allocate(capacity: int, attending_count: int, requested: int) -> Allocation:
    available = free_spots(capacity, attending_count)
    if requested <= available:
        return Allocation(BookingStatus.ATTENDING, available)
    return Allocation(BookingStatus.WAITING, available)


def select_promotions(waiting: Sequence[T], available: int) -> list[T]:
    """
    Pick waiting bookings to promote, given `waiting` in queue order
    (booked_at, then id).
    """
    promoted = []
    for booking in waiting:
        if available <= 0:
            break
        if booking.participant_count <= available:
            promoted.append(booking)
            available -= booking.participant_count
    return promoted
