"""
Event ("mixing") model.

Key design decisions:
- `capacity` is the only number the ledger allocates against; `reserve_spots`
  is shown to participants but never changes allocation
- attending counts are NOT denormalized here; they are always derived from
  the bookings table so they cannot drift after cancellations and promotions
- `version` is bumped by every ledger write for this event and serves as the
  compare-and-set guard that serializes bookings per event
- `rules` is opaque organizer text, stored as JSON and never interpreted
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime, JSON, Index, CheckConstraint

from app.db.base import Base, TimestampMixin


class EventStatus(str, enum.Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    location = Column(String(255), nullable=True)
    event_date = Column(DateTime(timezone=True), nullable=True)
    organizer_id = Column(String(64), nullable=False, index=True)

    capacity = Column(Integer, nullable=False)
    reserve_spots = Column(Integer, nullable=False, default=0)
    people_per_booking = Column(Integer, nullable=False, default=1)
    rules = Column(JSON, nullable=False, default=dict)

    status = Column(String(20), nullable=False, default=EventStatus.ACTIVE.value)
    release_at = Column(DateTime(timezone=True), nullable=True)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_event_capacity_positive"),
        CheckConstraint("reserve_spots >= 0", name="check_event_reserve_non_negative"),
        CheckConstraint("people_per_booking > 0", name="check_event_people_per_booking_positive"),
        CheckConstraint(
            "status IN ('draft', 'scheduled', 'active', 'completed', 'cancelled')",
            name="check_event_status",
        ),
        # Scheduled release lookup
        Index("ix_events_status_release", "status", "release_at"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, status={self.status}, capacity={self.capacity})>"
