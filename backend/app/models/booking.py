"""
Booking model representing one request for a group of participants.

Key design decisions:
- Partial unique index on (event_id, requester_id) for non-cancelled rows:
  one active booking per user per event, while cancelled history is kept
- Unique (event_id, requester_id, idempotency_key) makes retried submissions
  resolve to the original row
- `booked_at` is server-assigned and, with `id` as tie-break, defines the
  waiting-list order
- `participant_names` never changes after insert; only `status` and
  `cancelled_at` mutate
"""

import enum

from sqlalchemy import (
    Column, Integer, String, DateTime, JSON, ForeignKey, Index, UniqueConstraint,
    CheckConstraint, func, text,
)

from app.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    ATTENDING = "attending"
    WAITING = "waiting"
    CANCELLED = "cancelled"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    requester_id = Column(String(64), nullable=False, index=True)
    participant_names = Column(JSON, nullable=False)
    participant_count = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False)
    idempotency_key = Column(String(128), nullable=True)

    booked_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_bookings_active_requester",
            "event_id",
            "requester_id",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        UniqueConstraint(
            "event_id", "requester_id", "idempotency_key", name="uq_bookings_idempotency_key"
        ),
        # Queue scans: WHERE event_id = ? AND status = ? ORDER BY booked_at, id
        Index("ix_bookings_event_status_booked", "event_id", "status", "booked_at"),
        CheckConstraint("participant_count > 0", name="check_booking_participant_count_positive"),
        CheckConstraint(
            "status IN ('attending', 'waiting', 'cancelled')", name="check_booking_status"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, event={self.event_id}, requester={self.requester_id}, "
            f"size={self.participant_count}, status={self.status})>"
        )
