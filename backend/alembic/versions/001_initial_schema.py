"""Initial schema: events, bookings, notifications with indexes and constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Events (mixings)
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("organizer_id", sa.String(64), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("reserve_spots", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("people_per_booking", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("rules", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("release_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("capacity > 0", name="check_event_capacity_positive"),
        sa.CheckConstraint("reserve_spots >= 0", name="check_event_reserve_non_negative"),
        sa.CheckConstraint("people_per_booking > 0", name="check_event_people_per_booking_positive"),
        sa.CheckConstraint(
            "status IN ('draft', 'scheduled', 'active', 'completed', 'cancelled')",
            name="check_event_status",
        ),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])
    # Scheduled release sweep: WHERE status = 'scheduled' AND release_at <= now()
    op.create_index("ix_events_status_release", "events", ["status", "release_at"])

    # Bookings
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("requester_id", sa.String(64), nullable=False),
        sa.Column("participant_names", sa.JSON(), nullable=False),
        sa.Column("participant_count", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("idempotency_key", sa.String(128), nullable=True),
        sa.Column("booked_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "event_id", "requester_id", "idempotency_key", name="uq_bookings_idempotency_key"
        ),
        sa.CheckConstraint("participant_count > 0", name="check_booking_participant_count_positive"),
        sa.CheckConstraint(
            "status IN ('attending', 'waiting', 'cancelled')", name="check_booking_status"
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_event_id", "bookings", ["event_id"])
    op.create_index("ix_bookings_requester_id", "bookings", ["requester_id"])
    # ONE ACTIVE BOOKING PER REQUESTER: partial index so cancelled history
    # does not block re-booking.
    op.create_index(
        "uq_bookings_active_requester",
        "bookings",
        ["event_id", "requester_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )
    # Attending sums and waiting-queue scans per event, in arrival order
    op.create_index(
        "ix_bookings_event_status_booked", "bookings", ["event_id", "status", "booked_at"]
    )

    # In-app notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.String(1000), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("booking_id", sa.Integer(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("bookings")
    op.drop_table("events")
