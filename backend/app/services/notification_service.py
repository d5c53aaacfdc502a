"""
Notification boundary of the booking ledger.

DELIVERY CONTRACT
=================

Notifications are published only after the ledger transaction commits.
Publishing is best effort: every dispatch failure is logged and counted,
then dropped. A booking or cancellation never fails because a user could
not be told about it; the presentation layer re-reads ledger state anyway.

The in-app dispatcher writes to its own session so a failed insert cannot
touch the caller's (already committed) ledger transaction.
"""

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.notification import Notification
from app.services.interfaces.dispatcher import (
    BookingNotification,
    NotificationDispatcher,
    NotificationType,
)
from app.core.exceptions import NotFoundError
from app.core.metrics import record_notification
from app.core.logging import get_logger

logger = get_logger(__name__)

MAX_NOTIFICATIONS_LISTED = 50

TEMPLATES = {
    NotificationType.CONFIRMED: (
        "Booking Confirmed",
        'Your booking for "{title}" has been confirmed.',
    ),
    NotificationType.WAITING: (
        "Added to Waiting List",
        "You've been added to the waiting list for \"{title}\".",
    ),
    NotificationType.PROMOTED: (
        "Spot Available",
        'A spot is now available for "{title}". Your booking is confirmed.',
    ),
}


def render(notification: BookingNotification) -> tuple[str, str]:
    title, message = TEMPLATES[notification.type]
    event_title = notification.event_title or f"mixing #{notification.event_id}"
    return title, message.format(title=event_title)


class InAppDispatcher(NotificationDispatcher):
    """Stores notifications for the user's notification centre."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def dispatch(self, notification: BookingNotification) -> None:
        title, message = render(notification)
        async with self.session_factory() as session:
            session.add(
                Notification(
                    user_id=notification.user_id,
                    type=notification.type.value,
                    title=title,
                    message=message,
                    event_id=notification.event_id,
                    booking_id=notification.booking_id,
                )
            )
            await session.commit()


async def publish_notifications(
    dispatcher: NotificationDispatcher,
    notifications: Iterable[BookingNotification],
) -> int:
    """Dispatch each notification; returns how many were delivered."""
    sent = 0
    for notification in notifications:
        try:
            await dispatcher.dispatch(notification)
        except Exception as e:
            logger.error(
                "notification_dispatch_failed",
                type=notification.type.value,
                user_id=notification.user_id,
                booking_id=notification.booking_id,
                error=str(e),
            )
            record_notification(notification.type.value, sent=False)
            continue
        record_notification(notification.type.value, sent=True)
        sent += 1
    return sent


async def list_user_notifications(db: AsyncSession, user_id: str) -> list[Notification]:
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(MAX_NOTIFICATIONS_LISTED)
    )
    return list(result.scalars().all())


async def mark_notification_read(db: AsyncSession, notification_id: int, user_id: str) -> Notification:
    """Mark one of the user's notifications as read. Other users' ids look missing."""
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotFoundError(f"Notification {notification_id} not found")

    notification.read = True
    await db.commit()
    return notification
