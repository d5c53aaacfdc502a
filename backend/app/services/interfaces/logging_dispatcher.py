"""
Logging dispatcher - no delivery, just a log line.
"""

from app.core.logging import get_logger
from app.services.interfaces.dispatcher import BookingNotification, NotificationDispatcher

logger = get_logger(__name__)


class LoggingDispatcher(NotificationDispatcher):
    """
    Use when:
    - Running locally without a notification centre
    - Another system tails the logs and delivers
    """

    async def dispatch(self, notification: BookingNotification) -> None:
        logger.info(
            "notification_logged",
            type=notification.type.value,
            user_id=notification.user_id,
            event_id=notification.event_id,
            booking_id=notification.booking_id,
        )
