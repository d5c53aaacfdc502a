"""
Notification dispatcher interface.

The ledger emits one BookingNotification per status it assigns and hands
it to a dispatcher after the transaction commits. Delivery (email, push,
in-app) is the dispatcher's business.
"""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


class NotificationType(str, enum.Enum):
    CONFIRMED = "confirmed"
    WAITING = "waiting"
    PROMOTED = "promoted"


@dataclass(frozen=True)
class BookingNotification:
    type: NotificationType
    user_id: str
    event_id: int
    booking_id: int
    event_title: Optional[str] = None


class NotificationDispatcher(ABC):
    """
    Interface for notification delivery.

    Implementations:
    - LoggingDispatcher: structured log line only
    - InAppDispatcher: persists to the notifications table
    """

    @abstractmethod
    async def dispatch(self, notification: BookingNotification) -> None:
        """
        Deliver one notification.

        May raise; the publisher logs and swallows failures so they never
        reach the booking operation that triggered them.
        """
        pass
