"""
Service interfaces for dependency inversion.
Allows swapping notification delivery without changing ledger logic.
"""

from .dispatcher import BookingNotification, NotificationDispatcher, NotificationType
from .logging_dispatcher import LoggingDispatcher

__all__ = ['BookingNotification', 'NotificationDispatcher', 'NotificationType', 'LoggingDispatcher']
