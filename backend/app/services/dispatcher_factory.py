"""
Notification dispatcher factory.
Configures which delivery backend the ledger publishes to.
"""

from app.services.interfaces.dispatcher import NotificationDispatcher
from app.services.interfaces.logging_dispatcher import LoggingDispatcher
from app.services.notification_service import InAppDispatcher
from app.core.config import get_settings
from app.db.session import AsyncSessionLocal


def build_dispatcher() -> NotificationDispatcher:
    """
    Build the configured dispatcher.

    NOTIFICATION_DISPATCHER:
    - "inapp": persist to the notification centre (default)
    - "log": log only
    """
    settings = get_settings()
    if settings.NOTIFICATION_DISPATCHER == "log":
        return LoggingDispatcher()

    return InAppDispatcher(AsyncSessionLocal)


# Singleton instance
_dispatcher: NotificationDispatcher = None


def get_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency returning the dispatcher singleton."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = build_dispatcher()
    return _dispatcher
