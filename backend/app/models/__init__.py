from app.models.event import Event, EventStatus
from app.models.booking import Booking, BookingStatus
from app.models.notification import Notification

__all__ = ["Event", "EventStatus", "Booking", "BookingStatus", "Notification"]
