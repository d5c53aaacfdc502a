from app.schemas.event import (
    EventCreate, EventStatusUpdate, EventResponse, EventListResponse, AvailabilityResponse,
)
from app.schemas.booking import (
    BookingCreate, BookingResponse, BookingCancelResponse, EventBookingsResponse,
)
from app.schemas.notification import NotificationResponse

__all__ = [
    "EventCreate", "EventStatusUpdate", "EventResponse", "EventListResponse", "AvailabilityResponse",
    "BookingCreate", "BookingResponse", "BookingCancelResponse", "EventBookingsResponse",
    "NotificationResponse",
]
