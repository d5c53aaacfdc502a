"""
Pydantic schemas for in-app notifications.
"""

from datetime import datetime
from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str
    event_id: int
    booking_id: int
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
