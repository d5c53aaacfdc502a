"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    # Blank names are rejected by the ledger, not here, so the caller gets
    # a single error kind for every participant problem.
    participant_names: list[str] = Field(..., max_length=50)


class BookingResponse(BaseModel):
    id: int
    event_id: int
    requester_id: str
    participant_names: list[str]
    status: str
    booked_at: datetime
    cancelled_at: Optional[datetime]
    waiting_position: Optional[int] = None

    model_config = {"from_attributes": True}


class BookingCancelResponse(BaseModel):
    message: str
    booking: BookingResponse
    promoted: list[BookingResponse]


class EventBookingsResponse(BaseModel):
    event_id: int
    attending: list[BookingResponse]
    waiting: list[BookingResponse]
