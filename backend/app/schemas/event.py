"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from app.models.event import EventStatus


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    location: Optional[str] = Field(None, max_length=255)
    event_date: Optional[datetime] = None
    capacity: int = Field(..., gt=0, le=1000)
    reserve_spots: int = Field(default=0, ge=0, le=10)
    people_per_booking: int = Field(default=1, gt=0, le=20)
    rules: dict[str, str] = Field(default_factory=dict)
    # None releases immediately
    release_at: Optional[datetime] = None
    draft: bool = False


class EventStatusUpdate(BaseModel):
    status: EventStatus


class EventResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    location: Optional[str]
    event_date: Optional[datetime]
    organizer_id: str
    capacity: int
    reserve_spots: int
    people_per_booking: int
    rules: dict[str, str]
    status: str
    release_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False


class AvailabilityResponse(BaseModel):
    event_id: int
    capacity: int
    reserve_spots: int
    attending_count: int
    waiting_count: int
    waiting_participants: int
    available_spots: int
    bookable: bool
