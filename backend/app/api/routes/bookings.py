"""
Booking endpoints: cancellation and the acting user's bookings.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.booking import BookingResponse, BookingCancelResponse
from app.services.booking_service import cancel_booking, get_booking, list_user_bookings
from app.services.dispatcher_factory import get_dispatcher
from app.services.interfaces.dispatcher import NotificationDispatcher
from app.core.exceptions import NotFoundError
from app.core.security import get_current_user_id

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Cancel a booking as its requester or as the mixing's organizer.
    Returns the bookings promoted from the waiting list by the freed spots.
    """
    result = await cancel_booking(db, booking_id, user_id, dispatcher=dispatcher)
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking=BookingResponse.model_validate(result.booking),
        promoted=[BookingResponse.model_validate(b) for b in result.promoted],
    )


@router.get("/", response_model=list[BookingResponse])
async def list_user_bookings_endpoint(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings made by the acting user."""
    return await list_user_bookings(db, user_id)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_booking(db, booking_id)
    if booking.requester_id != user_id:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking
