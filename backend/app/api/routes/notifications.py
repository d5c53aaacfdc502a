"""
Notification centre endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.notification import NotificationResponse
from app.services.notification_service import list_user_notifications, mark_notification_read
from app.core.security import get_current_user_id

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=list[NotificationResponse])
async def list_notifications_endpoint(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Latest notifications for the acting user, newest first."""
    return await list_user_notifications(db, user_id)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read_endpoint(
    notification_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await mark_notification_read(db, notification_id, user_id)
