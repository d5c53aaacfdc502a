"""
In-app notification shown in the user's notification centre.
"""

from sqlalchemy import Column, Integer, String, Boolean, Index

from app.db.base import Base, TimestampMixin


class Notification(Base, TimestampMixin):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False)
    type = Column(String(20), nullable=False)  # confirmed, waiting, promoted
    title = Column(String(255), nullable=False)
    message = Column(String(1000), nullable=False)
    event_id = Column(Integer, nullable=False)
    booking_id = Column(Integer, nullable=False)
    read = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user={self.user_id}, type={self.type})>"
