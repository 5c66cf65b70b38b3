"""In-app notification model."""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Index
from sqlalchemy.sql import func
from app.database import Base, JSONType


class Notification(Base):
    """Notification shown to a user in the app."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(100), nullable=False, index=True)

    title = Column(String(100), nullable=False)
    message = Column(String(500), nullable=False)
    type = Column(String(20), nullable=False, default='info')  # 'info', 'success', 'warning', 'error'
    category = Column(String(20), nullable=False, default='other')  # 'system', 'update', 'reminder', ...
    link = Column(String(500), nullable=True)
    extra = Column(JSONType, nullable=True)

    is_read = Column(Boolean, nullable=False, default=False)

    # Held back during quiet hours until released by the scheduler
    surfaced = Column(Boolean, nullable=False, default=True)
    surfaced_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('idx_notifications_user_read', 'user_id', 'is_read', 'created_at'),
        Index('idx_notifications_held', 'surfaced', 'user_id'),
    )

    def __repr__(self):
        return f"<Notification(id={self.id}, user='{self.user_id}', type='{self.type}', surfaced={self.surfaced})>"
