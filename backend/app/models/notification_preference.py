"""Per-user notification preferences, including quiet hours."""

from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.sql import func
from app.database import Base, JSONType

DEFAULT_EMAIL_NOTIFICATIONS = {
    "enabled": True,
    "daily_digest": False,
    "weekly_digest": True,
    "system_alerts": True,
    "update_reminders": True,
}

DEFAULT_IN_APP_NOTIFICATIONS = {
    "enabled": True,
    "system_notifications": True,
    "update_notifications": True,
    "reminder_notifications": True,
    "achievement_notifications": True,
}

DEFAULT_BOT_NOTIFICATIONS = {
    "telegram": True,
    "google_chat": True,
    "send_on_create": False,
    "send_daily_summary": False,
    "send_weekly_summary": True,
}


class NotificationPreference(Base):
    """Notification settings for one user. Created lazily with defaults."""

    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(100), unique=True, nullable=False, index=True)

    email_notifications = Column(JSONType, nullable=False, default=lambda: dict(DEFAULT_EMAIL_NOTIFICATIONS))
    in_app_notifications = Column(JSONType, nullable=False, default=lambda: dict(DEFAULT_IN_APP_NOTIFICATIONS))
    bot_notifications = Column(JSONType, nullable=False, default=lambda: dict(DEFAULT_BOT_NOTIFICATIONS))

    # Quiet hours (HH:MM, evaluated in quiet_hours_timezone)
    quiet_hours_enabled = Column(Boolean, nullable=False, default=False)
    quiet_hours_start = Column(String(5), nullable=False, default='22:00')
    quiet_hours_end = Column(String(5), nullable=False, default='08:00')
    quiet_hours_timezone = Column(String(50), nullable=False, default='UTC')

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<NotificationPreference(user='{self.user_id}', quiet_hours={self.quiet_hours_enabled})>"
