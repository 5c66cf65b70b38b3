"""Database models."""

from app.models.schedule import Schedule
from app.models.execution_record import ExecutionRecord
from app.models.notification import Notification
from app.models.notification_preference import NotificationPreference

__all__ = [
    "Schedule",
    "ExecutionRecord",
    "Notification",
    "NotificationPreference",
]
